import logging
import time

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from display.store_http import HttpJobStore
from display.synchronizer import DisplaySynchronizer

logger = logging.getLogger("display.tv")


class Command(BaseCommand):
    help = "Fait tourner le synchroniseur TV contre l'API SVB et journalise la page visible."

    def add_arguments(self, parser):
        cfg = settings.SVB_DISPLAY
        parser.add_argument("--api-base-url", default=cfg["API_BASE_URL"])
        parser.add_argument("--page-size", type=int, default=cfg["PAGE_SIZE"], choices=cfg["PAGE_SIZE_CHOICES"])
        parser.add_argument("--tick", type=float, default=cfg["TICK_INTERVAL_S"], help="Intervalle du tick (s)")
        parser.add_argument("--max-ticks", type=int, default=None, help="Arrêt après N ticks (debug)")

    def handle(self, *args, **opts):
        ticks = 0
        last_rendered = None
        with HttpJobStore(opts["api_base_url"]) as store, \
                DisplaySynchronizer(store, page_size=opts["page_size"]) as sync:
            initial = store.fetch_all()
            sync.seed(initial.jobs, initial.fetched_at, initial.error)
            sync.start(timezone.now())
            self.stdout.write(f"TV board started against {opts['api_base_url']}")
            try:
                while opts["max_ticks"] is None or ticks < opts["max_ticks"]:
                    now = timezone.now()
                    sync.tick(now)
                    rendered = self._render(sync, now)
                    if rendered != last_rendered:
                        logger.info(rendered)
                        last_rendered = rendered
                    ticks += 1
                    time.sleep(opts["tick"])
            except KeyboardInterrupt:
                self.stdout.write("TV board stopped")

    def _render(self, sync: DisplaySynchronizer, now) -> str:
        jobs = ", ".join(
            f"{job['job_number']}:{job['status']}:{job.get('progress_percentage', 0)}%"
            for job in sync.visible_jobs(now)
        )
        updated = sync.last_updated_at.isoformat() if sync.last_updated_at else "-"
        return (
            f"[{sync.connection_state}] page {sync.page_index + 1}/{sync.page_count(now)} "
            f"updated {updated} | {jobs or 'no jobs'}"
        )
