"""
Synchroniseur de l'écran TV.

Garde une copie locale des jobs (dict par id) cohérente avec le store:
- change feed (patch insert/update/delete sans re-fetch)
- re-fetch complet au handshake, sur broadcast "job-updated" et en polling de secours
- reconnexion à délai fixe, plafonnée (au-delà: `disconnected`, polling seul)

Tout est piloté par tick(now): aucun timer, aucun thread. Les callbacks
(abonnement, broadcast) ne font que modifier l'état ou lever un drapeau.
"""
from datetime import datetime, timedelta
import logging
from typing import Dict, Iterable, List, Optional

from django.conf import settings
from django.dispatch import Signal
from django.utils import timezone

from core.broadcast import JOB_UPDATED, BroadcastChannel
from jobs.services.presentation import (
    FILTER_ALL,
    FILTER_MODES,
    SORT_MODES,
    SORT_STATUS,
    cap_and_paginate,
    page_count,
    select_jobs,
)

from .rotation import RotationClock
from .store import (
    EVENT_DELETE,
    EVENT_INSERT,
    EVENT_UPDATE,
    FAILURE_STATUSES,
    SUBSCRIBED,
    BaseJobStore,
    BaseSubscription,
    ChangeEvent,
)

logger = logging.getLogger(__name__)

CONNECTED = "connected"
RECONNECTING = "reconnecting"
DISCONNECTED = "disconnected"


class DisplaySynchronizer:
    def __init__(
        self,
        store: BaseJobStore,
        *,
        page_size: Optional[int] = None,
        filter_mode: str = FILTER_ALL,
        sort_mode: str = SORT_STATUS,
        signal: Optional[Signal] = None,
        config: Optional[dict] = None,
    ) -> None:
        cfg = {**settings.SVB_DISPLAY, **(config or {})}
        self.store = store
        self.page_size_choices = list(cfg["PAGE_SIZE_CHOICES"])
        self.page_size = page_size or cfg["PAGE_SIZE"]
        self.filter_mode = filter_mode
        self.sort_mode = sort_mode
        self.reconnect_delay = timedelta(seconds=cfg["RECONNECT_DELAY_S"])
        self.max_reconnect_attempts = cfg["MAX_RECONNECT_ATTEMPTS"]
        self.polling_interval = timedelta(seconds=cfg["POLLING_FALLBACK_S"])
        self.channel_name = cfg["BROADCAST_CHANNEL"]
        self.rotation = RotationClock(
            interval=timedelta(seconds=cfg["ROTATION_INTERVAL_S"]),
            pause=timedelta(seconds=cfg["ROTATION_PAUSE_S"]),
        )
        self._signal = signal

        self.jobs: Dict[str, dict] = {}
        self.connection_state = CONNECTED
        self.page_index = 0
        self.last_updated_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.reconnect_attempts = 0

        self._now: Optional[datetime] = None
        self._subscription: Optional[BaseSubscription] = None
        self._channel: Optional[BroadcastChannel] = None
        self._resubscribe_at: Optional[datetime] = None
        self._next_poll_at: Optional[datetime] = None
        self._refresh_requested = False
        self._started = False
        self.closed = False

    # ------------------------------------------------------------------
    # cycle de vie
    # ------------------------------------------------------------------
    def seed(self, snapshot: Iterable[dict], fetched_at: Optional[datetime] = None,
             error: Optional[str] = None) -> None:
        """État initial depuis le snapshot serveur (ou son échec)."""
        now = fetched_at or timezone.now()
        self._now = now
        self._replace_all(snapshot)
        self.last_updated_at = now
        if error:
            logger.warning("Initial job fetch failed: %s", error)
            self.last_error = error
            self.connection_state = DISCONNECTED
            self._start_polling(now)
            self._refresh_requested = True

    def start(self, now: datetime) -> None:
        if self.closed or self._started:
            return
        self._started = True
        self._now = now
        self.rotation.start(now)
        self._channel = BroadcastChannel(self.channel_name, signal=self._signal)
        self._channel.add_listener(self._on_broadcast)
        self._subscribe()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._drop_subscription()
        if self._channel is not None:
            self._channel.close()
            self._channel = None
        self._resubscribe_at = None
        self._next_poll_at = None
        self._refresh_requested = False
        self.rotation.stop()

    def __enter__(self) -> "DisplaySynchronizer":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # horloge
    # ------------------------------------------------------------------
    def tick(self, now: datetime) -> None:
        if self.closed:
            return
        self._now = now

        if self._resubscribe_at is not None and now >= self._resubscribe_at:
            self._resubscribe_at = None
            self._subscribe()

        if self._subscription is not None:
            self._subscription.pump(now)
            if self.closed:
                return

        if self._next_poll_at is not None and now >= self._next_poll_at:
            self._next_poll_at = now + self.polling_interval
            self._refresh_requested = True

        if self._refresh_requested:
            self._refresh_requested = False
            self.refresh()

        if self.rotation.should_advance(now):
            self._advance_page()

    # ------------------------------------------------------------------
    # change feed
    # ------------------------------------------------------------------
    def apply_change(self, event: ChangeEvent) -> None:
        if self.closed:
            return
        job_id = event.job_id
        if job_id is None:
            logger.warning("Ignoring change event without id: %s", event.event_type)
            return

        if event.event_type == EVENT_DELETE:
            self.jobs.pop(job_id, None)
        elif event.event_type in (EVENT_INSERT, EVENT_UPDATE):
            # remplacement par id (position conservée) ou ajout
            self.jobs[job_id] = dict(event.new)
        else:
            logger.warning("Ignoring unknown change event type: %s", event.event_type)
            return

        now = self._clock()
        self.last_updated_at = now
        self.rotation.pause(now)
        self._clamp_page()

    def on_status(self, status: str) -> None:
        if self.closed:
            return
        if status == SUBSCRIBED:
            logger.info("Change feed subscribed")
            self.connection_state = CONNECTED
            self.reconnect_attempts = 0
            self.last_error = None
            self._stop_polling()
            # rattrape ce qui a été manqué pendant la coupure
            self._refresh_requested = True
            return

        if status not in FAILURE_STATUSES:
            logger.warning("Ignoring unknown subscription status: %s", status)
            return

        self._drop_subscription()
        self.reconnect_attempts += 1
        now = self._clock()
        if self.reconnect_attempts < self.max_reconnect_attempts:
            self.connection_state = RECONNECTING
            self._resubscribe_at = now + self.reconnect_delay
            logger.warning(
                "Change feed %s, retry %s/%s in %ss",
                status, self.reconnect_attempts, self.max_reconnect_attempts,
                int(self.reconnect_delay.total_seconds()),
            )
        else:
            self.connection_state = DISCONNECTED
            self._resubscribe_at = None
            logger.error("Change feed %s, giving up after %s attempts", status, self.reconnect_attempts)
        self._start_polling(now)

    def _on_broadcast(self, message: dict) -> None:
        if not self.closed and message.get("type") == JOB_UPDATED:
            self._refresh_requested = True

    # ------------------------------------------------------------------
    # fetch
    # ------------------------------------------------------------------
    def refresh(self) -> bool:
        if self.closed:
            return False
        result = self.store.fetch_all()
        if result.error:
            logger.warning("Job refresh failed: %s", result.error)
            self.last_error = result.error
            return False
        self._replace_all(result.jobs)
        self.last_updated_at = result.fetched_at or self._clock()
        self.last_error = None
        self._clamp_page()
        return True

    # ------------------------------------------------------------------
    # affichage
    # ------------------------------------------------------------------
    def display_list(self, now: Optional[datetime] = None) -> List[dict]:
        return select_jobs(self.jobs.values(), now or self._clock(), self.filter_mode, self.sort_mode)

    def visible_jobs(self, now: Optional[datetime] = None) -> List[dict]:
        return cap_and_paginate(self.display_list(now), self.page_size, self.page_index)

    def page_count(self, now: Optional[datetime] = None) -> int:
        return page_count(len(self.display_list(now)), self.page_size)

    @property
    def is_stale(self) -> bool:
        return self.connection_state != CONNECTED

    def rotation_state(self) -> str:
        return self.rotation.state(self._clock())

    def go_to_page(self, index: int, now: Optional[datetime] = None) -> None:
        """Navigation manuelle: met la rotation en pause pendant le cooldown."""
        if self.closed:
            return
        now = now or self._clock()
        pages = self.page_count(now)
        if pages <= 1:
            return
        self.page_index = index % pages
        self.rotation.pause(now)

    def next_page(self, now: Optional[datetime] = None) -> None:
        self.go_to_page(self.page_index + 1, now)

    def previous_page(self, now: Optional[datetime] = None) -> None:
        self.go_to_page(self.page_index - 1, now)

    def set_modes(self, *, filter_mode: Optional[str] = None, sort_mode: Optional[str] = None,
                  page_size: Optional[int] = None) -> None:
        if filter_mode is not None and filter_mode not in FILTER_MODES:
            raise ValueError(f"Unknown filter mode: {filter_mode}")
        if sort_mode is not None and sort_mode not in SORT_MODES:
            raise ValueError(f"Unknown sort mode: {sort_mode}")
        if page_size is not None and page_size not in self.page_size_choices:
            raise ValueError(f"Page size must be one of {self.page_size_choices}")
        self.filter_mode = filter_mode or self.filter_mode
        self.sort_mode = sort_mode or self.sort_mode
        self.page_size = page_size or self.page_size
        self.page_index = 0

    # ------------------------------------------------------------------
    # interne
    # ------------------------------------------------------------------
    def _clock(self) -> datetime:
        return self._now or timezone.now()

    def _replace_all(self, rows: Iterable[dict]) -> None:
        self.jobs = {str(row["id"]): dict(row) for row in rows}

    def _subscribe(self) -> None:
        self._drop_subscription()
        self._subscription = self.store.subscribe(self.apply_change, self.on_status)

    def _drop_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def _start_polling(self, now: datetime) -> None:
        if self._next_poll_at is None:
            self._next_poll_at = now + self.polling_interval

    def _stop_polling(self) -> None:
        self._next_poll_at = None

    @property
    def polling(self) -> bool:
        return self._next_poll_at is not None

    @property
    def resubscribe_at(self) -> Optional[datetime]:
        return self._resubscribe_at

    def _advance_page(self) -> None:
        pages = self.page_count()
        if pages <= 1:
            self.page_index = 0
            return
        self.page_index = (self.page_index + 1) % pages

    def _clamp_page(self) -> None:
        if self.page_index >= self.page_count():
            self.page_index = 0
