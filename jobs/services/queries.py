"""Lectures serveur des jobs (snapshot TV, liste admin, change feed)."""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import List, Optional

from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError
from django.utils import timezone

from jobs.models import Job, JobChange
from jobs.serializers.jobs_serializers import JobOutSerializer
from .presentation import prepare_jobs_for_display

logger = logging.getLogger(__name__)

CHANGES_PAGE_LIMIT = 500
PURGED_THROUGH_CACHE_KEY = "jobs:changes:purged_through"


@dataclass
class FetchJobsResult:
    jobs: List[dict] = field(default_factory=list)
    error: Optional[str] = None
    fetched_at: datetime = field(default_factory=timezone.now)


def fetch_jobs(now: Optional[datetime] = None) -> FetchJobsResult:
    """Snapshot prêt pour l'affichage TV (tri + masquage des COMPLETED anciens + cap)."""
    try:
        rows = JobOutSerializer(Job.objects.all(), many=True).data
    except DatabaseError:
        logger.exception("Failed to fetch jobs for TV")
        return FetchJobsResult(error="Unable to load jobs right now")
    now = now or timezone.now()
    return FetchJobsResult(jobs=prepare_jobs_for_display(rows, now), fetched_at=now)


def fetch_admin_jobs() -> FetchJobsResult:
    try:
        rows = JobOutSerializer(Job.objects.order_by("-updated_at"), many=True).data
    except DatabaseError:
        logger.exception("Failed to fetch jobs for admin")
        return FetchJobsResult(error="Unable to load jobs right now")
    return FetchJobsResult(jobs=list(rows))


def latest_change_cursor() -> int:
    """Dernier id émis: la purge conserve toujours la ligne la plus récente."""
    last = JobChange.objects.order_by("-id").values_list("id", flat=True).first()
    return max(last or 0, purged_through())


def purged_through() -> int:
    """Plus grand id supprimé par la purge (0 si aucune purge)."""
    return cache.get(PURGED_THROUGH_CACHE_KEY, 0)


def record_purge(max_id: int) -> None:
    cache.set(PURGED_THROUGH_CACHE_KEY, max(purged_through(), max_id), None)


def settle_horizon(now: Optional[datetime] = None) -> datetime:
    return (now or timezone.now()) - timedelta(seconds=settings.JOB_CHANGES_SETTLE_S)


def handshake_cursor(now: Optional[datetime] = None) -> int:
    """
    Curseur de départ d'un abonné: dernier événement assez ancien pour qu'aucune
    transaction plus ancienne ne soit encore en vol. Les événements récents sont
    re-livrés au premier poll (remplacement par id, donc idempotent).
    """
    settled = (
        JobChange.objects.filter(created_at__lte=settle_horizon(now))
        .order_by("-id")
        .values_list("id", flat=True)
        .first()
    )
    return max(settled or 0, purged_through())


def is_cursor_lost(after: int) -> bool:
    """Le curseur est au-delà du dernier id émis, ou des événements suivants ont été purgés."""
    return after > latest_change_cursor() or after < purged_through()


def changes_after(cursor: int, limit: int = CHANGES_PAGE_LIMIT):
    return list(JobChange.objects.filter(id__gt=cursor).order_by("id")[:limit])


def committed_cursor(after: int, events, now: Optional[datetime] = None) -> int:
    """
    Curseur sûr après une page d'événements.

    Les ids sont alloués avant le commit: un trou récent dans la séquence peut être
    une transaction encore en vol qui sera visible plus tard sous un id inférieur.
    On ne dépasse pas un tel trou tant qu'il est plus jeune que la fenêtre de
    stabilisation; passé ce délai il est considéré comme un rollback.
    """
    horizon = settle_horizon(now)
    cursor = after
    for event in events:
        if event.id != cursor + 1 and event.created_at > horizon:
            break
        cursor = event.id
    return cursor
