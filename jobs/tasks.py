from datetime import timedelta
import logging

from celery import shared_task
from django.conf import settings
from django.db.models import Max
from django.utils import timezone

from .models import JobChange
from .services.queries import record_purge

logger = logging.getLogger(__name__)


@shared_task
def purge_job_changes(retention_hours: int | None = None) -> int:
    """
    Purge du journal du change feed au-delà de la rétention.
    La ligne la plus récente est conservée (curseur de tête). Le plus grand id
    purgé est mémorisé: un abonné resté en deçà reçoit reset=true et se
    resynchronise par full fetch.
    """
    hours = retention_hours if retention_hours is not None else settings.JOB_CHANGES_RETENTION_HOURS
    cutoff = timezone.now() - timedelta(hours=hours)
    newest = JobChange.objects.order_by("-id").values_list("id", flat=True).first()
    stale = JobChange.objects.filter(created_at__lt=cutoff).exclude(pk=newest)
    purged_max = stale.aggregate(max_id=Max("id"))["max_id"]
    deleted, _ = stale.delete()
    if purged_max:
        record_purge(purged_max)
    if deleted:
        logger.info("Purged %s job change events older than %sh", deleted, hours)
    return deleted
