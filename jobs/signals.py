"""
Alimente le journal du change feed (JobChange) à chaque écriture sur Job.
Les abonnés reçoivent la ligne telle qu'écrite, sans re-fetch.
"""
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import Job, JobChange
from .serializers.jobs_serializers import JobOutSerializer


@receiver(post_save, sender=Job, dispatch_uid="jobs_change_feed_save")
def record_job_saved(sender, instance: Job, created: bool, **kwargs):
    JobChange.objects.create(
        event_type=JobChange.EVENT_INSERT if created else JobChange.EVENT_UPDATE,
        job_id=instance.pk,
        new_row=dict(JobOutSerializer(instance).data),
    )


@receiver(post_delete, sender=Job, dispatch_uid="jobs_change_feed_delete")
def record_job_deleted(sender, instance: Job, **kwargs):
    JobChange.objects.create(
        event_type=JobChange.EVENT_DELETE,
        job_id=instance.pk,
        old_row={"id": str(instance.pk)},
    )
