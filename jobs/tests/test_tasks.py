from datetime import timedelta

from django.core.cache import cache
from django.test import Client, TestCase
from django.utils import timezone

from jobs.models import Job, JobChange
from jobs.tasks import purge_job_changes


class PurgeJobChangesTest(TestCase):
    def setUp(self):
        cache.clear()
        self.client = Client()

    def age(self, *changes):
        JobChange.objects.filter(pk__in=[c.pk for c in changes]).update(
            created_at=timezone.now() - timedelta(hours=30)
        )

    def feed(self, after):
        return self.client.get("/api/v1/jobs/changes/", {"after": after}).json()

    def test_purges_only_old_events(self):
        Job.objects.create(job_number="V-1", part_number="P-1", total_pieces=1)
        Job.objects.create(job_number="V-2", part_number="P-2", total_pieces=1)
        old = JobChange.objects.order_by("id").first()
        self.age(old)

        deleted = purge_job_changes.delay().get()

        self.assertEqual(deleted, 1)
        self.assertEqual(JobChange.objects.count(), 1)
        self.assertFalse(JobChange.objects.filter(pk=old.pk).exists())

    def test_subscriber_behind_purge_is_reset(self):
        for number in ("V-1", "V-2", "V-3"):
            Job.objects.create(job_number=number, part_number="P-1", total_pieces=1)
        first, second, third = JobChange.objects.order_by("id")
        self.age(first, second)

        self.assertEqual(purge_job_changes.delay().get(), 2)

        behind = self.feed(first.id)
        self.assertTrue(behind["reset"])
        self.assertEqual(behind["cursor"], third.id)

        caught_up = self.feed(second.id)
        self.assertFalse(caught_up["reset"])
        self.assertEqual([e["id"] for e in caught_up["events"]], [third.id])

    def test_full_purge_keeps_head_cursor(self):
        Job.objects.create(job_number="V-1", part_number="P-1", total_pieces=1)
        Job.objects.create(job_number="V-2", part_number="P-2", total_pieces=1)
        first, last = JobChange.objects.order_by("id")
        self.age(first, last)

        self.assertEqual(purge_job_changes.delay().get(), 1)
        self.assertTrue(JobChange.objects.filter(pk=last.pk).exists())

        body = self.feed(last.id)
        self.assertFalse(body["reset"])
        self.assertEqual(body["events"], [])
        self.assertEqual(body["cursor"], last.id)
        self.assertEqual(self.client.get("/api/v1/jobs/changes/").json()["cursor"], last.id)
