from unittest import mock

from django.db import DatabaseError
from django.dispatch import Signal
from django.test import TestCase

from core.broadcast import BroadcastChannel
from jobs.models import Job, JobChange
from jobs.services import mutations


class CreateJobTest(TestCase):
    def test_end_to_end_create_then_progress(self):
        created = mutations.create_job({"job_number": "V-101", "part_number": "P-1", "total_pieces": 10})
        self.assertTrue(created.ok, created.error)
        self.assertEqual(created.data["pieces_completed"], 0)
        self.assertEqual(created.data["status"], "RECEIVED")
        self.assertIsNotNone(created.data["date_received"])

        progressed = mutations.update_progress(created.data["id"], 10, 10)
        self.assertTrue(progressed.ok, progressed.error)
        # la progression seule ne change pas le statut
        self.assertEqual(progressed.data["status"], "RECEIVED")
        self.assertEqual(progressed.data["progress_percentage"], 100)

    def test_validation_messages(self):
        cases = [
            ({"job_number": "101", "part_number": "P-1", "total_pieces": 1}, "Job number must use the V-### format"),
            ({"job_number": "V-1", "part_number": "X-1", "total_pieces": 1}, "Part number must start with P-"),
            ({"job_number": "V-1", "part_number": "P-1", "total_pieces": 0}, "Total pieces must be at least 1"),
            ({"job_number": "V-1", "part_number": "P-1", "total_pieces": 2, "pieces_completed": 3},
             "Pieces completed must be less than or equal to total pieces"),
            ({"job_number": "V-1", "part_number": "P-1", "total_pieces": 2, "notes": "x" * 501},
             "Notes are limited to 500 characters"),
        ]
        for payload, message in cases:
            result = mutations.create_job(payload)
            self.assertEqual(result.code, mutations.CODE_VALIDATION)
            self.assertEqual(result.error, message)
        self.assertEqual(Job.objects.count(), 0)

    def test_duplicate_job_number_conflict(self):
        payload = {"job_number": "V-7", "part_number": "P-7", "total_pieces": 3}
        self.assertTrue(mutations.create_job(payload).ok)
        result = mutations.create_job(payload)
        self.assertEqual(result.code, mutations.CODE_CONFLICT)
        self.assertEqual(result.error, "Job number must be unique")

    def test_blank_optional_text_stored_as_null(self):
        result = mutations.create_job({
            "job_number": "V-8", "part_number": "P-8", "total_pieces": 3, "title": "  ", "eta_text": "",
        })
        self.assertTrue(result.ok)
        self.assertIsNone(result.data["title"])
        self.assertIsNone(result.data["eta_text"])


class UpdateJobTest(TestCase):
    def setUp(self):
        self.job = Job.objects.create(job_number="V-200", part_number="P-2", total_pieces=10, pieces_completed=4,
                                      status="IN_PROGRESS")

    def test_progress_never_decreases(self):
        for value in (0, 3):
            result = mutations.update_progress(self.job.id, value, 10)
            self.assertEqual(result.error, "Completed pieces cannot decrease")
        self.job.refresh_from_db()
        self.assertEqual(self.job.pieces_completed, 4)

    def test_progress_bounds(self):
        result = mutations.update_progress(self.job.id, 11, 10)
        self.assertEqual(result.error, "Pieces completed cannot exceed total pieces")
        self.assertTrue(mutations.update_progress(self.job.id, 10, 10).ok)

    def test_status_backward_rejected(self):
        result = mutations.update_status(self.job.id, "RECEIVED")
        self.assertEqual(result.code, mutations.CODE_VALIDATION)
        self.assertEqual(result.error, "Status cannot move backward from IN_PROGRESS to RECEIVED")
        self.job.refresh_from_db()
        self.assertEqual(self.job.status, "IN_PROGRESS")

    def test_status_skip_forward_allowed(self):
        job = Job.objects.create(job_number="V-201", part_number="P-2", total_pieces=1)
        result = mutations.update_status(job.id, "COMPLETED")
        self.assertTrue(result.ok)
        self.assertEqual(result.data["status"], "COMPLETED")

    def test_missing_job(self):
        for job_id in ("00000000-0000-0000-0000-000000000000", "not-a-uuid"):
            self.assertEqual(mutations.update_status(job_id, "QUOTED").code, mutations.CODE_NOT_FOUND)
            self.assertEqual(mutations.update_progress(job_id, 1, 1).code, mutations.CODE_NOT_FOUND)

    def test_details_partial(self):
        result = mutations.update_details(self.job.id, {"eta_text": "Friday", "notes": "", "pieces_completed": 10})
        self.assertTrue(result.ok, result.error)
        self.assertEqual(result.data["eta_text"], "Friday")
        self.assertIsNone(result.data["notes"])
        self.assertEqual(result.data["pieces_completed"], 10)

    def test_details_checks(self):
        self.assertEqual(mutations.update_details(self.job.id, {"pieces_completed": 11}).error,
                         "Pieces completed cannot exceed total pieces")
        self.assertEqual(mutations.update_details(self.job.id, {"pieces_completed": 2}).error,
                         "Completed pieces cannot decrease")
        self.assertEqual(mutations.update_details(self.job.id, {"status": "QUOTED"}).code,
                         mutations.CODE_VALIDATION)
        self.assertEqual(mutations.update_details(self.job.id, {"machine": "Lathe"}).error, "No changes to save")


class DeleteJobTest(TestCase):
    def test_idempotent(self):
        job = Job.objects.create(job_number="V-300", part_number="P-3", total_pieces=1)
        self.assertTrue(mutations.delete_job(job.id).ok)
        self.assertTrue(mutations.delete_job(job.id).ok)
        self.assertTrue(mutations.delete_job("not-a-uuid").ok)
        self.assertFalse(Job.objects.exists())

    def test_store_error(self):
        job = Job.objects.create(job_number="V-301", part_number="P-3", total_pieces=1)
        with mock.patch("jobs.models.Job.objects.filter", side_effect=DatabaseError("down")):
            result = mutations.delete_job(job.id)
        self.assertEqual(result.code, mutations.CODE_STORE)
        self.assertEqual(result.error, "Could not delete job")


class ChangeFeedJournalTest(TestCase):
    def test_writes_are_journaled(self):
        created = mutations.create_job({"job_number": "V-400", "part_number": "P-4", "total_pieces": 5})
        mutations.update_progress(created.data["id"], 2, 5)
        mutations.delete_job(created.data["id"])
        events = list(JobChange.objects.values_list("event_type", flat=True))
        self.assertEqual(events, ["INSERT", "UPDATE", "DELETE"])
        update = JobChange.objects.get(event_type="UPDATE")
        self.assertEqual(update.new_row["pieces_completed"], 2)
        delete = JobChange.objects.get(event_type="DELETE")
        self.assertEqual(delete.old_row, {"id": created.data["id"]})


class BroadcastOnCommitTest(TestCase):
    def test_successful_mutation_posts_job_updated(self):
        signal = Signal()
        received = []
        listener = BroadcastChannel("svb-jobs-updates", signal=signal)
        listener.add_listener(received.append)
        with mock.patch("core.broadcast.broadcast_message", signal), \
                self.captureOnCommitCallbacks(execute=True):
            mutations.create_job({"job_number": "V-500", "part_number": "P-5", "total_pieces": 1})
        listener.close()
        self.assertEqual(received, [{"type": "job-updated"}])

    def test_failed_mutation_posts_nothing(self):
        with self.captureOnCommitCallbacks() as callbacks:
            mutations.create_job({"job_number": "bad", "part_number": "P-5", "total_pieces": 1})
        self.assertEqual(callbacks, [])
