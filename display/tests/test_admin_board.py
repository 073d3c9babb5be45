import json

from django.test import SimpleTestCase, TestCase
import httpx

from display.admin_api import AdminApiClient, BaseAdminApi, LocalAdminApi
from display.admin_board import AdminBoard
from display.store import FetchResult
from jobs.models import Job
from jobs.services.mutations import CODE_STORE, MutationResult


class AdminBoardLocalTest(TestCase):
    def setUp(self):
        self.job = Job.objects.create(job_number="V-1", part_number="P-1", total_pieces=4, status="IN_PROGRESS")
        self.board = AdminBoard(LocalAdminApi())
        self.assertTrue(self.board.load())
        self.job_id = str(self.job.id)

    def test_progress_confirmed_with_server_row(self):
        result = self.board.update_progress(self.job_id, 2, 4)
        self.assertTrue(result.ok, result.error)
        self.assertFalse(self.board.is_pending(self.job_id))
        self.assertEqual(self.board.rows[self.job_id]["progress_percentage"], 50)

    def test_progress_at_full_auto_completes(self):
        result = self.board.update_progress(self.job_id, 4, 4)
        self.assertTrue(result.ok, result.error)
        self.job.refresh_from_db()
        self.assertEqual(self.job.status, "COMPLETED")
        self.assertEqual(self.board.rows[self.job_id]["status"], "COMPLETED")

    def test_auto_complete_can_be_disabled(self):
        board = AdminBoard(LocalAdminApi(), auto_complete=False)
        board.load()
        board.update_progress(self.job_id, 4, 4)
        self.job.refresh_from_db()
        self.assertEqual(self.job.status, "IN_PROGRESS")

    def test_local_checks_skip_the_server(self):
        self.board.update_progress(self.job_id, 3, 4)
        result = self.board.update_progress(self.job_id, 1, 4)
        self.assertEqual(result.error, "Completed pieces cannot decrease")
        self.assertEqual(self.board.rows[self.job_id]["pieces_completed"], 3)

    def test_rejected_status_rolls_back(self):
        result = self.board.update_status(self.job_id, "RECEIVED")
        self.assertFalse(result.ok)
        self.assertEqual(self.board.rows[self.job_id]["status"], "IN_PROGRESS")
        self.assertEqual(self.board.errors[self.job_id], result.error)
        row = self.board.view_rows()[0]
        self.assertFalse(row["pending"])
        self.assertEqual(row["error"], result.error)

    def test_form_strings_are_accepted(self):
        result = self.board.update_progress(self.job_id, "2", "4")
        self.assertTrue(result.ok, result.error)
        self.assertEqual(self.board.rows[self.job_id]["pieces_completed"], 2)

        result = self.board.update_details(self.job_id, {"pieces_completed": "3"})
        self.assertTrue(result.ok, result.error)
        self.assertFalse(self.board.is_pending(self.job_id))
        self.job.refresh_from_db()
        self.assertEqual(self.job.pieces_completed, 3)

    def test_non_numeric_pieces_rejected_without_pending(self):
        result = self.board.update_details(self.job_id, {"pieces_completed": "seven"})
        self.assertEqual(result.code, "VALIDATION_ERROR")
        self.assertFalse(self.board.is_pending(self.job_id))
        self.assertEqual(self.board.update_progress(self.job_id, "2.5", 4).code, "VALIDATION_ERROR")

        result = self.board.update_details(self.job_id, {"title": "Brackets"})
        self.assertTrue(result.ok, result.error)
        self.assertEqual(self.board.rows[self.job_id]["title"], "Brackets")

    def test_create_and_delete(self):
        created = self.board.create({"job_number": "V-2", "part_number": "P-2", "total_pieces": 1})
        self.assertTrue(created.ok, created.error)
        new_id = str(created.data["id"])
        self.assertIn(new_id, self.board.rows)
        self.assertTrue(self.board.delete(new_id).ok)
        self.assertNotIn(new_id, self.board.rows)
        self.assertFalse(Job.objects.filter(id=new_id).exists())


class FailingApi(BaseAdminApi):
    """Le serveur ne répond qu'après inspection de l'état optimiste."""

    def __init__(self, board_ref, rows):
        self.board_ref = board_ref
        self.rows = rows
        self.seen_pending = []

    def list_jobs(self):
        return FetchResult(jobs=self.rows)

    def _fail(self, job_id):
        self.seen_pending.append(self.board_ref[0].is_pending(job_id))
        return MutationResult(error="Could not update job", code=CODE_STORE)

    def update_details(self, job_id, values):
        return self._fail(job_id)

    def delete_job(self, job_id):
        return self._fail(job_id)


class AdminBoardRollbackTest(SimpleTestCase):
    def setUp(self):
        self.row = {"id": "a1", "job_number": "V-1", "status": "RECEIVED", "eta_text": "Monday",
                    "pieces_completed": 0, "total_pieces": 2, "progress_percentage": 0,
                    "updated_at": "2025-03-03T08:00:00+00:00"}
        ref = []
        self.api = FailingApi(ref, [dict(self.row)])
        self.board = AdminBoard(self.api)
        ref.append(self.board)
        self.board.load()

    def test_pending_while_in_flight_then_restored(self):
        result = self.board.update_details("a1", {"eta_text": "Friday"})
        self.assertFalse(result.ok)
        self.assertEqual(self.api.seen_pending, [True])
        self.assertEqual(self.board.rows["a1"]["eta_text"], "Monday")
        self.assertFalse(self.board.is_pending("a1"))

    def test_failed_delete_restores_row(self):
        result = self.board.delete("a1")
        self.assertFalse(result.ok)
        self.assertIn("a1", self.board.rows)
        self.assertEqual(self.board.errors["a1"], "Could not update job")

    def test_begin_twice_refused(self):
        self.board.begin("a1", {"eta_text": "Tuesday"})
        with self.assertRaises(ValueError):
            self.board.begin("a1", {"eta_text": "Wednesday"})
        self.board.rollback("a1", "cancelled")
        self.assertEqual(self.board.rows["a1"]["eta_text"], "Monday")


class ExplodingApi(FailingApi):
    def update_status(self, job_id, status):
        raise RuntimeError("socket closed")


class AdminBoardUnexpectedErrorTest(SimpleTestCase):
    def test_exception_rolls_back_and_propagates(self):
        row = {"id": "a1", "job_number": "V-1", "status": "RECEIVED", "pieces_completed": 0,
               "total_pieces": 2, "progress_percentage": 0, "updated_at": "2025-03-03T08:00:00+00:00"}
        board = AdminBoard(ExplodingApi([], [row]))
        board.load()
        with self.assertRaises(RuntimeError):
            board.update_status("a1", "IN_PROGRESS")
        self.assertFalse(board.is_pending("a1"))
        self.assertEqual(board.rows["a1"]["status"], "RECEIVED")


class AdminApiClientTest(SimpleTestCase):
    def test_login_then_error_envelope_mapping(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path.endswith("/auth/login"):
                return httpx.Response(200, json={"authenticated": True},
                                      headers={"set-cookie": "admin_session=tok; Path=/; HttpOnly"})
            return httpx.Response(409, json={"error": {"code": "CONFLICT", "message": "Job number must be unique"}})

        with AdminApiClient("http://svb.test/api/v1/", transport=httpx.MockTransport(handler)) as api:
            self.assertTrue(api.login("admin", "pw").ok)
            result = api.create_job({"job_number": "V-1", "part_number": "P-1", "total_pieces": 1})

        self.assertEqual(result.code, "CONFLICT")
        self.assertEqual(result.error, "Job number must be unique")
        self.assertEqual(json.loads(seen[0].content), {"username": "admin", "password": "pw"})
        self.assertIn("admin_session=tok", seen[1].headers["cookie"])

    def test_network_error_is_a_result(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        with AdminApiClient("http://svb.test/api/v1/", transport=httpx.MockTransport(handler)) as api:
            result = api.update_status("a1", "QUOTED")
        self.assertEqual(result.code, CODE_STORE)
        self.assertFalse(result.ok)
