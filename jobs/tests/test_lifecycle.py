from datetime import timedelta

from django.test import SimpleTestCase
from django.utils import timezone

from jobs.services.lifecycle import (
    calculate_percentage,
    get_status_rank,
    is_forward_status_transition,
    should_hide_completed_job,
)


class PercentageTest(SimpleTestCase):
    def test_bounds_and_rounding(self):
        self.assertEqual(calculate_percentage(0, 10), 0)
        self.assertEqual(calculate_percentage(10, 10), 100)
        self.assertEqual(calculate_percentage(3, 10), 30)
        self.assertEqual(calculate_percentage(1, 8), 13)  # 12.5 -> 13
        self.assertEqual(calculate_percentage(1, 3), 33)

    def test_zero_total_is_zero(self):
        for completed in (0, 5, 100):
            self.assertEqual(calculate_percentage(completed, 0), 0)

    def test_clamped(self):
        self.assertEqual(calculate_percentage(15, 10), 100)
        self.assertEqual(calculate_percentage(-3, 10), 0)


class TransitionTest(SimpleTestCase):
    def test_forward_and_skip_allowed(self):
        self.assertTrue(is_forward_status_transition("RECEIVED", "COMPLETED"))
        self.assertTrue(is_forward_status_transition("RECEIVED", "QUOTED"))
        self.assertTrue(is_forward_status_transition("QUOTED", "QUOTED"))

    def test_backward_rejected(self):
        self.assertFalse(is_forward_status_transition("IN_PROGRESS", "RECEIVED"))
        self.assertFalse(is_forward_status_transition("COMPLETED", "IN_PROGRESS"))

    def test_paused_branch(self):
        self.assertTrue(is_forward_status_transition("IN_PROGRESS", "PAUSED"))
        self.assertTrue(is_forward_status_transition("PAUSED", "IN_PROGRESS"))
        self.assertTrue(is_forward_status_transition("PAUSED", "COMPLETED"))
        self.assertFalse(is_forward_status_transition("PAUSED", "QUOTED"))

    def test_unknown_status_rejected(self):
        self.assertFalse(is_forward_status_transition("RECEIVED", "SHIPPED"))

    def test_display_rank(self):
        self.assertLess(get_status_rank("IN_PROGRESS"), get_status_rank("QUOTED"))
        self.assertLess(get_status_rank("QUOTED"), get_status_rank("RECEIVED"))
        self.assertEqual(get_status_rank("SHIPPED"), 5)


class StaleCompletedTest(SimpleTestCase):
    def test_eight_days_hidden_six_days_kept(self):
        now = timezone.now()
        old = {"status": "COMPLETED", "updated_at": (now - timedelta(days=8)).isoformat()}
        recent = {"status": "COMPLETED", "updated_at": (now - timedelta(days=6)).isoformat()}
        self.assertTrue(should_hide_completed_job(old, now))
        self.assertFalse(should_hide_completed_job(recent, now))

    def test_only_completed_hidden(self):
        now = timezone.now()
        job = {"status": "IN_PROGRESS", "updated_at": (now - timedelta(days=30)).isoformat()}
        self.assertFalse(should_hide_completed_job(job, now))
