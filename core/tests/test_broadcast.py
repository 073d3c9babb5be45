from django.dispatch import Signal
from django.test import SimpleTestCase

from core.broadcast import BroadcastChannel, publish_job_updated


class BroadcastChannelTest(SimpleTestCase):
    def setUp(self):
        self.signal = Signal()

    def test_sender_does_not_receive_own_message(self):
        received_a, received_b = [], []
        a = BroadcastChannel("svb-jobs-updates", signal=self.signal)
        b = BroadcastChannel("svb-jobs-updates", signal=self.signal)
        a.add_listener(received_a.append)
        b.add_listener(received_b.append)

        self.assertEqual(a.post_message({"type": "job-updated"}), 1)
        self.assertEqual(received_a, [])
        self.assertEqual(received_b, [{"type": "job-updated"}])

    def test_channels_are_scoped_by_name(self):
        received = []
        other = BroadcastChannel("other", signal=self.signal)
        other.add_listener(received.append)
        self.assertEqual(publish_job_updated(signal=self.signal), 0)
        self.assertEqual(received, [])

    def test_closed_channel(self):
        received = []
        listener = BroadcastChannel("svb-jobs-updates", signal=self.signal)
        listener.add_listener(received.append)
        listener.close()
        self.assertFalse(self.signal.has_listeners())
        publish_job_updated(signal=self.signal)
        self.assertEqual(received, [])
        with self.assertRaises(RuntimeError):
            listener.post_message({"type": "job-updated"})

    def test_failing_listener_does_not_break_sender(self):
        received = []
        failing = BroadcastChannel("svb-jobs-updates", signal=self.signal)
        healthy = BroadcastChannel("svb-jobs-updates", signal=self.signal)

        def boom(_message):
            raise ValueError("boom")

        failing.add_listener(boom)
        healthy.add_listener(received.append)
        with self.assertLogs("core.broadcast", level="ERROR"):
            delivered = publish_job_updated(signal=self.signal)
        self.assertEqual(delivered, 1)
        self.assertEqual(received, [{"type": "job-updated"}])
        failing.close()
        healthy.close()

    def test_default_signal_is_shared(self):
        received = []
        with BroadcastChannel("svb-jobs-updates") as listener:
            listener.add_listener(received.append)
            self.assertEqual(publish_job_updated(), 1)
        self.assertEqual(received, [{"type": "job-updated"}])
