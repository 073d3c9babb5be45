from datetime import datetime, timedelta, timezone as dt_timezone

from django.test import SimpleTestCase
import httpx

from display.store import CHANNEL_ERROR, CLOSED, SUBSCRIBED, TIMED_OUT
from display.store_http import HttpJobStore

T0 = datetime(2025, 3, 3, 8, 0, tzinfo=dt_timezone.utc)
BASE_URL = "http://svb.test/api/v1/"

JOB = {"id": "5f0c5b1e-64a4-4a8e-9a51-1f3f0ad1b001", "job_number": "V-1", "status": "RECEIVED"}


class FakeFeed:
    """Rejoue des réponses du change feed, une par requête."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/jobs/"):
            return httpx.Response(200, json=[JOB])
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class HttpJobStoreTest(SimpleTestCase):
    def make_store(self, handler):
        return HttpJobStore(BASE_URL, feed_poll_interval_s=1.0, transport=httpx.MockTransport(handler))

    def subscribe(self, store):
        changes, statuses = [], []
        sub = store.subscribe(changes.append, statuses.append)
        return sub, changes, statuses

    def test_fetch_all(self):
        with self.make_store(FakeFeed()) as store:
            result = store.fetch_all()
        self.assertTrue(result.ok)
        self.assertEqual(result.jobs, [JOB])

    def test_fetch_error_is_returned_not_raised(self):
        with self.make_store(lambda request: httpx.Response(503)) as store:
            result = store.fetch_all()
        self.assertEqual(result.error, "Unable to load jobs right now")
        self.assertEqual(result.jobs, [])

    def test_handshake_then_events(self):
        feed = FakeFeed(
            httpx.Response(200, json={"cursor": 7, "events": [], "reset": False}),
            httpx.Response(200, json={"cursor": 9, "reset": False, "events": [
                {"id": 8, "eventType": "UPDATE", "new": JOB, "old": None, "commit_timestamp": "x"},
                {"id": 9, "eventType": "DELETE", "new": None, "old": {"id": JOB["id"]}, "commit_timestamp": "x"},
            ]}),
        )
        with self.make_store(feed) as store:
            sub, changes, statuses = self.subscribe(store)
            sub.pump(T0)
            self.assertEqual(statuses, [SUBSCRIBED])
            self.assertEqual(sub.cursor, 7)

            # pas de requête avant l'intervalle de polling du feed
            sub.pump(T0 + timedelta(milliseconds=500))
            self.assertEqual(len(feed.requests), 1)

            sub.pump(T0 + timedelta(seconds=1))
            self.assertEqual(feed.requests[1].url.params["after"], "7")
            self.assertEqual([c.event_type for c in changes], ["UPDATE", "DELETE"])
            self.assertEqual(changes[1].job_id, JOB["id"])
            self.assertEqual(sub.cursor, 9)

    def test_timeout_reports_timed_out(self):
        feed = FakeFeed(httpx.ReadTimeout("slow"))
        with self.make_store(feed) as store:
            sub, _, statuses = self.subscribe(store)
            sub.pump(T0)
            sub.pump(T0 + timedelta(seconds=5))
        self.assertEqual(statuses, [TIMED_OUT])
        self.assertTrue(sub.closed)

    def test_server_error_reports_channel_error(self):
        feed = FakeFeed(httpx.Response(500))
        with self.make_store(feed) as store:
            sub, _, statuses = self.subscribe(store)
            sub.pump(T0)
        self.assertEqual(statuses, [CHANNEL_ERROR])

    def test_reset_reports_closed(self):
        feed = FakeFeed(
            httpx.Response(200, json={"cursor": 3, "events": [], "reset": False}),
            httpx.Response(200, json={"cursor": 0, "events": [], "reset": True}),
        )
        with self.make_store(feed) as store:
            sub, _, statuses = self.subscribe(store)
            sub.pump(T0)
            sub.pump(T0 + timedelta(seconds=1))
        self.assertEqual(statuses, [SUBSCRIBED, CLOSED])
