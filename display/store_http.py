"""
Client HTTP du store (API REST SVB):
- fetch_all  -> GET jobs/
- subscribe  -> handshake GET jobs/changes/ puis GET jobs/changes/?after=<cursor> à chaque pump
Les erreurs réseau ne sont jamais levées: elles deviennent FetchResult.error
ou un statut d'abonnement (TIMED_OUT / CHANNEL_ERROR / CLOSED).
"""
from datetime import datetime, timedelta
import logging
from typing import Optional

from django.conf import settings
from django.utils import timezone
import httpx

from .store import (
    CHANNEL_ERROR,
    CLOSED,
    SUBSCRIBED,
    TIMED_OUT,
    BaseJobStore,
    BaseSubscription,
    ChangeEvent,
    FetchResult,
)

logger = logging.getLogger(__name__)

USER_AGENT = "SVB-Display/1.0"


class HttpSubscription(BaseSubscription):
    def __init__(self, client: httpx.Client, on_change, on_status, poll_interval: timedelta) -> None:
        super().__init__(on_change, on_status)
        self._client = client
        self._poll_interval = poll_interval
        self._next_poll_at: Optional[datetime] = None
        self.cursor: Optional[int] = None

    def pump(self, now: datetime) -> None:
        if self.closed:
            return
        if self._next_poll_at is not None and now < self._next_poll_at:
            return
        self._next_poll_at = now + self._poll_interval

        params = {} if self.cursor is None else {"after": self.cursor}
        try:
            resp = self._client.get("jobs/changes/", params=params)
            resp.raise_for_status()
            body = resp.json()
        except httpx.TimeoutException:
            logger.warning("Change feed request timed out")
            self._fail(TIMED_OUT)
            return
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Change feed request failed: %s", e)
            self._fail(CHANNEL_ERROR)
            return

        if body.get("reset"):
            # curseur inconnu du serveur: l'abonné doit repartir d'un full fetch
            logger.info("Change feed cursor %s rejected, resubscribing", self.cursor)
            self._fail(CLOSED)
            return

        if self.cursor is None:
            self.cursor = body.get("cursor", 0)
            self.on_status(SUBSCRIBED)
            return

        for payload in body.get("events", []):
            if self.closed:
                return
            self.on_change(ChangeEvent.from_payload(payload))
        self.cursor = body.get("cursor", self.cursor)


class HttpJobStore(BaseJobStore):
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout_s: Optional[float] = None,
        feed_poll_interval_s: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        cfg = settings.SVB_DISPLAY
        self._client = httpx.Client(
            base_url=base_url or cfg["API_BASE_URL"],
            timeout=timeout_s if timeout_s is not None else cfg["HTTP_TIMEOUT_S"],
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            transport=transport,
        )
        poll_s = feed_poll_interval_s if feed_poll_interval_s is not None else cfg["TICK_INTERVAL_S"]
        self._feed_poll_interval = timedelta(seconds=poll_s)

    def fetch_all(self) -> FetchResult:
        try:
            resp = self._client.get("jobs/")
            resp.raise_for_status()
            rows = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Job fetch failed: %s", e)
            return FetchResult(error="Unable to load jobs right now")
        return FetchResult(jobs=list(rows), fetched_at=timezone.now())

    def subscribe(self, on_change, on_status) -> HttpSubscription:
        return HttpSubscription(self._client, on_change, on_status, self._feed_poll_interval)

    def close(self) -> None:
        self._client.close()
