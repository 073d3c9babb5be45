from collections import deque
from datetime import datetime
import copy
from typing import Deque, Dict, List, Optional

from django.utils import timezone

from .store import (
    CLOSED,
    EVENT_DELETE,
    EVENT_INSERT,
    EVENT_UPDATE,
    SUBSCRIBED,
    BaseJobStore,
    BaseSubscription,
    ChangeEvent,
    FetchResult,
)


class MemorySubscription(BaseSubscription):
    def __init__(self, store: "MemoryJobStore", on_change, on_status, handshake: str) -> None:
        super().__init__(on_change, on_status)
        self._store = store
        self._handshake = handshake
        self._handshaken = False
        self._queue: Deque[ChangeEvent] = deque()

    def push(self, event: ChangeEvent) -> None:
        if not self.closed:
            self._queue.append(event)

    def drop(self, status: str = CLOSED) -> None:
        """Simule une coupure du canal (signalée au prochain pump)."""
        self._handshake = status
        self._handshaken = False

    def pump(self, now: datetime) -> None:
        if self.closed:
            return
        if not self._handshaken:
            self._handshaken = True
            if self._handshake != SUBSCRIBED:
                self._fail(self._handshake)
                return
            self.on_status(SUBSCRIBED)
        while self._queue and not self.closed:
            self.on_change(self._queue.popleft())

    def close(self) -> None:
        super().close()
        self._queue.clear()
        self._store._forget(self)


class MemoryJobStore(BaseJobStore):
    """
    Store en mémoire (mock):
    - insert/update/delete poussent un ChangeEvent vers chaque abonnement ouvert
    - fail_fetch / subscribe_status permettent de simuler les pannes
    """

    def __init__(self, rows: Optional[List[dict]] = None) -> None:
        self.rows: Dict[str, dict] = {}
        for row in rows or []:
            self.rows[str(row["id"])] = dict(row)
        self.fail_fetch: Optional[str] = None
        self.subscribe_status: str = SUBSCRIBED
        self.fetch_count = 0
        self.subscribe_count = 0
        self.subscriptions: List[MemorySubscription] = []
        self.closed = False

    def fetch_all(self) -> FetchResult:
        self.fetch_count += 1
        if self.fail_fetch:
            return FetchResult(error=self.fail_fetch)
        return FetchResult(jobs=copy.deepcopy(list(self.rows.values())), fetched_at=timezone.now())

    def subscribe(self, on_change, on_status) -> MemorySubscription:
        self.subscribe_count += 1
        sub = MemorySubscription(self, on_change, on_status, handshake=self.subscribe_status)
        self.subscriptions.append(sub)
        return sub

    def insert(self, row: dict) -> None:
        row = dict(row)
        self.rows[str(row["id"])] = row
        self._publish(ChangeEvent(EVENT_INSERT, new=copy.deepcopy(row)))

    def update(self, row: dict) -> None:
        row = dict(row)
        self.rows[str(row["id"])] = row
        self._publish(ChangeEvent(EVENT_UPDATE, new=copy.deepcopy(row)))

    def delete(self, job_id) -> None:
        self.rows.pop(str(job_id), None)
        self._publish(ChangeEvent(EVENT_DELETE, old={"id": str(job_id)}))

    def drop_subscriptions(self, status: str = CLOSED) -> None:
        for sub in list(self.subscriptions):
            sub.drop(status)

    def close(self) -> None:
        for sub in list(self.subscriptions):
            sub.close()
        self.closed = True

    def _publish(self, event: ChangeEvent) -> None:
        for sub in list(self.subscriptions):
            sub.push(event)

    def _forget(self, sub: MemorySubscription) -> None:
        if sub in self.subscriptions:
            self.subscriptions.remove(sub)
