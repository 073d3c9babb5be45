"""
Contrat store-agnostic consommé par le synchroniseur TV et le board admin.
Deux implémentations: HttpJobStore (API REST + change feed) et MemoryJobStore (tests, démo).
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from django.utils import timezone

EVENT_INSERT = "INSERT"
EVENT_UPDATE = "UPDATE"
EVENT_DELETE = "DELETE"

# Statuts d'abonnement au change feed
SUBSCRIBED = "SUBSCRIBED"
TIMED_OUT = "TIMED_OUT"
CHANNEL_ERROR = "CHANNEL_ERROR"
CLOSED = "CLOSED"
FAILURE_STATUSES = (TIMED_OUT, CHANNEL_ERROR, CLOSED)


@dataclass
class ChangeEvent:
    event_type: str  # INSERT | UPDATE | DELETE
    new: Optional[dict] = None
    old: Optional[dict] = None
    cursor: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "ChangeEvent":
        return cls(
            event_type=payload.get("eventType"),
            new=payload.get("new"),
            old=payload.get("old"),
            cursor=payload.get("id"),
        )

    @property
    def job_id(self) -> Optional[str]:
        row = self.old if self.event_type == EVENT_DELETE else self.new
        if not row or row.get("id") is None:
            return None
        return str(row["id"])


@dataclass
class FetchResult:
    jobs: List[dict] = field(default_factory=list)
    error: Optional[str] = None
    fetched_at: datetime = field(default_factory=timezone.now)

    @property
    def ok(self) -> bool:
        return self.error is None


ChangeHandler = Callable[[ChangeEvent], None]
StatusHandler = Callable[[str], None]


class BaseSubscription:
    """
    Abonnement au change feed, piloté par le tick du synchroniseur:
    pump(now) livre les statuts et événements en attente via les callbacks.
    Un abonnement en échec ne livre plus rien: il faut en ouvrir un nouveau.
    """

    def __init__(self, on_change: ChangeHandler, on_status: StatusHandler) -> None:
        self.on_change = on_change
        self.on_status = on_status
        self.closed = False

    def pump(self, now: datetime) -> None:
        raise NotImplementedError

    def close(self) -> None:
        self.closed = True

    def _fail(self, status: str) -> None:
        if self.closed:
            return
        self.closed = True
        self.on_status(status)


class BaseJobStore:
    def fetch_all(self) -> FetchResult:
        raise NotImplementedError

    def subscribe(self, on_change: ChangeHandler, on_status: StatusHandler) -> BaseSubscription:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()
