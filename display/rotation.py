from datetime import datetime, timedelta
from typing import Optional

ROTATING = "rotating"
PAUSED = "paused"


class RotationClock:
    """
    Horloge de rotation des pages TV, pilotée par le tick:
    - un créneau tous les `interval`; le créneau est perdu s'il tombe pendant une pause
    - pause(now) repousse la reprise à now + `pause` (jamais raccourcie)
    """

    def __init__(self, interval: timedelta, pause: timedelta) -> None:
        self.interval = interval
        self.pause_duration = pause
        self.paused_until: Optional[datetime] = None
        self.next_advance_at: Optional[datetime] = None

    def start(self, now: datetime) -> None:
        self.next_advance_at = now + self.interval

    def stop(self) -> None:
        self.next_advance_at = None
        self.paused_until = None

    @property
    def running(self) -> bool:
        return self.next_advance_at is not None

    def is_paused(self, now: datetime) -> bool:
        return self.paused_until is not None and now < self.paused_until

    def state(self, now: datetime) -> str:
        if self.is_paused(now):
            return f"{PAUSED}-until:{self.paused_until.isoformat()}"
        return ROTATING

    def pause(self, now: datetime, duration: Optional[timedelta] = None) -> None:
        until = now + (duration if duration is not None else self.pause_duration)
        if self.paused_until is None or until > self.paused_until:
            self.paused_until = until

    def should_advance(self, now: datetime) -> bool:
        if self.next_advance_at is None or now < self.next_advance_at:
            return False
        # créneaux manqués (tick en retard): un seul avancement
        while self.next_advance_at <= now:
            self.next_advance_at += self.interval
        if self.is_paused(now):
            return False
        self.paused_until = None
        return True
