"""Injectable clock so "today" can be simulated without touching system time."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """Calendar source. Day boundaries are the caller's concern."""

    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        return self.now().date()

    def yesterday(self) -> date:
        return self.today() - timedelta(days=1)


class SystemClock(Clock):
    def __init__(self, tz: timezone = timezone.utc):
        self._tz = tz

    def now(self) -> datetime:
        return datetime.now(self._tz)


class FixedClock(Clock):
    """Clock pinned to a moment; `advance` moves it forward for tests."""

    def __init__(self, moment: datetime | date):
        self._moment = _to_datetime(moment)

    def now(self) -> datetime:
        return self._moment

    def set(self, moment: datetime | date) -> None:
        self._moment = _to_datetime(moment)

    def advance(self, *, days: int = 0, hours: float = 0, minutes: float = 0) -> datetime:
        self._moment = self._moment + timedelta(days=days, hours=hours, minutes=minutes)
        return self._moment


def _to_datetime(moment: datetime | date) -> datetime:
    if isinstance(moment, datetime):
        if moment.tzinfo is None:
            return moment.replace(tzinfo=timezone.utc)
        return moment
    return datetime(moment.year, moment.month, moment.day, 12, 0, tzinfo=timezone.utc)
