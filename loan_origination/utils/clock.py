"""Injectable clocks so lifecycle timestamps are deterministic under test"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock that only moves when told to"""

    def __init__(self, start: datetime):
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, **delta) -> datetime:
        """Move forward by timedelta keyword arguments, e.g. advance(days=8)"""
        self._now = self._now + timedelta(**delta)
        return self._now
