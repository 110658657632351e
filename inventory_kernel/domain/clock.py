"""
Clock -- injectable source of the current time.

Responsibility:
    Services and selectors never call ``datetime.now()`` directly.  Movement
    timestamps, alert cooldowns and the report's days-in-stock figure all
    read time through a Clock instance.

Architecture position:
    Kernel > Domain -- pure functional core.  SystemClock is the one
    sanctioned I/O boundary for time.

Invariants enforced:
    - ``now()`` is always timezone-aware UTC, so values compare cleanly with
      timestamps read back through ``UTCDateTime`` columns.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""


class SystemClock(Clock):
    """Production clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock that only moves when told to.

    ``now()`` returns the same instant on every call until ``advance()``.
    Cooldown windows are exercised by advancing past them, e.g.
    ``clock.advance(3600)``.
    """

    def __init__(self, start: datetime | None = None):
        start = start or DEFAULT_TEST_TIME
        if start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start time")
        self._current = start.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 1) -> datetime:
        """Move forward by ``seconds`` and return the new time."""
        if seconds < 0:
            raise ValueError("DeterministicClock cannot move backwards")
        self._current += timedelta(seconds=seconds)
        return self._current
