"""Time sources for the tracking engine.

The engine never calls ``datetime.now()`` or ``time.monotonic()`` directly so
tests can drive it with :class:`ManualClock`.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current wall-clock time as an aware UTC datetime."""
        ...

    def monotonic(self) -> float:
        """Return monotonic seconds, only meaningful as a difference."""
        ...


class SystemClock:
    """Production clock backed by the operating system."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()


class ManualClock:
    """Clock that only moves when told to.

    Example::

        clock = ManualClock()
        engine = TrackingEngine(MemoryEntryStore(), clock=clock)
        engine.start("Write report")
        clock.advance(seconds=90)
        assert engine.elapsed() == timedelta(seconds=90)
    """

    DEFAULT_START = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

    def __init__(self, start: datetime | None = None) -> None:
        start = start or self.DEFAULT_START
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._now = start
        self._mono = 0.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._mono

    def advance(self, seconds: float = 0.0, **kwargs: float) -> datetime:
        """Move both clocks forward by ``timedelta(seconds=..., **kwargs)``."""
        delta = timedelta(seconds=seconds, **kwargs)
        if delta < timedelta(0):
            raise ValueError("ManualClock.advance() only moves forward; use set() to step back")
        self._now += delta
        self._mono += delta.total_seconds()
        return self._now

    def set(self, value: datetime) -> None:
        """Jump the wall clock, leaving the monotonic clock untouched."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        self._now = value
