"""Domain models for tracked time."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from .errors import InvalidLabel


ZERO = timedelta(0)


@dataclass(frozen=True, slots=True)
class PauseInterval:
    """A span inside an entry during which no time accrues."""

    started_at: datetime
    ended_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def duration(self, now: datetime) -> timedelta:
        end = self.ended_at if self.ended_at is not None else now
        return max(end - self.started_at, ZERO)


@dataclass(frozen=True, slots=True)
class TimeEntry:
    """A completed or in-progress span of tracked work.

    Entries are immutable values; every transition produces a new entry via
    :meth:`with_pause_started`, :meth:`with_pause_closed` or
    :meth:`finalized`.
    """

    id: str
    activity_label: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    paused_intervals: tuple[PauseInterval, ...] = ()
    project_id: Optional[int] = None

    def __post_init__(self) -> None:
        if not isinstance(self.paused_intervals, tuple):
            object.__setattr__(self, "paused_intervals", tuple(self.paused_intervals))
        if not self.activity_label or not self.activity_label.strip():
            raise InvalidLabel("activity_label must not be empty")
        self._check_aware()
        self._check_bounds()

    def _check_aware(self) -> None:
        stamps = [self.started_at, self.ended_at]
        for pause in self.paused_intervals:
            stamps.extend((pause.started_at, pause.ended_at))
        if any(stamp is not None and stamp.tzinfo is None for stamp in stamps):
            raise ValueError(f"Entry {self.id} has a naive timestamp; use timezone-aware datetimes")

    def _check_bounds(self) -> None:
        if self.ended_at is not None and self.ended_at < self.started_at:
            raise ValueError(f"Entry {self.id} ends before it starts")
        cursor = self.started_at
        last_index = len(self.paused_intervals) - 1
        for index, pause in enumerate(self.paused_intervals):
            if pause.started_at < cursor:
                raise ValueError(f"Entry {self.id} has overlapping or unordered pauses")
            if pause.ended_at is None:
                if index != last_index or self.ended_at is not None:
                    raise ValueError(f"Entry {self.id} has an open pause that is not the last one")
                continue
            if pause.ended_at < pause.started_at:
                raise ValueError(f"Entry {self.id} has a pause ending before it starts")
            cursor = pause.ended_at
        if self.ended_at is not None and cursor > self.ended_at:
            raise ValueError(f"Entry {self.id} has a pause extending past its end")

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    @property
    def open_pause(self) -> Optional[PauseInterval]:
        if self.paused_intervals and self.paused_intervals[-1].is_open:
            return self.paused_intervals[-1]
        return None

    @property
    def is_paused(self) -> bool:
        return self.open_pause is not None

    @property
    def latest_timestamp(self) -> datetime:
        """The most recent instant recorded anywhere on the entry."""
        latest = self.started_at
        for pause in self.paused_intervals:
            latest = max(latest, pause.ended_at or pause.started_at)
        if self.ended_at is not None:
            latest = max(latest, self.ended_at)
        return latest

    def paused_duration(self, now: datetime) -> timedelta:
        end = self.ended_at if self.ended_at is not None else now
        total = ZERO
        for pause in self.paused_intervals:
            total += pause.duration(end)
        return total

    def elapsed_duration(self, now: datetime) -> timedelta:
        """Tracked time, excluding pauses, measured to ``ended_at`` or ``now``."""
        end = self.ended_at if self.ended_at is not None else now
        return max(end - self.started_at - self.paused_duration(end), ZERO)

    def with_pause_started(self, at: datetime) -> "TimeEntry":
        return replace(self, paused_intervals=self.paused_intervals + (PauseInterval(at),))

    def with_pause_closed(self, at: datetime) -> "TimeEntry":
        pause = self.open_pause
        if pause is None:
            return self
        closed = replace(pause, ended_at=at)
        return replace(self, paused_intervals=self.paused_intervals[:-1] + (closed,))

    def finalized(self, at: datetime) -> "TimeEntry":
        return replace(self.with_pause_closed(at), ended_at=at)


@dataclass(frozen=True, slots=True)
class Project:
    id: int
    name: str
    color: str
    created_at: datetime


class TimerStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


@dataclass(frozen=True, slots=True)
class TimerState:
    """The process-wide timer state: Idle, Running(entry_id) or Paused(entry_id)."""

    status: TimerStatus = TimerStatus.IDLE
    entry_id: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.status is TimerStatus.IDLE) != (self.entry_id is None):
            raise ValueError(f"{self.status.value} state with entry_id={self.entry_id!r}")

    @classmethod
    def idle(cls) -> "TimerState":
        return cls()

    @classmethod
    def running(cls, entry_id: str) -> "TimerState":
        return cls(TimerStatus.RUNNING, entry_id)

    @classmethod
    def paused(cls, entry_id: str) -> "TimerState":
        return cls(TimerStatus.PAUSED, entry_id)

    @property
    def is_idle(self) -> bool:
        return self.status is TimerStatus.IDLE

    def __str__(self) -> str:
        name = self.status.value.capitalize()
        if self.entry_id is None:
            return name
        return f"{name}({self.entry_id})"
