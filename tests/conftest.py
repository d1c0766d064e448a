from datetime import datetime, timezone

import pytest

from worktimer.clock import ManualClock
from worktimer.engine import TrackingEngine
from worktimer.errors import PersistenceError
from worktimer.notifications import NotificationChannel
from worktimer.store import MemoryEntryStore

T0 = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


class FlakyStore(MemoryEntryStore):
    """Memory store whose appends or updates can be made to fail on demand."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_on: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    def append(self, entry):
        self.calls.append(("append", entry.id))
        if "append" in self.fail_on:
            raise PersistenceError("disk full")
        super().append(entry)

    def update(self, entry):
        self.calls.append(("update", entry.id))
        if "update" in self.fail_on:
            raise PersistenceError("disk full")
        super().update(entry)


@pytest.fixture
def clock():
    return ManualClock(T0)


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def channel():
    return NotificationChannel()


@pytest.fixture
def engine(store, clock, channel):
    counter = iter(range(1, 1000))
    return TrackingEngine(
        store,
        clock=clock,
        channel=channel,
        id_factory=lambda: f"entry-{next(counter)}",
    )
