"""Local-first time tracker: a timer engine over a durable SQLite store."""

from .engine import TrackingEngine
from .errors import (
    InvalidTransition,
    MultipleOpenEntries,
    PersistenceError,
    TrackingError,
)
from .models import PauseInterval, TimeEntry, TimerState, TimerStatus

__version__ = "0.1.0"

__all__ = [
    "InvalidTransition",
    "MultipleOpenEntries",
    "PauseInterval",
    "PersistenceError",
    "TimeEntry",
    "TimerState",
    "TimerStatus",
    "TrackingEngine",
    "TrackingError",
]
