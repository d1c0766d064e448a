"""Outbound state-change notifications.

The engine publishes one :class:`StateChange` per transition. Each subscriber
owns an unbounded queue, so publishing never waits on a slow consumer. A GUI
would typically call :meth:`Subscription.drain` from a main-loop timer.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Iterator, Optional

from .models import TimeEntry, TimerState

logger = logging.getLogger(__name__)

_CLOSED = object()


@dataclass(frozen=True, slots=True)
class StateChange:
    """A timer transition as seen from outside the engine.

    ``sequence`` increases by one per transition; consumers use it to drop
    duplicate deliveries.
    """

    sequence: int
    state: TimerState
    entry: Optional[TimeEntry] = None
    finalized: Optional[TimeEntry] = None


class Subscription:
    def __init__(self, channel: "NotificationChannel") -> None:
        self._channel = channel
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def get(self, timeout: Optional[float] = None) -> Optional[StateChange]:
        """Wait for the next change; ``None`` on timeout or once closed."""
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            # Leave the marker for any other waiter.
            self._queue.put(_CLOSED)
            return None
        return item  # type: ignore[return-value]

    def drain(self) -> list[StateChange]:
        """Return every pending change without blocking."""
        changes: list[StateChange] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return changes
            if item is _CLOSED:
                self._queue.put(_CLOSED)
                return changes
            changes.append(item)  # type: ignore[arg-type]

    def __iter__(self) -> Iterator[StateChange]:
        while True:
            change = self.get()
            if change is None:
                return
            yield change

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self._channel._remove(self)
        self._queue.put(_CLOSED)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _deliver(self, change: StateChange) -> None:
        if not self._closed.is_set():
            self._queue.put_nowait(change)


class NotificationChannel:
    """Fan-out of state changes to any number of subscribers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[Subscription] = []
        self._latest: Optional[StateChange] = None

    @property
    def latest(self) -> Optional[StateChange]:
        return self._latest

    def subscribe(self, *, replay_latest: bool = True) -> Subscription:
        """Register a new subscriber.

        With ``replay_latest`` the most recent change is delivered first, so a
        UI that subscribes late still learns the current state.
        """
        subscription = Subscription(self)
        with self._lock:
            self._subscribers.append(subscription)
            if replay_latest and self._latest is not None:
                subscription._deliver(self._latest)
        return subscription

    def publish(self, change: StateChange) -> None:
        with self._lock:
            self._latest = change
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            subscription._deliver(change)
        logger.debug(
            "Published change #%d (%s) to %d subscriber(s)",
            change.sequence,
            change.state,
            len(subscribers),
        )

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)
