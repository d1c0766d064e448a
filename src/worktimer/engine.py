"""The tracking engine: serialized timer commands over a durable store."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from . import state_machine
from .clock import Clock, SystemClock
from .config import RecoveryPolicy, TrackerSettings
from .errors import InvalidLabel, InvalidTransition, PersistenceError
from .models import ZERO, TimeEntry, TimerState
from .notifications import NotificationChannel, StateChange, Subscription
from .state_machine import Snapshot, Transition, Write, WriteKind
from .store import TrackerStore

logger = logging.getLogger(__name__)


def new_entry_id() -> str:
    return uuid.uuid4().hex


def _clean_label(label: str) -> str:
    cleaned = (label or "").strip()
    if not cleaned:
        raise InvalidLabel("activity label must not be empty")
    return cleaned


class TrackingEngine:
    """Starts, pauses, resumes, switches and stops timed activities.

    Mutating commands hold one lock from validation until the notification is
    published, so a second command waits while a write is in flight. The
    in-memory snapshot is swapped only after the store acknowledged every
    write. Reads never take the lock; they see one immutable snapshot.
    """

    def __init__(
        self,
        store: TrackerStore,
        *,
        clock: Optional[Clock] = None,
        channel: Optional[NotificationChannel] = None,
        settings: Optional[TrackerSettings] = None,
        id_factory: Callable[[], str] = new_entry_id,
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._channel = channel or NotificationChannel()
        self._settings = settings or TrackerSettings()
        self._id_factory = id_factory
        self._snapshot = Snapshot()
        self._sequence = 0
        self._command_lock = threading.Lock()
        self._clock_lock = threading.Lock()
        self._high_water: Optional[datetime] = None

    @property
    def store(self) -> TrackerStore:
        return self._store

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def channel(self) -> NotificationChannel:
        return self._channel

    @property
    def settings(self) -> TrackerSettings:
        return self._settings

    # Queries

    def current_status(self) -> TimerState:
        return self._snapshot.state

    def current_entry(self) -> Optional[TimeEntry]:
        return self._snapshot.entry

    def snapshot(self) -> Snapshot:
        return self._snapshot

    def now(self) -> datetime:
        """Wall-clock time that never runs backwards within this engine."""
        now = self._clock.now()
        with self._clock_lock:
            if self._high_water is not None and now < self._high_water:
                return self._high_water
            self._high_water = now
        return now

    def elapsed(self) -> timedelta:
        """Tracked time of the live entry so far; zero while idle."""
        entry = self._snapshot.entry
        if entry is None:
            return ZERO
        return entry.elapsed_duration(max(self.now(), entry.latest_timestamp))

    def subscribe(self, *, replay_latest: bool = True) -> Subscription:
        return self._channel.subscribe(replay_latest=replay_latest)

    # Commands

    def start(self, label: str, project_id: Optional[int] = None) -> str:
        label = _clean_label(label)
        with self._command_lock:
            transition = state_machine.start(
                self._snapshot,
                self.now(),
                entry_id=self._id_factory(),
                label=label,
                project_id=project_id,
            )
            self._commit(transition)
        return transition.live_entry.id

    def pause(self) -> None:
        with self._command_lock:
            self._commit(state_machine.pause(self._snapshot, self.now()))

    def resume(self) -> None:
        with self._command_lock:
            self._commit(state_machine.resume(self._snapshot, self.now()))

    def stop(self) -> TimeEntry:
        with self._command_lock:
            transition = state_machine.stop(self._snapshot, self.now())
            self._commit(transition)
        return transition.finished_entry

    def switch(self, label: str, project_id: Optional[int] = None) -> str:
        label = _clean_label(label)
        with self._command_lock:
            transition = state_machine.switch(
                self._snapshot,
                self.now(),
                entry_id=self._id_factory(),
                label=label,
                project_id=project_id,
            )
            self._commit(transition)
        return transition.live_entry.id

    def continue_entry(self, entry_id: str) -> str:
        """Track a stored entry's activity again as a new entry."""
        with self._command_lock:
            source = self._store.get(entry_id)
            kwargs = dict(
                entry_id=self._id_factory(),
                label=source.activity_label,
                project_id=source.project_id,
            )
            if self._snapshot.state.is_idle:
                transition = state_machine.start(self._snapshot, self.now(), **kwargs)
            else:
                transition = state_machine.switch(self._snapshot, self.now(), **kwargs)
            self._commit(transition)
        return transition.live_entry.id

    def delete_entry(self, entry_id: str) -> None:
        with self._command_lock:
            live = self._snapshot.entry
            if live is not None and live.id == entry_id:
                raise InvalidTransition("delete", self._snapshot.state, "the entry is still being tracked")
            self._store.delete(entry_id)
        logger.info("Deleted entry %s", entry_id)

    def delete_project(self, project_id: int) -> None:
        """Delete a project; refused while the live entry belongs to it."""
        with self._command_lock:
            live = self._snapshot.entry
            if live is not None and live.project_id == project_id:
                raise InvalidTransition(
                    "delete project", self._snapshot.state, "the live entry belongs to it"
                )
            self._store.delete_project(project_id)
        logger.info("Deleted project %s", project_id)

    def recover(self) -> Optional[TimeEntry]:
        """Adopt the entry a previous process left open, if any.

        Call once at startup. :class:`MultipleOpenEntries` propagates and
        means the store needs manual repair before the tracker can run.
        """
        with self._command_lock:
            if not self._snapshot.state.is_idle:
                raise InvalidTransition("recover", self._snapshot.state)
            entry = self._store.find_open_entry()
            if entry is None:
                logger.info("No open entry to recover; timer is idle.")
                return None
            transition = state_machine.recover(
                self._snapshot,
                entry,
                self.now(),
                restore_pause=self._settings.recovery_policy is RecoveryPolicy.RESTORE_PAUSE,
            )
            self._commit(transition)
        logger.info(
            "Recovered open entry %s (%r) as %s",
            entry.id,
            entry.activity_label,
            transition.after.state.status.value,
        )
        return transition.after.entry

    # Internals

    def _commit(self, transition: Transition) -> None:
        self._persist(transition.writes)
        self._snapshot = transition.after
        self._sequence += 1
        self._channel.publish(
            StateChange(
                sequence=self._sequence,
                state=transition.after.state,
                entry=transition.after.entry,
                finalized=transition.finalized,
            )
        )
        logger.info(
            "%s: %s -> %s",
            transition.command.value,
            transition.before.state,
            transition.after.state,
        )

    def _persist(self, writes: tuple[Write, ...]) -> None:
        done: list[Write] = []
        for write in writes:
            started = self._clock.monotonic()
            try:
                self._apply(write)
            except PersistenceError:
                self._undo(done)
                raise
            except Exception as exc:
                self._undo(done)
                raise PersistenceError(
                    f"Failed to {write.kind.value} entry {write.entry.id}: {exc}"
                ) from exc
            done.append(write)
            logger.debug(
                "%s of entry %s acknowledged in %.1f ms",
                write.kind.value,
                write.entry.id,
                (self._clock.monotonic() - started) * 1000,
            )

    def _apply(self, write: Write) -> None:
        if write.kind is WriteKind.APPEND:
            self._store.append(write.entry)
        else:
            self._store.update(write.entry)

    def _undo(self, done: list[Write]) -> None:
        for write in reversed(done):
            try:
                if write.kind is WriteKind.APPEND:
                    self._store.delete(write.entry.id)
                elif write.previous is not None:
                    self._store.update(write.previous)
                logger.warning("Rolled back %s of entry %s", write.kind.value, write.entry.id)
            except Exception:
                logger.exception(
                    "Could not roll back %s of entry %s; the store may be ahead of the timer",
                    write.kind.value,
                    write.entry.id,
                )
