"""Pure timer transitions.

Each function takes the current :class:`Snapshot` and returns a
:class:`Transition` describing the next snapshot and the persistence writes
needed to reach it, or raises :class:`InvalidTransition`. Nothing here
touches storage or the clock.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .errors import InvalidTransition
from .models import TimeEntry, TimerState, TimerStatus


class Command(str, Enum):
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"
    SWITCH = "switch"
    RECOVER = "recover"


_IDLE = frozenset({TimerStatus.IDLE})
_ACTIVE = frozenset({TimerStatus.RUNNING, TimerStatus.PAUSED})

ALLOWED: dict[Command, frozenset[TimerStatus]] = {
    Command.START: _IDLE,
    Command.PAUSE: frozenset({TimerStatus.RUNNING}),
    Command.RESUME: frozenset({TimerStatus.PAUSED}),
    Command.STOP: _ACTIVE,
    Command.SWITCH: _ACTIVE,
    Command.RECOVER: _IDLE,
}


class WriteKind(str, Enum):
    APPEND = "append"
    UPDATE = "update"


@dataclass(frozen=True, slots=True)
class Write:
    kind: WriteKind
    entry: TimeEntry
    # Version of the entry before this write, used to undo an update.
    previous: Optional[TimeEntry] = None


@dataclass(frozen=True, slots=True)
class Snapshot:
    """The timer state together with the live entry it refers to."""

    state: TimerState = field(default_factory=TimerState.idle)
    entry: Optional[TimeEntry] = None

    def __post_init__(self) -> None:
        live_id = self.entry.id if self.entry is not None else None
        if self.state.entry_id != live_id:
            raise ValueError(f"Snapshot state {self.state} does not match entry {live_id!r}")


@dataclass(frozen=True, slots=True)
class Transition:
    command: Command
    before: Snapshot
    after: Snapshot
    writes: tuple[Write, ...] = ()
    finalized: Optional[TimeEntry] = None

    @property
    def live_entry(self) -> TimeEntry:
        if self.after.entry is None:
            raise InvalidTransition(self.command.value, self.after.state, "no entry is live")
        return self.after.entry

    @property
    def finished_entry(self) -> TimeEntry:
        if self.finalized is None:
            raise InvalidTransition(self.command.value, self.before.state, "no entry was finalized")
        return self.finalized


def allowed_commands(state: TimerState) -> list[Command]:
    """Commands a front end may offer in ``state``, in declaration order."""
    return [command for command, sources in ALLOWED.items()
            if state.status in sources and command is not Command.RECOVER]


def _require(snapshot: Snapshot, command: Command) -> None:
    if snapshot.state.status not in ALLOWED[command]:
        raise InvalidTransition(command.value, snapshot.state)


def _require_live(snapshot: Snapshot, command: Command) -> TimeEntry:
    _require(snapshot, command)
    if snapshot.entry is None:
        raise InvalidTransition(command.value, snapshot.state, "no entry is live")
    return snapshot.entry


def _clamp(entry: TimeEntry, at: datetime) -> datetime:
    # A wall clock stepping backwards must not reorder recorded instants.
    return max(at, entry.latest_timestamp)


def start(
    snapshot: Snapshot,
    at: datetime,
    *,
    entry_id: str,
    label: str,
    project_id: Optional[int] = None,
) -> Transition:
    _require(snapshot, Command.START)
    entry = TimeEntry(
        id=entry_id,
        activity_label=label,
        started_at=at,
        project_id=project_id,
    )
    return Transition(
        command=Command.START,
        before=snapshot,
        after=Snapshot(TimerState.running(entry.id), entry),
        writes=(Write(WriteKind.APPEND, entry),),
    )


def pause(snapshot: Snapshot, at: datetime) -> Transition:
    current = _require_live(snapshot, Command.PAUSE)
    updated = current.with_pause_started(_clamp(current, at))
    return Transition(
        command=Command.PAUSE,
        before=snapshot,
        after=Snapshot(TimerState.paused(updated.id), updated),
        writes=(Write(WriteKind.UPDATE, updated, previous=current),),
    )


def resume(snapshot: Snapshot, at: datetime) -> Transition:
    current = _require_live(snapshot, Command.RESUME)
    updated = current.with_pause_closed(_clamp(current, at))
    return Transition(
        command=Command.RESUME,
        before=snapshot,
        after=Snapshot(TimerState.running(updated.id), updated),
        writes=(Write(WriteKind.UPDATE, updated, previous=current),),
    )


def stop(snapshot: Snapshot, at: datetime) -> Transition:
    current = _require_live(snapshot, Command.STOP)
    finished = current.finalized(_clamp(current, at))
    return Transition(
        command=Command.STOP,
        before=snapshot,
        after=Snapshot(),
        writes=(Write(WriteKind.UPDATE, finished, previous=current),),
        finalized=finished,
    )


def switch(
    snapshot: Snapshot,
    at: datetime,
    *,
    entry_id: str,
    label: str,
    project_id: Optional[int] = None,
) -> Transition:
    """Finalize the live entry and start a new one as a single transition."""
    current = _require_live(snapshot, Command.SWITCH)
    boundary = _clamp(current, at)
    finished = current.finalized(boundary)
    entry = TimeEntry(
        id=entry_id,
        activity_label=label,
        started_at=boundary,
        project_id=project_id,
    )
    return Transition(
        command=Command.SWITCH,
        before=snapshot,
        after=Snapshot(TimerState.running(entry.id), entry),
        writes=(
            Write(WriteKind.UPDATE, finished, previous=current),
            Write(WriteKind.APPEND, entry),
        ),
        finalized=finished,
    )


def recover(
    snapshot: Snapshot,
    entry: TimeEntry,
    at: datetime,
    *,
    restore_pause: bool = False,
) -> Transition:
    """Adopt a durably stored open entry as the live one.

    Without ``restore_pause`` the timer always comes back ``Running``; a pause
    left open by the previous process is closed at ``at``.
    """
    _require(snapshot, Command.RECOVER)
    if not entry.is_open:
        raise InvalidTransition(Command.RECOVER.value, snapshot.state, f"entry {entry.id} is closed")
    if entry.is_paused and restore_pause:
        return Transition(
            command=Command.RECOVER,
            before=snapshot,
            after=Snapshot(TimerState.paused(entry.id), entry),
        )
    if entry.is_paused:
        updated = entry.with_pause_closed(_clamp(entry, at))
        return Transition(
            command=Command.RECOVER,
            before=snapshot,
            after=Snapshot(TimerState.running(updated.id), updated),
            writes=(Write(WriteKind.UPDATE, updated, previous=entry),),
        )
    return Transition(
        command=Command.RECOVER,
        before=snapshot,
        after=Snapshot(TimerState.running(entry.id), entry),
    )
