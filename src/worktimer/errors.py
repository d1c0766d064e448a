"""Exceptions raised by the tracking engine and its stores."""

from __future__ import annotations

from typing import Iterable, Optional


class TrackingError(Exception):
    """Base class for every error the tracker reports to its callers."""


class InvalidTransition(TrackingError):
    """A command is not valid in the current timer state."""

    def __init__(self, command: str, state: object, detail: Optional[str] = None) -> None:
        self.command = command
        self.state = state
        message = f"Cannot {command} while {state}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PersistenceError(TrackingError):
    """A durable read or write failed. Engine state is left unchanged."""


class MultipleOpenEntries(TrackingError):
    """More than one entry without an end time exists in the store."""

    def __init__(self, entry_ids: Iterable[str]) -> None:
        self.entry_ids = tuple(entry_ids)
        super().__init__(
            "Found %d open time entries (%s); manual repair of the store is required."
            % (len(self.entry_ids), ", ".join(self.entry_ids))
        )


class EntryNotFound(TrackingError, LookupError):
    def __init__(self, entry_id: str) -> None:
        self.entry_id = entry_id
        super().__init__(f"No time entry found for id={entry_id}")


class ProjectNotFound(TrackingError, LookupError):
    def __init__(self, project_id: int) -> None:
        self.project_id = project_id
        super().__init__(f"No project found for id={project_id}")


class InvalidLabel(TrackingError, ValueError):
    """An activity label or project name was empty."""
