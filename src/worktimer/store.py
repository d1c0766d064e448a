"""Persistence port used by the tracking engine, with its two adapters."""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Protocol

from . import db
from .errors import (
    EntryNotFound,
    InvalidLabel,
    MultipleOpenEntries,
    PersistenceError,
    ProjectNotFound,
)
from .models import Project, TimeEntry

logger = logging.getLogger(__name__)


class EntryStore(Protocol):
    """Durable storage of time entries.

    ``append`` and ``update`` must not return until the write would survive a
    process crash. Failures surface as :class:`PersistenceError`.
    """

    def append(self, entry: TimeEntry) -> None: ...

    def update(self, entry: TimeEntry) -> None: ...

    def find_open_entry(self) -> Optional[TimeEntry]: ...

    def get(self, entry_id: str) -> TimeEntry: ...

    def entries_between(self, start: datetime, end: datetime) -> list[TimeEntry]: ...

    def delete(self, entry_id: str) -> None: ...


class ProjectStore(Protocol):
    def create_project(self, name: str, color: str, created_at: datetime) -> Project: ...

    def list_projects(self) -> list[Project]: ...

    def get_project(self, project_id: int) -> Project: ...

    def delete_project(self, project_id: int) -> None: ...


class TrackerStore(EntryStore, ProjectStore, Protocol):
    """What the engine and its front ends need: entries and projects together."""


def _single_open(entries: list[TimeEntry]) -> Optional[TimeEntry]:
    if len(entries) > 1:
        raise MultipleOpenEntries(entry.id for entry in entries)
    return entries[0] if entries else None


def _clean_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise InvalidLabel("project name must not be empty")
    return cleaned


class MemoryEntryStore:
    """Dict-backed store for tests and throwaway sessions."""

    def __init__(self) -> None:
        self._entries: dict[str, TimeEntry] = {}
        self._projects: dict[int, Project] = {}
        self._next_project_id = 1
        self._lock = threading.Lock()

    def append(self, entry: TimeEntry) -> None:
        with self._lock:
            if entry.id in self._entries:
                raise PersistenceError(f"Entry {entry.id} already exists")
            self._entries[entry.id] = entry

    def update(self, entry: TimeEntry) -> None:
        with self._lock:
            existing = self._entries.get(entry.id)
            if existing is None:
                raise PersistenceError(f"No entry found for id={entry.id}")
            self._entries[entry.id] = replace(
                existing,
                ended_at=entry.ended_at,
                paused_intervals=entry.paused_intervals,
            )

    def find_open_entry(self) -> Optional[TimeEntry]:
        with self._lock:
            open_entries = sorted(
                (entry for entry in self._entries.values() if entry.is_open),
                key=lambda entry: entry.started_at,
                reverse=True,
            )
        return _single_open(open_entries)

    def get(self, entry_id: str) -> TimeEntry:
        with self._lock:
            entry = self._entries.get(entry_id)
        if entry is None:
            raise EntryNotFound(entry_id)
        return entry

    def entries_between(self, start: datetime, end: datetime) -> list[TimeEntry]:
        with self._lock:
            selected = [
                entry for entry in self._entries.values()
                if start <= entry.started_at < end
            ]
        return sorted(selected, key=lambda entry: entry.started_at)

    def delete(self, entry_id: str) -> None:
        with self._lock:
            if self._entries.pop(entry_id, None) is None:
                raise EntryNotFound(entry_id)

    def create_project(self, name: str, color: str, created_at: datetime) -> Project:
        name = _clean_name(name)
        with self._lock:
            project = Project(
                id=self._next_project_id, name=name, color=color, created_at=created_at
            )
            self._projects[project.id] = project
            self._next_project_id += 1
        return project

    def list_projects(self) -> list[Project]:
        with self._lock:
            projects = list(self._projects.values())
        return sorted(projects, key=lambda project: (project.name.casefold(), project.id))

    def get_project(self, project_id: int) -> Project:
        with self._lock:
            project = self._projects.get(project_id)
        if project is None:
            raise ProjectNotFound(project_id)
        return project

    def delete_project(self, project_id: int) -> None:
        with self._lock:
            if self._projects.pop(project_id, None) is None:
                raise ProjectNotFound(project_id)
            for entry_id, entry in list(self._entries.items()):
                if entry.project_id == project_id:
                    self._entries[entry_id] = replace(entry, project_id=None)


class SqliteEntryStore:
    """Store backed by a single SQLite connection shared across threads."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()

    @classmethod
    def open(cls, path: Path | str) -> "SqliteEntryStore":
        try:
            conn = db.open_database(path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not open database at {path}: {exc}") from exc
        logger.debug("Opened entry store at %s", path)
        return cls(conn)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "SqliteEntryStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def _guard(self, action: str) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
            except (sqlite3.Error, ValueError) as exc:
                raise PersistenceError(f"Failed to {action}: {exc}") from exc

    def append(self, entry: TimeEntry) -> None:
        with self._guard(f"append entry {entry.id}") as conn:
            db.insert_entry(conn, entry)

    def update(self, entry: TimeEntry) -> None:
        with self._guard(f"update entry {entry.id}") as conn:
            db.update_entry(conn, entry)

    def find_open_entry(self) -> Optional[TimeEntry]:
        with self._guard("look up the open entry") as conn:
            open_entries = db.fetch_open_entries(conn)
        return _single_open(open_entries)

    def get(self, entry_id: str) -> TimeEntry:
        with self._guard(f"read entry {entry_id}") as conn:
            entry = db.fetch_entry(conn, entry_id)
        if entry is None:
            raise EntryNotFound(entry_id)
        return entry

    def entries_between(self, start: datetime, end: datetime) -> list[TimeEntry]:
        with self._guard("list entries") as conn:
            return db.fetch_entries_between(conn, start, end)

    def delete(self, entry_id: str) -> None:
        with self._guard(f"delete entry {entry_id}") as conn:
            deleted = db.delete_entry(conn, entry_id)
        if not deleted:
            raise EntryNotFound(entry_id)

    def create_project(self, name: str, color: str, created_at: datetime) -> Project:
        name = _clean_name(name)
        with self._guard(f"create project {name!r}") as conn:
            return db.insert_project(conn, name, color, created_at)

    def list_projects(self) -> list[Project]:
        with self._guard("list projects") as conn:
            return db.fetch_projects(conn)

    def get_project(self, project_id: int) -> Project:
        with self._guard(f"read project {project_id}") as conn:
            project = db.fetch_project(conn, project_id)
        if project is None:
            raise ProjectNotFound(project_id)
        return project

    def delete_project(self, project_id: int) -> None:
        with self._guard(f"delete project {project_id}") as conn:
            deleted = db.delete_project(conn, project_id)
        if not deleted:
            raise ProjectNotFound(project_id)
