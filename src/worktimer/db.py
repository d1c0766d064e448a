"""SQLite database layer for time entries and projects."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .models import PauseInterval, Project, TimeEntry


# Timestamps are stored as naive UTC text; fixed width keeps text order equal
# to chronological order.
DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"


def open_database(path: Path | str, *, check_same_thread: bool = True) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    enable_foreign_keys(conn)
    configure_durability(conn)
    initialize_schema(conn)
    return conn


@contextmanager
def database_connection(
    path: Path | str, *, check_same_thread: bool = True
) -> Iterator[sqlite3.Connection]:
    conn = open_database(path, check_same_thread=check_same_thread)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block inside ``BEGIN IMMEDIATE`` ... ``COMMIT``."""
    conn.execute("BEGIN IMMEDIATE;")
    try:
        yield conn
        conn.execute("COMMIT;")
    except BaseException:
        # A failed COMMIT can leave the transaction open on the connection.
        if conn.in_transaction:
            conn.execute("ROLLBACK;")
        raise


def enable_foreign_keys(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON;")


def configure_durability(conn: sqlite3.Connection) -> None:
    # A committed write must survive a crash right after it returns.
    conn.execute("PRAGMA journal_mode = WAL;")
    conn.execute("PRAGMA synchronous = FULL;")


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS projects (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            color TEXT NOT NULL,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS time_entries (
            id TEXT PRIMARY KEY,
            project_id INTEGER REFERENCES projects(id) ON DELETE SET NULL,
            activity_label TEXT NOT NULL,
            started_at TEXT NOT NULL,
            ended_at TEXT
        );

        CREATE TABLE IF NOT EXISTS pause_intervals (
            entry_id TEXT NOT NULL REFERENCES time_entries(id) ON DELETE CASCADE,
            position INTEGER NOT NULL,
            started_at TEXT NOT NULL,
            ended_at TEXT,
            PRIMARY KEY (entry_id, position)
        );

        CREATE INDEX IF NOT EXISTS idx_entries_started_at
            ON time_entries(started_at);

        CREATE INDEX IF NOT EXISTS idx_entries_ended_at
            ON time_entries(ended_at);
        """
    )


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime(DATETIME_FMT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, DATETIME_FMT).replace(tzinfo=timezone.utc)


def _optional_timestamp(value: Optional[str]) -> Optional[datetime]:
    return parse_timestamp(value) if value is not None else None


def insert_entry(conn: sqlite3.Connection, entry: TimeEntry) -> None:
    with transaction(conn):
        conn.execute(
            """
            INSERT INTO time_entries (
                id,
                project_id,
                activity_label,
                started_at,
                ended_at
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.project_id,
                entry.activity_label,
                format_timestamp(entry.started_at),
                format_timestamp(entry.ended_at) if entry.ended_at else None,
            ),
        )
        _write_pauses(conn, entry)


def update_entry(conn: sqlite3.Connection, entry: TimeEntry) -> None:
    """Overwrite the mutable fields (end time and pauses) of an entry."""
    with transaction(conn):
        cur = conn.execute(
            "UPDATE time_entries SET ended_at = ? WHERE id = ?",
            (
                format_timestamp(entry.ended_at) if entry.ended_at else None,
                entry.id,
            ),
        )
        if cur.rowcount == 0:
            raise ValueError(f"No entry found for id={entry.id}")
        conn.execute("DELETE FROM pause_intervals WHERE entry_id = ?", (entry.id,))
        _write_pauses(conn, entry)


def _write_pauses(conn: sqlite3.Connection, entry: TimeEntry) -> None:
    conn.executemany(
        """
        INSERT INTO pause_intervals (entry_id, position, started_at, ended_at)
        VALUES (?, ?, ?, ?)
        """,
        [
            (
                entry.id,
                position,
                format_timestamp(pause.started_at),
                format_timestamp(pause.ended_at) if pause.ended_at else None,
            )
            for position, pause in enumerate(entry.paused_intervals)
        ],
    )


def delete_entry(conn: sqlite3.Connection, entry_id: str) -> bool:
    cur = conn.execute("DELETE FROM time_entries WHERE id = ?", (entry_id,))
    return cur.rowcount > 0


def fetch_entry(conn: sqlite3.Connection, entry_id: str) -> Optional[TimeEntry]:
    rows = conn.execute(
        """
        SELECT id, project_id, activity_label, started_at, ended_at
        FROM time_entries
        WHERE id = ?
        """,
        (entry_id,),
    ).fetchall()
    entries = _rows_to_entries(conn, rows)
    return entries[0] if entries else None


def fetch_open_entries(conn: sqlite3.Connection) -> list[TimeEntry]:
    """Return every entry without an end time, most recent first."""
    rows = conn.execute(
        """
        SELECT id, project_id, activity_label, started_at, ended_at
        FROM time_entries
        WHERE ended_at IS NULL
        ORDER BY started_at DESC;
        """
    ).fetchall()
    return _rows_to_entries(conn, rows)


def fetch_entries_between(
    conn: sqlite3.Connection, start: datetime, end: datetime
) -> list[TimeEntry]:
    """Fetch entries that started in ``[start, end)``, oldest first."""
    rows = conn.execute(
        """
        SELECT id, project_id, activity_label, started_at, ended_at
        FROM time_entries
        WHERE started_at >= ? AND started_at < ?
        ORDER BY started_at;
        """,
        (format_timestamp(start), format_timestamp(end)),
    ).fetchall()
    return _rows_to_entries(conn, rows)


def _rows_to_entries(
    conn: sqlite3.Connection, rows: Iterable[sqlite3.Row]
) -> list[TimeEntry]:
    rows = list(rows)
    if not rows:
        return []
    ids = [row["id"] for row in rows]
    placeholders = ", ".join("?" for _ in ids)
    pauses: dict[str, list[PauseInterval]] = {entry_id: [] for entry_id in ids}
    for pause_row in conn.execute(
        f"""
        SELECT entry_id, started_at, ended_at
        FROM pause_intervals
        WHERE entry_id IN ({placeholders})
        ORDER BY entry_id, position
        """,
        ids,
    ):
        pauses[pause_row["entry_id"]].append(
            PauseInterval(
                started_at=parse_timestamp(pause_row["started_at"]),
                ended_at=_optional_timestamp(pause_row["ended_at"]),
            )
        )
    return [
        TimeEntry(
            id=row["id"],
            activity_label=row["activity_label"],
            started_at=parse_timestamp(row["started_at"]),
            ended_at=_optional_timestamp(row["ended_at"]),
            paused_intervals=tuple(pauses[row["id"]]),
            project_id=row["project_id"],
        )
        for row in rows
    ]


def insert_project(
    conn: sqlite3.Connection, name: str, color: str, created_at: datetime
) -> Project:
    cur = conn.execute(
        "INSERT INTO projects (name, color, created_at) VALUES (?, ?, ?)",
        (name, color, format_timestamp(created_at)),
    )
    return Project(
        id=cur.lastrowid,
        name=name,
        color=color,
        created_at=parse_timestamp(format_timestamp(created_at)),
    )


def fetch_projects(conn: sqlite3.Connection) -> list[Project]:
    rows = conn.execute(
        """
        SELECT id, name, color, created_at
        FROM projects
        ORDER BY name COLLATE NOCASE, id;
        """
    ).fetchall()
    return [_row_to_project(row) for row in rows]


def fetch_project(conn: sqlite3.Connection, project_id: int) -> Optional[Project]:
    row = conn.execute(
        "SELECT id, name, color, created_at FROM projects WHERE id = ?",
        (project_id,),
    ).fetchone()
    return _row_to_project(row) if row is not None else None


def delete_project(conn: sqlite3.Connection, project_id: int) -> bool:
    cur = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
    return cur.rowcount > 0


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        color=row["color"],
        created_at=parse_timestamp(row["created_at"]),
    )
