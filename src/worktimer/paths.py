"""Helpers for locating application directories."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "WorkTimer"
APP_AUTHOR = "WorkTimer"

# Overrides the platform data directory, e.g. for a portable install.
DATA_DIR_ENV = "WORKTIMER_DATA_DIR"


def get_data_dir() -> Path:
    """Return the base directory for the entry store and logs."""
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        path = Path(override).expanduser()
    else:
        dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=False)
        path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_db_path() -> Path:
    return get_data_dir() / "worktimer.sqlite3"


def get_log_path() -> Path:
    return get_data_dir() / "worktimer.log"
