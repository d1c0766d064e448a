"""Helpers to serve the tracker's local JSON API."""

from __future__ import annotations

import logging
import threading
import time
import webbrowser
from pathlib import Path
from typing import Optional

import uvicorn

from .config import TrackerSettings
from .paths import get_db_path
from .webapp import create_app

logger = logging.getLogger(__name__)


def run_server(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    open_browser: bool = False,
    log_level: str = "info",
) -> None:
    """Serve the API until interrupted; optionally open the status page."""
    app = create_app(
        db_path=db_path or get_db_path(),
        settings=settings or TrackerSettings(),
    )

    if open_browser:
        url = f"http://{host}:{port}/api/status"
        threading.Thread(
            target=_open_after_delay, args=(url,), daemon=True
        ).start()

    logger.info("Serving tracker API on http://%s:%d", host, port)
    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def _open_after_delay(url: str, delay: float = 1.0) -> None:
    time.sleep(delay)
    try:
        webbrowser.open(url)
    except Exception:
        logger.exception("Failed to launch browser for %s", url)
