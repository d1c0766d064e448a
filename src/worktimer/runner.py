"""Run engine commands on a background thread so a UI thread never blocks on disk."""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from typing import Any, Optional

from .engine import TrackingEngine

logger = logging.getLogger(__name__)

COMMANDS = frozenset(
    {
        "start",
        "pause",
        "resume",
        "stop",
        "switch",
        "continue_entry",
        "delete_entry",
        "delete_project",
        "recover",
    }
)

_SHUTDOWN = None


class CommandRunner:
    """Manage a single worker thread that executes engine commands in order."""

    def __init__(self, engine: TrackingEngine) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._queue: Optional[queue.Queue] = None

    @property
    def engine(self) -> TrackingEngine:
        return self._engine

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            work: queue.Queue = queue.Queue()
            thread = threading.Thread(
                target=self._run_commands,
                args=(work,),
                name="worktimer-commands",
                daemon=True,
            )
            self._thread = thread
            self._queue = work
            thread.start()
            logger.info("Command runner thread started.")

    def stop(self, timeout: float = 10.0) -> None:
        """Finish the commands already submitted, then stop the thread."""
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._thread.is_alive() or self._queue is None:
                return
            self._queue.put(_SHUTDOWN)
            thread = self._thread
            self._thread = None
            self._queue = None
        if thread:
            thread.join(timeout=timeout)
            logger.info("Command runner thread stopped.")

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def submit(self, command: str, *args: Any, **kwargs: Any) -> Future:
        """Queue ``engine.<command>(*args, **kwargs)`` and return its future.

        The future carries the command's return value or the exception it
        raised (``InvalidTransition``, ``PersistenceError`` ...).
        """
        if command not in COMMANDS:
            raise ValueError(f"Unknown engine command: {command!r}")
        method = getattr(self._engine, command)
        future: Future = Future()
        with self._lock:
            if self._queue is None or not (self._thread and self._thread.is_alive()):
                raise RuntimeError("Command runner is not running")
            self._queue.put((method, args, kwargs, future))
        return future

    @staticmethod
    def _run_commands(work: queue.Queue) -> None:
        while True:
            item = work.get()
            if item is _SHUTDOWN:
                return
            method, args, kwargs, future = item
            if not future.set_running_or_notify_cancel():
                continue
            try:
                result = method(*args, **kwargs)
            except Exception as exc:
                logger.debug("Command %s failed: %s", method.__name__, exc)
                future.set_exception(exc)
            else:
                future.set_result(result)
