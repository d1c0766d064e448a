"""Configuration models and helpers for the time tracker."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum


class RecoveryPolicy(str, Enum):
    """How :meth:`TrackingEngine.recover` treats an entry left open by a crash."""

    # Always come back Running; a pause left open is closed at recovery time.
    RESUME = "resume"
    # Come back Paused when the stored entry ends in an open pause.
    RESTORE_PAUSE = "restore-pause"


DEFAULT_PROJECT_COLOR = "#3498db"


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the tracking engine and its front ends."""

    refresh_interval: timedelta = timedelta(seconds=1)
    recovery_policy: RecoveryPolicy = RecoveryPolicy.RESUME
    week_starts_on: int = 0
    default_project_color: str = DEFAULT_PROJECT_COLOR

    def __post_init__(self) -> None:
        if not 0 <= self.week_starts_on <= 6:
            raise ValueError("week_starts_on must be between 0 (Monday) and 6 (Sunday)")
        if self.refresh_interval <= timedelta(0):
            raise ValueError("refresh_interval must be positive")

    @classmethod
    def from_values(
        cls,
        refresh_seconds: float = 1.0,
        recovery_policy: str | RecoveryPolicy = RecoveryPolicy.RESUME,
        week_starts_on: int = 0,
        default_project_color: str | None = None,
    ) -> "TrackerSettings":
        return cls(
            refresh_interval=timedelta(seconds=refresh_seconds),
            recovery_policy=RecoveryPolicy(recovery_policy),
            week_starts_on=week_starts_on,
            default_project_color=default_project_color or DEFAULT_PROJECT_COLOR,
        )
