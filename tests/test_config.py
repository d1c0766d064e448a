from datetime import datetime, timedelta, timezone

import pytest

from worktimer import paths
from worktimer.clock import ManualClock
from worktimer.config import DEFAULT_PROJECT_COLOR, RecoveryPolicy, TrackerSettings


class TestTrackerSettings:
    def test_defaults(self):
        settings = TrackerSettings()
        assert settings.refresh_interval == timedelta(seconds=1)
        assert settings.recovery_policy is RecoveryPolicy.RESUME
        assert settings.week_starts_on == 0

    def test_from_values(self):
        settings = TrackerSettings.from_values(
            refresh_seconds=0.5, recovery_policy="restore-pause", week_starts_on=6
        )
        assert settings.refresh_interval == timedelta(milliseconds=500)
        assert settings.recovery_policy is RecoveryPolicy.RESTORE_PAUSE
        assert settings.default_project_color == DEFAULT_PROJECT_COLOR

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"week_starts_on": 7},
            {"refresh_seconds": 0},
            {"recovery_policy": "forget"},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            TrackerSettings.from_values(**kwargs)


class TestPaths:
    def test_env_override(self, tmp_path, monkeypatch):
        target = tmp_path / "data"
        monkeypatch.setenv(paths.DATA_DIR_ENV, str(target))
        assert paths.get_db_path() == target / "worktimer.sqlite3"
        assert paths.get_log_path() == target / "worktimer.log"
        assert target.is_dir()


class TestManualClock:
    def test_advance_moves_both_clocks(self):
        clock = ManualClock()
        clock.advance(minutes=2)
        assert clock.now() == ManualClock.DEFAULT_START + timedelta(minutes=2)
        assert clock.monotonic() == 120.0

    def test_advance_rejects_negative(self):
        with pytest.raises(ValueError):
            ManualClock().advance(-1)

    def test_set_only_moves_wall_clock(self):
        clock = ManualClock()
        clock.set(datetime(2024, 1, 1, 8, 0))
        assert clock.now() == datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
        assert clock.monotonic() == 0.0
