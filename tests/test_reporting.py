from datetime import date, timedelta, timezone

import pytest

from worktimer.models import PauseInterval, TimeEntry
from worktimer.reporting import (
    NO_PROJECT,
    SummaryPrinter,
    daily_totals,
    day_bounds,
    format_duration,
    summarize,
    week_range,
)
from worktimer.store import MemoryEntryStore

from conftest import T0


def entry(entry_id, start_hours, minutes, project_id=None, pause_minutes=0):
    started = T0 + timedelta(hours=start_hours)
    ended = started + timedelta(minutes=minutes + pause_minutes)
    pauses = ()
    if pause_minutes:
        pause_start = started + timedelta(minutes=1)
        pauses = (PauseInterval(pause_start, pause_start + timedelta(minutes=pause_minutes)),)
    return TimeEntry(
        id=entry_id,
        activity_label=f"Task {entry_id}",
        started_at=started,
        ended_at=ended,
        paused_intervals=pauses,
        project_id=project_id,
    )


class TestFormatDuration:
    @pytest.mark.parametrize(
        "seconds, expected",
        [(0, "00:00:00"), (59.6, "00:01:00"), (3725, "01:02:05"), (-5, "00:00:00")],
    )
    def test_values(self, seconds, expected):
        assert format_duration(seconds) == expected

    def test_timedelta(self):
        assert format_duration(timedelta(hours=26)) == "26:00:00"


class TestCalendar:
    def test_week_starting_monday(self):
        assert week_range(date(2024, 1, 17)) == (date(2024, 1, 15), date(2024, 1, 21))

    def test_week_starting_sunday(self):
        assert week_range(date(2024, 1, 17), week_starts_on=6) == (
            date(2024, 1, 14),
            date(2024, 1, 20),
        )

    def test_day_bounds_in_utc(self):
        start, end = day_bounds(date(2024, 1, 15), timezone.utc)
        assert start == T0.replace(hour=0)
        assert end - start == timedelta(days=1)


class TestSummaries:
    def test_summarize_groups_by_project_excluding_pauses(self):
        entries = [
            entry("a", 0, 30, project_id=1, pause_minutes=15),
            entry("b", 1, 60, project_id=2),
            entry("c", 2, 10),
            entry("d", 3, 5, project_id=99),
        ]
        summary = summarize(entries, T0 + timedelta(days=1), {1: "Work", 2: "Study"})
        assert summary.entry_count == 4
        assert summary.total_seconds == (30 + 60 + 10 + 5) * 60
        assert [(p.name, p.seconds) for p in summary.projects] == [
            ("Study", 3600.0),
            ("Work", 1800.0),
            (NO_PROJECT, 900.0),
        ]

    def test_open_entry_counts_up_to_now(self):
        live = TimeEntry(id="live", activity_label="Live", started_at=T0)
        summary = summarize([live], T0 + timedelta(minutes=20))
        assert summary.total_seconds == 1200

    def test_daily_totals(self):
        entries = [entry("a", 0, 30), entry("b", 24, 45), entry("c", 25, 15)]
        totals = daily_totals(entries, T0 + timedelta(days=3), timezone.utc)
        assert totals == {date(2024, 1, 15): 1800.0, date(2024, 1, 16): 3600.0}


class TestSummaryPrinter:
    def test_daily_summary(self, capsys, clock):
        store = MemoryEntryStore()
        store.append(entry("a", 0, 30, project_id=1))
        printer = SummaryPrinter(store, clock=clock, project_names={1: "Work"}, tz=timezone.utc)
        printer.print_daily_summary(date(2024, 1, 15))
        output = capsys.readouterr().out
        assert "Summary for 2024-01-15" in output
        assert "Tracked time: 00:30:00" in output
        assert "Task a" in output
        assert "Work" in output

    def test_empty_day(self, capsys, clock):
        printer = SummaryPrinter(MemoryEntryStore(), clock=clock, tz=timezone.utc)
        printer.print_daily_summary(date(2024, 1, 15))
        assert "No time tracked" in capsys.readouterr().out

    def test_weekly_summary(self, capsys, clock):
        store = MemoryEntryStore()
        store.append(entry("a", 0, 30))
        store.append(entry("b", 48, 60))
        printer = SummaryPrinter(store, clock=clock, tz=timezone.utc)
        printer.print_weekly_summary(date(2024, 1, 17))
        output = capsys.readouterr().out
        assert "Week of 2024-01-15 to 2024-01-21" in output
        assert "Wed 2024-01-17  01:00:00" in output
        assert "Week total: 01:30:00" in output
