"""Daily and weekly summaries of tracked time."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable, Mapping, Optional

from .clock import Clock, SystemClock
from .models import TimeEntry
from .store import EntryStore

NO_PROJECT = "No project"


@dataclass(slots=True)
class ProjectTotal:
    project_id: Optional[int]
    name: str
    seconds: float


@dataclass(slots=True)
class Summary:
    total_seconds: float = 0.0
    entry_count: int = 0
    projects: list[ProjectTotal] = field(default_factory=list)


def format_duration(seconds: float | timedelta) -> str:
    if isinstance(seconds, timedelta):
        seconds = seconds.total_seconds()
    total_seconds = max(int(round(seconds)), 0)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def day_bounds(day: date, tz: Optional[tzinfo] = None) -> tuple[datetime, datetime]:
    """Return ``[start, end)`` of a calendar day; local time when ``tz`` is None."""
    if tz is None:
        start = datetime.combine(day, time.min).astimezone()
    else:
        start = datetime.combine(day, time.min, tzinfo=tz)
    return start, start + timedelta(days=1)


def week_range(day: date, week_starts_on: int = 0) -> tuple[date, date]:
    """Return the first and last day of the week containing ``day``."""
    offset = (day.weekday() - week_starts_on) % 7
    first = day - timedelta(days=offset)
    return first, first + timedelta(days=6)


def summarize(
    entries: Iterable[TimeEntry],
    now: datetime,
    project_names: Optional[Mapping[int, str]] = None,
) -> Summary:
    """Total elapsed time per project, largest first. Pauses never count."""
    project_names = project_names or {}
    totals: defaultdict[Optional[int], float] = defaultdict(float)
    summary = Summary()
    for entry in entries:
        seconds = entry.elapsed_duration(now).total_seconds()
        project_id = entry.project_id if entry.project_id in project_names else None
        totals[project_id] += seconds
        summary.total_seconds += seconds
        summary.entry_count += 1
    summary.projects = [
        ProjectTotal(
            project_id=project_id,
            name=project_names[project_id] if project_id is not None else NO_PROJECT,
            seconds=seconds,
        )
        for project_id, seconds in sorted(totals.items(), key=lambda item: item[1], reverse=True)
    ]
    return summary


def daily_totals(
    entries: Iterable[TimeEntry], now: datetime, tz: Optional[tzinfo] = None
) -> dict[date, float]:
    """Seconds tracked per calendar day, keyed by the day each entry started."""
    totals: defaultdict[date, float] = defaultdict(float)
    for entry in entries:
        started = entry.started_at.astimezone(tz)
        totals[started.date()] += entry.elapsed_duration(now).total_seconds()
    return dict(sorted(totals.items()))


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(
        self,
        store: EntryStore,
        *,
        clock: Optional[Clock] = None,
        project_names: Optional[Mapping[int, str]] = None,
        week_starts_on: int = 0,
        tz: Optional[tzinfo] = None,
    ) -> None:
        self.store = store
        self.clock = clock or SystemClock()
        self.project_names = dict(project_names or {})
        self.week_starts_on = week_starts_on
        self.tz = tz

    def print_daily_summary(self, day: date) -> None:
        start, end = day_bounds(day, self.tz)
        entries = self.store.entries_between(start, end)
        if not entries:
            print("No time tracked on the selected day.")
            return

        now = self.clock.now()
        summary = summarize(entries, now, self.project_names)
        print(f"Summary for {day.strftime('%Y-%m-%d')}")
        print("-" * 40)
        print(f"Tracked time: {format_duration(summary.total_seconds)}")
        print()
        for entry in entries:
            started = entry.started_at.astimezone(self.tz).strftime("%H:%M")
            ended = entry.ended_at.astimezone(self.tz).strftime("%H:%M") if entry.ended_at else "now  "
            print(
                f"  {started}-{ended}  {entry.activity_label[:40]:<40} "
                f"{format_duration(entry.elapsed_duration(now))}"
            )
        self._print_projects(summary)

    def print_weekly_summary(self, day: date) -> None:
        first, last = week_range(day, self.week_starts_on)
        start, _ = day_bounds(first, self.tz)
        _, end = day_bounds(last, self.tz)
        entries = self.store.entries_between(start, end)
        print(f"Week of {first.strftime('%Y-%m-%d')} to {last.strftime('%Y-%m-%d')}")
        print("-" * 40)
        if not entries:
            print("No time tracked this week.")
            return

        now = self.clock.now()
        per_day = daily_totals(entries, now, self.tz)
        for offset in range(7):
            current = first + timedelta(days=offset)
            seconds = per_day.get(current, 0.0)
            print(f"  {current.strftime('%a %Y-%m-%d')}  {format_duration(seconds)}")
        summary = summarize(entries, now, self.project_names)
        print()
        print(f"Week total: {format_duration(summary.total_seconds)}")
        self._print_projects(summary)

    @staticmethod
    def _print_projects(summary: Summary) -> None:
        if not summary.projects:
            return
        print()
        print("By project:")
        for total in summary.projects:
            print(f"  {total.name:<30} {format_duration(total.seconds)}")
