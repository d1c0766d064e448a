"""Command-line interface for the time tracker."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Iterator, Optional

import typer

from .config import RecoveryPolicy, TrackerSettings
from .engine import TrackingEngine
from .errors import MultipleOpenEntries, TrackingError
from .models import TimerStatus
from .paths import get_db_path
from .reporting import SummaryPrinter, day_bounds, format_duration
from .store import SqliteEntryStore

app = typer.Typer(help="Local-first time tracker.")
projects_app = typer.Typer(help="Manage projects.", no_args_is_help=True)
app.add_typer(projects_app, name="projects")

DB_OPTION = typer.Option(
    None,
    "--db",
    path_type=Path,
    help="Location of the time-entry SQLite database.",
)


@app.callback(no_args_is_help=True)
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file", path_type=Path, help="Also write logs to this file."
    ),
) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
    )


@contextmanager
def _tracker(db_path: Optional[Path]) -> Iterator[tuple[TrackingEngine, SqliteEntryStore]]:
    # Every invocation is a fresh process, so an open pause is restored as-is.
    settings = TrackerSettings(recovery_policy=RecoveryPolicy.RESTORE_PAUSE)
    try:
        with SqliteEntryStore.open(db_path or get_db_path()) as store:
            engine = TrackingEngine(store, settings=settings)
            engine.recover()
            yield engine, store
    except MultipleOpenEntries as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)
    except TrackingError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)


def _parse_day(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise typer.BadParameter("Dates must use the YYYY-MM-DD format.") from exc


@app.command()
def start(
    label: str = typer.Argument(..., help="What you are working on."),
    project: Optional[int] = typer.Option(None, "--project", "-p", help="Project id."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Start tracking a new activity."""
    with _tracker(db_path) as (engine, store):
        if project is not None:
            store.get_project(project)
        entry_id = engine.start(label, project_id=project)
        typer.echo(f"Started '{label.strip()}' ({entry_id})")


@app.command()
def stop(db_path: Optional[Path] = DB_OPTION) -> None:
    """Stop the running activity."""
    with _tracker(db_path) as (engine, _):
        entry = engine.stop()
        typer.echo(
            f"Stopped '{entry.activity_label}' after "
            f"{format_duration(entry.elapsed_duration(engine.clock.now()))}"
        )


@app.command()
def pause(db_path: Optional[Path] = DB_OPTION) -> None:
    """Pause the running activity."""
    with _tracker(db_path) as (engine, _):
        engine.pause()
        typer.echo(f"Paused at {format_duration(engine.elapsed())}")


@app.command()
def resume(db_path: Optional[Path] = DB_OPTION) -> None:
    """Resume the paused activity."""
    with _tracker(db_path) as (engine, _):
        engine.resume()
        typer.echo(f"Resumed at {format_duration(engine.elapsed())}")


@app.command()
def switch(
    label: str = typer.Argument(..., help="The activity to switch to."),
    project: Optional[int] = typer.Option(None, "--project", "-p", help="Project id."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Stop the current activity and start another one."""
    with _tracker(db_path) as (engine, store):
        if project is not None:
            store.get_project(project)
        previous = engine.current_entry()
        entry_id = engine.switch(label, project_id=project)
        if previous is not None:
            typer.echo(f"Stopped '{previous.activity_label}'")
        typer.echo(f"Started '{label.strip()}' ({entry_id})")


@app.command(name="continue")
def continue_(
    entry_id: str = typer.Argument(..., help="Id of an earlier entry."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Track the activity of an earlier entry again."""
    with _tracker(db_path) as (engine, store):
        new_id = engine.continue_entry(entry_id)
        typer.echo(f"Started '{store.get(new_id).activity_label}' ({new_id})")


@app.command()
def status(db_path: Optional[Path] = DB_OPTION) -> None:
    """Show what is being tracked right now."""
    with _tracker(db_path) as (engine, store):
        state = engine.current_status()
        entry = engine.current_entry()
        if entry is None:
            typer.echo("Idle")
            return
        project = ""
        if entry.project_id is not None:
            project = f" [{store.get_project(entry.project_id).name}]"
        marker = " (paused)" if state.status is TimerStatus.PAUSED else ""
        typer.echo(
            f"{entry.activity_label}{project}: {format_duration(engine.elapsed())}{marker}"
        )


@app.command()
def entries(
    day: Optional[str] = typer.Option(None, "--date", help="Date (YYYY-MM-DD). Defaults to today."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """List the entries of a day with their ids."""
    target = _parse_day(day)
    with _tracker(db_path) as (engine, store):
        start_at, end_at = day_bounds(target)
        found = store.entries_between(start_at, end_at)
        if not found:
            typer.echo("No time tracked on the selected day.")
            return
        now = engine.clock.now()
        for entry in found:
            started = entry.started_at.astimezone().strftime("%H:%M")
            typer.echo(
                f"{entry.id}  {started}  {format_duration(entry.elapsed_duration(now))}  "
                f"{entry.activity_label}"
            )


@app.command()
def today(
    day: Optional[str] = typer.Option(None, "--date", help="Date (YYYY-MM-DD). Defaults to today."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Print a summary for a single day."""
    target = _parse_day(day)
    with _tracker(db_path) as (engine, store):
        printer = SummaryPrinter(
            store,
            clock=engine.clock,
            project_names={project.id: project.name for project in store.list_projects()},
        )
        printer.print_daily_summary(target)


@app.command()
def week(
    day: Optional[str] = typer.Option(None, "--date", help="Any date in the week. Defaults to today."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Print a day-by-day summary for a week."""
    target = _parse_day(day)
    with _tracker(db_path) as (engine, store):
        printer = SummaryPrinter(
            store,
            clock=engine.clock,
            project_names={project.id: project.name for project in store.list_projects()},
            week_starts_on=engine.settings.week_starts_on,
        )
        printer.print_weekly_summary(target)


@app.command()
def delete(
    entry_id: str = typer.Argument(..., help="Id of the entry to delete."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Delete a finished entry."""
    with _tracker(db_path) as (engine, _):
        engine.delete_entry(entry_id)
        typer.echo(f"Deleted {entry_id}")


@projects_app.command("add")
def add_project(
    name: str = typer.Argument(..., help="Project name."),
    color: Optional[str] = typer.Option(None, "--color", help="Hex color, e.g. #e74c3c."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Create a project."""
    with _tracker(db_path) as (engine, store):
        project = store.create_project(
            name, color or engine.settings.default_project_color, engine.clock.now()
        )
        typer.echo(f"Created project {project.id}: {project.name}")


@projects_app.command("list")
def list_projects(db_path: Optional[Path] = DB_OPTION) -> None:
    """List projects by name."""
    with _tracker(db_path) as (_, store):
        projects = store.list_projects()
        if not projects:
            typer.echo("No projects yet.")
            return
        for project in projects:
            typer.echo(f"{project.id:>4}  {project.color}  {project.name}")


@projects_app.command("delete")
def delete_project(
    project_id: int = typer.Argument(..., help="Project id."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Delete a project; its entries are kept without a project."""
    with _tracker(db_path) as (engine, _):
        engine.delete_project(project_id)
        typer.echo(f"Deleted project {project_id}")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = DB_OPTION,
    open_browser: bool = typer.Option(
        False,
        "--open-browser/--no-open-browser",
        help="Open the status endpoint in your default browser.",
    ),
) -> None:
    """Serve the tracker over a local JSON API."""
    from .server_runner import run_server

    run_server(
        host=host,
        port=port,
        db_path=db_path or get_db_path(),
        settings=TrackerSettings(),
        open_browser=open_browser,
    )
