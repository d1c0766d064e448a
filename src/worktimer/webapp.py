"""FastAPI application exposing the tracking engine as a local JSON API."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from .clock import Clock
from .config import TrackerSettings
from .engine import TrackingEngine
from .errors import (
    EntryNotFound,
    InvalidLabel,
    InvalidTransition,
    PersistenceError,
    ProjectNotFound,
    TrackingError,
)
from .models import Project, TimeEntry
from .paths import get_db_path
from .reporting import daily_totals, day_bounds, summarize, week_range
from .state_machine import allowed_commands
from .store import SqliteEntryStore

logger = logging.getLogger(__name__)


class StartPayload(BaseModel):
    label: str
    project_id: Optional[int] = None

    model_config = ConfigDict(extra="forbid")


class ProjectPayload(BaseModel):
    name: str
    color: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """Instantiate the FastAPI application.

    The store is opened and the engine recovered on startup; an inconsistent
    store (several open entries) makes startup fail.
    """
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or TrackerSettings()

    app = FastAPI(title="WorkTimer", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.store = None
    app.state.engine = None

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        store = SqliteEntryStore.open(resolved_db_path)
        engine = TrackingEngine(store, clock=clock, settings=resolved_settings)
        try:
            engine.recover()
        except TrackingError:
            logger.exception("Recovery failed; refusing to serve %s", resolved_db_path)
            store.close()
            raise
        app.state.store = store
        app.state.engine = engine

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        if app.state.store is not None:
            app.state.store.close()
            app.state.store = None
            app.state.engine = None

    @app.exception_handler(InvalidTransition)
    async def _invalid_transition(request: Request, exc: InvalidTransition) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(PersistenceError)
    async def _persistence_error(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("Persistence failure: %s", exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(EntryNotFound)
    @app.exception_handler(ProjectNotFound)
    async def _not_found(request: Request, exc: TrackingError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidLabel)
    async def _invalid_label(request: Request, exc: InvalidLabel) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    def _engine(request: Request) -> TrackingEngine:
        engine = request.app.state.engine
        if engine is None:
            raise HTTPException(status_code=503, detail="Tracker is not running")
        return engine

    def _store(request: Request) -> SqliteEntryStore:
        store = request.app.state.store
        if store is None:
            raise HTTPException(status_code=503, detail="Tracker is not running")
        return store

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        return _status_payload(_engine(request))

    @app.post("/api/timer/start")
    def start_timer(payload: StartPayload, request: Request) -> Dict[str, Any]:
        engine = _engine(request)
        if payload.project_id is not None:
            _store(request).get_project(payload.project_id)
        engine.start(payload.label, project_id=payload.project_id)
        return _status_payload(engine)

    @app.post("/api/timer/pause")
    def pause_timer(request: Request) -> Dict[str, Any]:
        engine = _engine(request)
        engine.pause()
        return _status_payload(engine)

    @app.post("/api/timer/resume")
    def resume_timer(request: Request) -> Dict[str, Any]:
        engine = _engine(request)
        engine.resume()
        return _status_payload(engine)

    @app.post("/api/timer/stop")
    def stop_timer(request: Request) -> Dict[str, Any]:
        engine = _engine(request)
        finished = engine.stop()
        payload = _status_payload(engine)
        payload["finalized"] = _entry_payload(finished, engine.clock.now())
        return payload

    @app.post("/api/timer/switch")
    def switch_timer(payload: StartPayload, request: Request) -> Dict[str, Any]:
        engine = _engine(request)
        if payload.project_id is not None:
            _store(request).get_project(payload.project_id)
        engine.switch(payload.label, project_id=payload.project_id)
        return _status_payload(engine)

    @app.post("/api/entries/{entry_id}/continue")
    def continue_entry(entry_id: str, request: Request) -> Dict[str, Any]:
        engine = _engine(request)
        engine.continue_entry(entry_id)
        return _status_payload(engine)

    @app.get("/api/entries")
    def entries(
        request: Request,
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format.",
        ),
    ) -> Dict[str, Any]:
        engine = _engine(request)
        target_day = _parse_date(date)
        start, end = day_bounds(target_day)
        now = engine.clock.now()
        found = _store(request).entries_between(start, end)
        return {
            "date": target_day.strftime("%Y-%m-%d"),
            "entries": [_entry_payload(entry, now) for entry in found],
        }

    @app.delete("/api/entries/{entry_id}")
    def delete_entry(entry_id: str, request: Request) -> Dict[str, Any]:
        _engine(request).delete_entry(entry_id)
        return {"deleted": entry_id}

    @app.get("/api/summary")
    def summary(
        request: Request,
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format.",
        ),
    ) -> Dict[str, Any]:
        engine = _engine(request)
        store = _store(request)
        target_day = _parse_date(date)
        start, end = day_bounds(target_day)
        found = store.entries_between(start, end)
        result = summarize(found, engine.clock.now(), _project_names(store))
        return {
            "date": target_day.strftime("%Y-%m-%d"),
            "total_seconds": result.total_seconds,
            "entry_count": result.entry_count,
            "projects": [
                {"project_id": total.project_id, "name": total.name, "seconds": total.seconds}
                for total in result.projects
            ],
        }

    @app.get("/api/week")
    def week(
        request: Request,
        date: Optional[str] = Query(
            default=None,
            description="Any date in the target week, YYYY-MM-DD.",
        ),
    ) -> Dict[str, Any]:
        engine = _engine(request)
        store = _store(request)
        first, last = week_range(_parse_date(date), resolved_settings.week_starts_on)
        start, _ = day_bounds(first)
        _, end = day_bounds(last)
        found = store.entries_between(start, end)
        now = engine.clock.now()
        per_day = daily_totals(found, now)
        result = summarize(found, now, _project_names(store))
        return {
            "start": first.strftime("%Y-%m-%d"),
            "end": last.strftime("%Y-%m-%d"),
            "days": [
                {
                    "date": (first + timedelta(days=offset)).strftime("%Y-%m-%d"),
                    "seconds": per_day.get(first + timedelta(days=offset), 0.0),
                }
                for offset in range(7)
            ],
            "total_seconds": result.total_seconds,
            "projects": [
                {"project_id": total.project_id, "name": total.name, "seconds": total.seconds}
                for total in result.projects
            ],
        }

    @app.get("/api/projects")
    def list_projects(request: Request) -> Dict[str, Any]:
        return {"projects": [_project_payload(p) for p in _store(request).list_projects()]}

    @app.post("/api/projects")
    def create_project(payload: ProjectPayload, request: Request) -> Dict[str, Any]:
        engine = _engine(request)
        project = _store(request).create_project(
            payload.name,
            payload.color or resolved_settings.default_project_color,
            engine.clock.now(),
        )
        return {"project": _project_payload(project)}

    @app.delete("/api/projects/{project_id}")
    def delete_project(project_id: int, request: Request) -> Dict[str, Any]:
        _engine(request).delete_project(project_id)
        return {"deleted": project_id}

    return app


def _parse_date(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc


def _project_names(store: SqliteEntryStore) -> dict[int, str]:
    return {project.id: project.name for project in store.list_projects()}


def _status_payload(engine: TrackingEngine) -> Dict[str, Any]:
    snapshot = engine.snapshot()
    entry = _entry_payload(snapshot.entry, engine.now()) if snapshot.entry else None
    return {
        "state": snapshot.state.status.value,
        "entry": entry,
        "elapsed_seconds": entry["elapsed_seconds"] if entry else 0.0,
        "allowed_commands": [command.value for command in allowed_commands(snapshot.state)],
        "refresh_seconds": engine.settings.refresh_interval.total_seconds(),
    }


def _entry_payload(entry: TimeEntry, now: datetime) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "activity_label": entry.activity_label,
        "project_id": entry.project_id,
        "started_at": entry.started_at.isoformat(),
        "ended_at": entry.ended_at.isoformat() if entry.ended_at else None,
        "paused_intervals": [
            {
                "started_at": pause.started_at.isoformat(),
                "ended_at": pause.ended_at.isoformat() if pause.ended_at else None,
            }
            for pause in entry.paused_intervals
        ],
        "is_open": entry.is_open,
        "elapsed_seconds": entry.elapsed_duration(max(now, entry.latest_timestamp)).total_seconds(),
    }


def _project_payload(project: Project) -> Dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "color": project.color,
        "created_at": project.created_at.isoformat(),
    }
