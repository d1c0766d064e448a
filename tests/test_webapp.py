"""Tests for the FastAPI front end."""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from worktimer.clock import ManualClock
from worktimer.models import PauseInterval, TimeEntry
from worktimer.store import SqliteEntryStore
from worktimer.webapp import create_app

from conftest import T0


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "api.sqlite3"


@pytest.fixture
def clock():
    return ManualClock(T0)


@pytest.fixture
def client(db_path, clock):
    with TestClient(create_app(db_path=db_path, clock=clock)) as client:
        yield client


def local_day(clock) -> str:
    return clock.now().astimezone().strftime("%Y-%m-%d")


class TestTimerEndpoints:
    def test_idle_status(self, client):
        body = client.get("/api/status").json()
        assert body["state"] == "idle"
        assert body["entry"] is None
        assert body["allowed_commands"] == ["start"]
        assert body["refresh_seconds"] == 1.0

    def test_full_cycle(self, client, clock):
        body = client.post("/api/timer/start", json={"label": "Write report"}).json()
        assert body["state"] == "running"
        assert body["entry"]["activity_label"] == "Write report"

        clock.advance(10)
        assert client.post("/api/timer/pause").json()["state"] == "paused"
        clock.advance(5)
        assert client.post("/api/timer/resume").json()["state"] == "running"
        clock.advance(5)

        body = client.post("/api/timer/stop").json()
        assert body["state"] == "idle"
        assert body["finalized"]["elapsed_seconds"] == 15.0
        assert len(body["finalized"]["paused_intervals"]) == 1

    def test_invalid_transition_is_conflict(self, client):
        response = client.post("/api/timer/pause")
        assert response.status_code == 409
        assert "Cannot pause" in response.json()["detail"]

    def test_empty_label_is_bad_request(self, client):
        response = client.post("/api/timer/start", json={"label": " "})
        assert response.status_code == 400

    def test_switch_and_continue(self, client, clock):
        first = client.post("/api/timer/start", json={"label": "A"}).json()["entry"]["id"]
        clock.advance(60)
        body = client.post("/api/timer/switch", json={"label": "B"}).json()
        assert body["entry"]["activity_label"] == "B"

        body = client.post(f"/api/entries/{first}/continue").json()
        assert body["entry"]["activity_label"] == "A"
        assert body["entry"]["id"] != first

    def test_unknown_entry(self, client):
        assert client.post("/api/entries/nope/continue").status_code == 404


class TestEntriesAndSummaries:
    def test_entries_for_day(self, client, clock):
        client.post("/api/timer/start", json={"label": "A"})
        clock.advance(minutes=30)
        client.post("/api/timer/stop")
        body = client.get("/api/entries", params={"date": local_day(clock)}).json()
        assert [e["activity_label"] for e in body["entries"]] == ["A"]
        assert body["entries"][0]["elapsed_seconds"] == 1800.0

    def test_delete_entry(self, client, clock):
        entry_id = client.post("/api/timer/start", json={"label": "A"}).json()["entry"]["id"]
        assert client.delete(f"/api/entries/{entry_id}").status_code == 409
        client.post("/api/timer/stop")
        assert client.delete(f"/api/entries/{entry_id}").json() == {"deleted": entry_id}
        assert client.delete(f"/api/entries/{entry_id}").status_code == 404

    def test_summary_and_week(self, client, clock):
        project = client.post("/api/projects", json={"name": "Work"}).json()["project"]
        client.post("/api/timer/start", json={"label": "A", "project_id": project["id"]})
        clock.advance(minutes=20)
        client.post("/api/timer/stop")

        summary = client.get("/api/summary", params={"date": local_day(clock)}).json()
        assert summary["total_seconds"] == 1200.0
        assert summary["projects"] == [
            {"project_id": project["id"], "name": "Work", "seconds": 1200.0}
        ]

        week = client.get("/api/week", params={"date": local_day(clock)}).json()
        assert len(week["days"]) == 7
        assert week["total_seconds"] == 1200.0

    def test_bad_date(self, client):
        assert client.get("/api/summary", params={"date": "yesterday"}).status_code == 400


class TestProjects:
    def test_create_list_delete(self, client):
        created = client.post("/api/projects", json={"name": "Work", "color": "#e74c3c"})
        project = created.json()["project"]
        assert project["color"] == "#e74c3c"
        assert client.get("/api/projects").json()["projects"] == [project]
        assert client.delete(f"/api/projects/{project['id']}").status_code == 200
        assert client.delete(f"/api/projects/{project['id']}").status_code == 404

    def test_project_of_live_entry_is_kept(self, client):
        project = client.post("/api/projects", json={"name": "Work"}).json()["project"]
        client.post("/api/timer/start", json={"label": "A", "project_id": project["id"]})
        response = client.delete(f"/api/projects/{project['id']}")
        assert response.status_code == 409
        assert client.get("/api/projects").json()["projects"] == [project]
        client.post("/api/timer/stop")
        assert client.delete(f"/api/projects/{project['id']}").status_code == 200

    def test_unknown_project_on_start(self, client):
        response = client.post("/api/timer/start", json={"label": "A", "project_id": 5})
        assert response.status_code == 404
        assert client.get("/api/status").json()["state"] == "idle"

    def test_extra_fields_rejected(self, client):
        response = client.post("/api/projects", json={"name": "Work", "owner": "me"})
        assert response.status_code == 422


class TestStartup:
    def test_open_entry_recovered_on_startup(self, db_path, clock):
        with SqliteEntryStore.open(db_path) as store:
            store.append(
                TimeEntry(
                    id="crashed",
                    activity_label="A",
                    started_at=T0,
                    paused_intervals=(PauseInterval(T0 + timedelta(minutes=1)),),
                )
            )
        clock.advance(minutes=5)
        with TestClient(create_app(db_path=db_path, clock=clock)) as client:
            body = client.get("/api/status").json()
        assert body["state"] == "running"
        assert body["entry"]["id"] == "crashed"
        assert body["elapsed_seconds"] == 60.0

    def test_inconsistent_store_refuses_to_start(self, db_path, clock):
        with SqliteEntryStore.open(db_path) as store:
            store.append(TimeEntry(id="one", activity_label="A", started_at=T0))
            store.append(TimeEntry(id="two", activity_label="B", started_at=T0))
        with pytest.raises(Exception):
            with TestClient(create_app(db_path=db_path, clock=clock)):
                pass
