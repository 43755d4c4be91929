from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from ideaboard.errors import PersistError
from ideaboard.models.project import Project
from ideaboard.services.store import SqlProjectStore


@pytest.fixture
def stored_project(session: Session, project: Project) -> Project:
    SqlProjectStore(session).upsert(project)
    return project


def _mutate(client: TestClient, project_id: str, mutation: dict):
    return client.post(
        f"/api/projects/{project_id}/mutations", json={"mutation": mutation}
    )


# --- List / get ---


def test_list_projects_empty(client: TestClient):
    resp = client.get("/api/projects")
    assert resp.status_code == 200
    assert resp.json() == []


def test_list_projects(client: TestClient, stored_project: Project):
    resp = client.get("/api/projects")
    assert resp.status_code == 200
    data = resp.json()
    assert len(data) == 1
    assert data[0]["id"] == "proj-1"
    assert data[0]["startAt"] == "2025-01-01T00:00:00"


def test_get_project(client: TestClient, stored_project: Project):
    resp = client.get("/api/projects/proj-1")
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "Habit tracker"
    assert [t["id"] for t in data["tasks"]] == ["task-1", "task-2", "task-3"]
    assert data["tasks"][0]["fid"] == 1


def test_get_project_not_found(client: TestClient):
    resp = client.get("/api/projects/missing")
    assert resp.status_code == 404


# --- Replace ---


def test_replace_project(client: TestClient, stored_project: Project):
    resp = client.put(
        "/api/projects/proj-1",
        json={
            "name": "Habit tracker v2",
            "features": [{"id": 5, "title": "Only feature", "description": ""}],
            "tasks": [{"id": "t", "fid": 5, "title": "Only task", "status": "todo"}],
        },
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "Habit tracker v2"
    assert data["prd"] == "# Habit tracker"  # unchanged
    assert [f["id"] for f in data["features"]] == [5]

    assert client.get("/api/projects/proj-1").json()["tasks"][0]["title"] == "Only task"


def test_replace_project_rejects_broken_feature_reference(
    client: TestClient, stored_project: Project
):
    resp = client.put(
        "/api/projects/proj-1",
        json={"tasks": [{"id": "t", "fid": 99, "title": "Orphan"}]},
    )
    assert resp.status_code == 400
    assert "unknown features" in resp.json()["detail"]


def test_replace_project_rejects_blank_name(client: TestClient, stored_project: Project):
    resp = client.put("/api/projects/proj-1", json={"name": "  "})
    assert resp.status_code == 400


# --- Delete ---


def test_delete_project(client: TestClient, stored_project: Project):
    resp = client.delete("/api/projects/proj-1")
    assert resp.status_code == 200
    assert resp.json()["detail"] == "Project deleted"
    assert client.get("/api/projects/proj-1").status_code == 404


def test_delete_project_not_found(client: TestClient):
    assert client.delete("/api/projects/missing").status_code == 404


# --- Mutations ---


def test_move_task(client: TestClient, stored_project: Project):
    resp = _mutate(client, "proj-1", {"kind": "move_task", "task_id": "task-1", "status": "done"})
    assert resp.status_code == 200
    task = next(t for t in resp.json()["tasks"] if t["id"] == "task-1")
    assert task["status"] == "done"

    stored = client.get("/api/projects/proj-1").json()
    assert next(t for t in stored["tasks"] if t["id"] == "task-1")["status"] == "done"


def test_set_priority(client: TestClient, stored_project: Project):
    resp = _mutate(
        client,
        "proj-1",
        {"kind": "set_priority", "task_id": "task-2", "priority": "ShouldHave"},
    )
    assert resp.status_code == 200
    task = next(t for t in resp.json()["tasks"] if t["id"] == "task-2")
    assert task["priority"] == "ShouldHave"


def test_invalid_priority_rejected(client: TestClient, stored_project: Project):
    resp = _mutate(
        client, "proj-1", {"kind": "set_priority", "task_id": "task-2", "priority": "P0"}
    )
    assert resp.status_code == 422


def test_invalid_status_rejected(client: TestClient, stored_project: Project):
    resp = _mutate(client, "proj-1", {"kind": "move_task", "task_id": "task-1", "status": "blocked"})
    assert resp.status_code == 422


def test_add_feature_and_task(client: TestClient, stored_project: Project):
    resp = _mutate(client, "proj-1", {"kind": "add_feature", "title": "Reminders"})
    assert resp.status_code == 200
    assert resp.json()["features"][-1]["id"] == 3

    resp = _mutate(client, "proj-1", {"kind": "add_task", "title": "Push", "feature_id": 3})
    assert resp.status_code == 200
    task = resp.json()["tasks"][-1]
    assert task["fid"] == 3
    assert task["tag"] == "Reminders"


def test_delete_feature_cascade(client: TestClient, stored_project: Project):
    resp = _mutate(client, "proj-1", {"kind": "delete_feature", "feature_id": 1})
    assert resp.status_code == 200
    assert [t["id"] for t in resp.json()["tasks"]] == ["task-3"]


def test_mutation_accepts_camel_case_keys(client: TestClient, stored_project: Project):
    resp = _mutate(client, "proj-1", {"kind": "reassign_task", "taskId": "task-1", "featureId": 2})
    assert resp.status_code == 200
    task = next(t for t in resp.json()["tasks"] if t["id"] == "task-1")
    assert task["fid"] == 2


def test_blank_feature_title_rejected(client: TestClient, stored_project: Project):
    resp = _mutate(client, "proj-1", {"kind": "update_feature", "featureId": 1, "title": None})
    assert resp.status_code == 400

    stored = client.get("/api/projects/proj-1")
    assert stored.status_code == 200
    assert stored.json()["features"][0]["title"] == "Habits"


def test_mutation_unknown_task(client: TestClient, stored_project: Project):
    resp = _mutate(client, "proj-1", {"kind": "delete_task", "task_id": "nope"})
    assert resp.status_code == 404


def test_mutation_invalid_request(client: TestClient, stored_project: Project):
    resp = _mutate(client, "proj-1", {"kind": "delete_feature", "feature_id": 1, "policy": "reassign"})
    assert resp.status_code == 400


def test_mutation_unknown_kind(client: TestClient, stored_project: Project):
    resp = _mutate(client, "proj-1", {"kind": "explode"})
    assert resp.status_code == 422


def test_mutation_project_not_found(client: TestClient):
    resp = _mutate(client, "missing", {"kind": "delete_task", "task_id": "task-1"})
    assert resp.status_code == 404


def test_mutation_store_failure_leaves_project_unchanged(
    client: TestClient, stored_project: Project
):
    with patch.object(SqlProjectStore, "upsert", side_effect=PersistError("disk full")):
        resp = _mutate(client, "proj-1", {"kind": "move_task", "task_id": "task-1", "status": "done"})
    assert resp.status_code == 503

    stored = client.get("/api/projects/proj-1").json()
    assert next(t for t in stored["tasks"] if t["id"] == "task-1")["status"] == "doing"


def test_health(client: TestClient):
    assert client.get("/health").json() == {"status": "ok"}
