"""Web API tests for task endpoints.

Tests GET/POST /api/tasks, GET/PUT/DELETE /api/tasks/<id> and /health.
"""

from __future__ import annotations

import json

import pytest
from flask.testing import FlaskClient

from tasksync.core.events import TaskEventType
from tasksync.core.mutations import MutationEngine
from tasksync.core.store import MemoryTaskStore

from tests.helpers import START_MS, FakeClock, RecordingSink


@pytest.mark.web
class TestHealth:
    """Test GET /health endpoint."""

    def test_health(self, client: FlaskClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.get_json() == {"status": "ok", "serverTime": START_MS}

    def test_cors_header(self, client: FlaskClient) -> None:
        """Test that browser clients on other origins are allowed."""
        response = client.get("/health", headers={"Origin": "http://localhost:5173"})
        assert response.headers.get("Access-Control-Allow-Origin") in ("*", "http://localhost:5173")


@pytest.mark.web
class TestCreateTask:
    """Test POST /api/tasks endpoint."""

    def test_create_task(self, client: FlaskClient, sink: RecordingSink) -> None:
        """Test creating a task with defaults applied."""
        response = client.post("/api/tasks", json={"title": "Buy milk", "userId": "u1"})

        assert response.status_code == 201
        data = response.get_json()
        assert data["success"] is True
        task = data["task"]
        assert task["title"] == "Buy milk"
        assert task["userId"] == "u1"
        assert task["version"] == 1
        assert task["completed"] is False
        assert task["priority"] == "medium"
        assert task["createdAt"] == START_MS
        assert task["updatedAt"] == START_MS
        assert [e.type for e in sink.events] == [TaskEventType.TASK_CREATED]

    def test_create_uses_default_user(self, client: FlaskClient) -> None:
        response = client.post("/api/tasks", json={"title": "A"})
        assert response.get_json()["task"]["userId"] == "user1"

    def test_create_out_of_range_created_at(self, client: FlaskClient) -> None:
        """Test that a createdAt no store can hold falls back to the server time."""
        response = client.post("/api/tasks", json={"title": "A", "createdAt": 1e20})

        assert response.status_code == 201
        assert response.get_json()["task"]["createdAt"] == START_MS

    def test_create_missing_title(self, client: FlaskClient, memory_store: MemoryTaskStore) -> None:
        response = client.post("/api/tasks", json={"description": "no title"})

        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid title: is required"}
        assert len(memory_store) == 0

    def test_create_without_body(self, client: FlaskClient) -> None:
        response = client.post("/api/tasks", data="not json", content_type="text/plain")

        assert response.status_code == 400
        assert response.get_json()["error"] == "Request body is required"

    def test_create_non_object_body(self, client: FlaskClient) -> None:
        response = client.post("/api/tasks", json=["title"])
        assert response.status_code == 400
        assert "payload" in response.get_json()["error"]


@pytest.mark.web
class TestGetTasks:
    """Test GET /api/tasks endpoint."""

    @pytest.fixture(autouse=True)
    def seed(self, app_engine: MutationEngine, clock: FakeClock) -> None:
        app_engine.create({"id": "a", "title": "A", "userId": "u1"})
        clock.advance()
        app_engine.create({"id": "b", "title": "B", "userId": "u1"})
        app_engine.create({"id": "c", "title": "C", "userId": "u2"})

    def test_list_for_user(self, client: FlaskClient) -> None:
        response = client.get("/api/tasks?userId=u1")

        assert response.status_code == 200
        assert response.content_type == "application/json"
        data = response.get_json()
        assert data["success"] is True
        assert [t["id"] for t in data["tasks"]] == ["a", "b"]
        assert data["lastSync"] == START_MS + 1000
        assert data["serverTime"] == START_MS + 1000

    def test_modified_since_is_exclusive(self, client: FlaskClient) -> None:
        response = client.get(f"/api/tasks?userId=u1&modifiedSince={START_MS}")
        assert [t["id"] for t in response.get_json()["tasks"]] == ["b"]

    def test_default_user(self, client: FlaskClient) -> None:
        assert client.get("/api/tasks").get_json()["tasks"] == []

    def test_invalid_modified_since(self, client: FlaskClient) -> None:
        response = client.get("/api/tasks?userId=u1&modifiedSince=yesterday")

        assert response.status_code == 400
        assert "modifiedSince" in response.get_json()["error"]

    def test_empty_modified_since_is_ignored(self, client: FlaskClient) -> None:
        response = client.get("/api/tasks?userId=u1&modifiedSince=")
        assert len(response.get_json()["tasks"]) == 2


@pytest.mark.web
class TestGetTask:
    """Test GET /api/tasks/<id> endpoint."""

    def test_get_task(self, client: FlaskClient, app_engine: MutationEngine) -> None:
        task = app_engine.create({"title": "A"})

        response = client.get(f"/api/tasks/{task.id}")

        assert response.status_code == 200
        assert response.get_json()["task"] == task.to_dict()

    def test_get_missing_task(self, client: FlaskClient) -> None:
        response = client.get("/api/tasks/nope")

        assert response.status_code == 404
        assert response.get_json() == {"error": "Task nope not found"}


@pytest.mark.web
class TestUpdateTask:
    """Test PUT /api/tasks/<id> endpoint."""

    def test_update_task(self, client: FlaskClient, app_engine: MutationEngine, clock: FakeClock) -> None:
        task = app_engine.create({"title": "Buy milk"})
        clock.advance()

        response = client.put(f"/api/tasks/{task.id}", json={"version": 1, "completed": True})

        assert response.status_code == 200
        updated = response.get_json()["task"]
        assert updated["version"] == 2
        assert updated["completed"] is True
        assert updated["title"] == "Buy milk"
        assert updated["updatedAt"] == START_MS + 1000

    def test_stale_update_conflicts(
        self, client: FlaskClient, app_engine: MutationEngine, memory_store: MemoryTaskStore
    ) -> None:
        task = app_engine.create({"title": "A"})
        app_engine.update(task.id, 1, {"title": "B"})

        response = client.put(f"/api/tasks/{task.id}", data=json.dumps({"version": 1, "title": "x"}),
                              content_type="application/json")

        assert response.status_code == 409
        data = response.get_json()
        assert data["conflict"] is True
        assert data["error"] == "Stale version"
        assert data["serverTask"]["version"] == 2
        assert data["serverTask"]["title"] == "B"
        assert memory_store.get_by_id(task.id).title == "B"

    def test_update_missing_version(self, client: FlaskClient, app_engine: MutationEngine) -> None:
        task = app_engine.create({"title": "A"})

        response = client.put(f"/api/tasks/{task.id}", json={"title": "B"})

        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid version: is required"

    def test_update_missing_task(self, client: FlaskClient) -> None:
        response = client.put("/api/tasks/nope", json={"version": 1, "title": "B"})
        assert response.status_code == 404

    def test_update_non_object_body(self, client: FlaskClient, app_engine: MutationEngine) -> None:
        task = app_engine.create({"title": "A"})
        response = client.put(f"/api/tasks/{task.id}", json=[1, 2])
        assert response.status_code == 400


@pytest.mark.web
class TestDeleteTask:
    """Test DELETE /api/tasks/<id> endpoint."""

    def test_delete_task(
        self, client: FlaskClient, app_engine: MutationEngine, memory_store: MemoryTaskStore
    ) -> None:
        task = app_engine.create({"title": "A"})

        response = client.delete(f"/api/tasks/{task.id}?version=1")

        assert response.status_code == 200
        assert response.get_json() == {"success": True}
        assert memory_store.get_by_id(task.id) is None

    def test_delete_missing_task_succeeds(self, client: FlaskClient) -> None:
        response = client.delete("/api/tasks/nope")
        assert response.status_code == 200

    def test_delete_stale_version(self, client: FlaskClient, app_engine: MutationEngine) -> None:
        task = app_engine.create({"title": "A"})
        app_engine.update(task.id, 1, {"title": "B"})

        response = client.delete(f"/api/tasks/{task.id}?version=1")

        assert response.status_code == 409
        assert response.get_json()["serverTask"]["version"] == 2


@pytest.mark.web
class TestErrorHandlers:
    """Test JSON error responses for unknown routes and methods."""

    def test_unknown_route(self, client: FlaskClient) -> None:
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.get_json() == {"error": "Not found"}

    def test_method_not_allowed(self, client: FlaskClient) -> None:
        response = client.patch("/api/tasks")
        assert response.status_code == 405
        assert response.get_json() == {"error": "Method not allowed"}

    def test_store_failure_is_500(self, client: FlaskClient, memory_store: MemoryTaskStore,
                                  monkeypatch: pytest.MonkeyPatch) -> None:
        def broken(*args: object, **kwargs: object) -> None:
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(memory_store, "get_by_filter", broken)

        response = client.get("/api/tasks")

        assert response.status_code == 500
        assert response.get_json() == {"error": "database unavailable"}
