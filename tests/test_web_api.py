"""Tests for the operations and API routers."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from web.main import app
from web.services import get_operation_runner, get_scheduler_service


@pytest.fixture
def runner():
    r = MagicMock()
    r.is_running = False
    r.start_operation.return_value = True
    r.get_status_dict.return_value = {"status": "running"}
    return r


@pytest.fixture
def scheduler():
    s = MagicMock()
    s.get_status.return_value = {"running": True, "enabled": True}
    s.update_config.return_value = {"success": True, "message": "Schedule updated", "next_run": None}
    s.validate_cron.return_value = {"valid": True, "message": "Valid cron expression", "next_runs": []}
    return s


@pytest.fixture
def client(runner, scheduler):
    app.dependency_overrides[get_operation_runner] = lambda: runner
    app.dependency_overrides[get_scheduler_service] = lambda: scheduler
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestOperations:
    def test_run(self, client, runner):
        response = client.post("/operations/run", json={"verbose": True})

        assert response.status_code == 200
        assert response.json()["success"] is True
        runner.start_operation.assert_called_once_with(verbose=True)

    def test_run_without_body(self, client, runner):
        assert client.post("/operations/run").status_code == 200
        runner.start_operation.assert_called_once_with(verbose=False)

    def test_run_while_running(self, client, runner):
        runner.is_running = True

        response = client.post("/operations/run")

        assert response.status_code == 409
        assert response.json()["message"] == "Operation already in progress"
        runner.start_operation.assert_not_called()

    def test_stop(self, client, runner):
        runner.is_running = True
        runner.stop_operation.return_value = True

        assert client.post("/operations/stop").json()["success"] is True

    def test_stop_when_idle(self, client, runner):
        body = client.post("/operations/stop").json()
        assert body["success"] is False
        runner.stop_operation.assert_not_called()

    def test_status(self, client):
        assert client.get("/operations/status").json() == {"status": "running"}


class TestApi:
    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "healthy"
        assert body["scheduler_running"] is True
        assert body["operation_running"] is False

    def test_save_schedule(self, client, scheduler):
        response = client.post("/api/schedule", json={"cron_expression": "0 4 * * *"})

        assert response.json()["success"] is True
        saved = scheduler.update_config.call_args.args[0]
        assert saved.cron_expression == "0 4 * * *"
        assert saved.enabled is True

    def test_validate_cron(self, client, scheduler):
        client.get("/api/schedule/validate-cron", params={"expression": "0 3 * * *"})
        scheduler.validate_cron.assert_called_once_with("0 3 * * *")
