"""
HTTP-level tests for the health and sync endpoints.

The syncer is replaced through FastAPI dependency overrides so no database
or Google API is touched.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.main import app, get_cors_origins, health
from app.models.account import CycleResult
from app.routers.sync import get_syncer

AUTH = {"Authorization": "Bearer s3cret"}


@pytest.fixture(autouse=True)
def api_secret(monkeypatch):
    monkeypatch.setenv("API_SECRET", "s3cret")


@pytest.fixture
def syncer():
    mock_syncer = MagicMock()
    app.dependency_overrides[get_syncer] = lambda: mock_syncer
    yield mock_syncer
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


class TestHealth:

    def test_health_needs_no_auth(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "ledger-sync-backend"
        assert "timestamp" in body

    @pytest.mark.asyncio
    async def test_health_handler(self):
        body = await health()
        assert body["status"] == "healthy"


class TestTriggerSync:

    def test_missing_auth_is_401(self, client, syncer):
        response = client.post("/api/trigger-sync")

        assert response.status_code == 401
        syncer.run_cycle.assert_not_called()

    def test_wrong_secret_is_403(self, client, syncer):
        response = client.post("/api/trigger-sync", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 403
        syncer.run_cycle.assert_not_called()

    def test_successful_cycle(self, client, syncer):
        syncer.run_cycle.return_value = CycleResult(
            success=True,
            message="3 transactions, 1 missed",
            accounts=2,
            total_transactions=3,
            total_missed=1,
            duration=4,
        )

        response = client.post("/api/trigger-sync", headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Sync completed successfully"
        assert body["data"]["total_transactions"] == 3
        assert body["data"]["total_missed"] == 1
        assert body["data"]["duration"] == 4
        assert "timestamp" in body

    def test_failed_cycle_is_503(self, client, syncer):
        syncer.run_cycle.return_value = CycleResult(
            success=False, error="Database error: timeout"
        )

        response = client.post("/api/trigger-sync", headers=AUTH)

        assert response.status_code == 503
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Sync failed"
        assert body["data"]["error"] == "Database error: timeout"

    def test_unexpected_error_is_500(self, client, syncer):
        syncer.run_cycle.side_effect = RuntimeError("boom")

        response = client.post("/api/trigger-sync", headers=AUTH)

        assert response.status_code == 500
        assert "boom" in response.json()["detail"]


class TestNotifyUpdate:

    def test_acknowledges(self, client):
        response = client.post(
            "/api/notify-update",
            headers=AUTH,
            json={"userId": "user-1", "transactionCount": 3},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Notification received"

    def test_requires_auth(self, client):
        response = client.post("/api/notify-update", json={"userId": "user-1"})
        assert response.status_code == 401


class TestCorsOrigins:

    def test_unset_allows_all(self, monkeypatch):
        monkeypatch.delenv("FRONTEND_URL", raising=False)
        assert get_cors_origins() == ["*"]

    def test_comma_list_deduplicated(self, monkeypatch):
        monkeypatch.setenv(
            "FRONTEND_URL",
            "https://app.example.com, http://localhost:3000,https://app.example.com",
        )
        assert get_cors_origins() == ["https://app.example.com", "http://localhost:3000"]
