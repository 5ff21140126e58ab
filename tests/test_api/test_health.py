"""Tests for the health endpoint and request ID tracking."""

import uuid

from insighter_server.database import DatabaseFactory


class TestHealthEndpoint:
    """Tests for /api/v1/health endpoint."""

    def test_health_returns_200(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200

    def test_health_contains_status_version_uptime(self, client):
        data = client.get("/api/v1/health").json()
        assert data["status"] == "ok"
        assert data["database"] == "ok"
        assert isinstance(data["version"], str)
        assert data["uptime"] >= 0

    def test_health_does_not_require_auth(self, client):
        response = client.get("/api/v1/health", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 200

    def test_health_degraded_when_database_unreachable(self, client, monkeypatch):
        async def failing_ping():
            return False

        monkeypatch.setattr(DatabaseFactory, "ping", failing_ping)
        data = client.get("/api/v1/health").json()
        assert data["status"] == "degraded"
        assert data["database"] == "unreachable"


class TestRequestIDTracking:
    """Every response carries X-Request-ID."""

    def test_response_contains_request_id_header(self, client):
        response = client.get("/api/v1/health")
        uuid.UUID(response.headers["X-Request-ID"])

    def test_each_request_gets_unique_id(self, client):
        ids = {client.get("/api/v1/health").headers["X-Request-ID"] for _ in range(10)}
        assert len(ids) == 10

    def test_request_id_is_echoed(self, client):
        response = client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_error_responses_carry_request_id(self, client):
        response = client.get("/api/v1/auth/me")
        assert response.status_code == 401
        assert "X-Request-ID" in response.headers


class TestErrorBody:
    """Errors share the {error, error_code, details} body."""

    def test_unknown_route(self, client):
        response = client.get("/api/v1/does-not-exist")
        assert response.status_code == 404
        body = response.json()
        assert body["error_code"] == "NOT_FOUND"
        assert "error" in body

    def test_validation_error_is_400(self, client):
        response = client.post("/api/v1/auth/register", json={"email": "not-an-email"})
        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert body["details"]["errors"]
