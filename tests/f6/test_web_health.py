"""Tests for health endpoint (F6)."""

import pytest
from fastapi.testclient import TestClient

from sqlgame.web.api import create_app


@pytest.fixture
def client():
    """Create test client."""
    app = create_app()
    return TestClient(app)


class TestHealthEndpoint:
    """Tests for GET /health."""

    def test_health_returns_ok(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health_returns_version(self, client):
        data = client.get("/health").json()
        assert data["version"] == "0.1.0"

    def test_health_returns_timestamp(self, client):
        """Timestamp is ISO formatted."""
        data = client.get("/health").json()
        assert "T" in data["timestamp"]
