"""
Tests for health and readiness endpoints.
"""
from unittest.mock import MagicMock, AsyncMock, patch

from src.api.main import app


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_returns_200(self, client):
        """Health endpoint returns 200 OK."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "pipeline-scoring"
        assert data["version"] == "1.0.0"


class TestReadinessEndpoint:
    """Tests for /ready endpoint."""

    def test_ready_when_initialized(self, client, services):
        """Ready endpoint returns 200 when services exist and MongoDB answers."""
        mock_client = MagicMock()
        mock_client.admin.command = AsyncMock(return_value={"ok": 1})

        with patch("src.api.routes.health.db_manager") as mock_db:
            mock_db.client = mock_client

            response = client.get("/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["mongodb"] == "connected"

    def test_not_ready_without_services(self, client):
        """Ready endpoint returns 503 before startup has built the services."""
        response = client.get("/ready")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "not_ready"
        assert "recalculator" in data["reason"]

    def test_not_ready_when_mongodb_down(self, client, services):
        mock_client = MagicMock()
        mock_client.admin.command = AsyncMock(side_effect=RuntimeError("connection refused"))

        with patch("src.api.routes.health.db_manager") as mock_db:
            mock_db.client = mock_client

            response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["reason"] == "connection refused"


class TestRootEndpoint:

    def test_root_lists_endpoints(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "Pipeline Scoring API"
        assert data["endpoints"]["score"] == "/pipeline/score (POST)"

    def test_app_title(self):
        assert app.title == "Pipeline Scoring API"
