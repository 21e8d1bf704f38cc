"""Tests for health check endpoints."""

import pytest
from unittest.mock import patch, MagicMock
from fastapi.testclient import TestClient

import redis

from assethub.api.routers.health import check_broker, check_database
from assethub.core.config import Settings


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_basic_health_check(self, client: TestClient):
        """Test /health returns 200."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data
        assert "timestamp" in data

    def test_readiness_healthy(self, client: TestClient):
        """Test /health/ready when the database is reachable."""
        response = client.get("/health/ready")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["checks"]["database"]["status"] == "healthy"
        assert "broker" not in data["checks"]

    def test_readiness_checks_broker_in_queued_mode(self, client: TestClient):
        """Test an unreachable broker makes the service not ready."""
        queued = Settings(notification_mode="queued", _env_file=None)
        with patch("assethub.api.routers.health.get_settings", return_value=queued), \
                patch("assethub.api.routers.health.check_broker",
                      return_value={"status": "unhealthy", "error": "refused"}):
            response = client.get("/health/ready")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "not_ready"
        assert data["failed"] == ["broker"]

    def test_health_not_request_logged(self, client: TestClient):
        """Test health checks skip the request log and its request id header."""
        assert "X-Request-ID" not in client.get("/health").headers
        assert client.get("/").headers.get("X-Request-ID")


class TestHealthChecks:
    """Test the individual dependency checks."""

    def test_check_database(self, db_session):
        result = check_database(db_session)
        assert result == {"status": "healthy", "dialect": "sqlite"}

    def test_check_broker_down(self):
        broken = MagicMock()
        broken.ping.side_effect = redis.ConnectionError("refused")
        with patch("assethub.api.routers.health.redis.from_url", return_value=broken):
            result = check_broker()
        assert result["status"] == "unhealthy"
        assert "refused" in result["error"]

    def test_check_broker_up(self):
        healthy = MagicMock()
        healthy.info.return_value = {"redis_version": "7.2.0"}
        with patch("assethub.api.routers.health.redis.from_url", return_value=healthy):
            result = check_broker()
        assert result == {"status": "healthy", "version": "7.2.0"}
