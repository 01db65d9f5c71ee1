"""
Tests for System API (/health, /verbosity, /info, /metrics)
"""
import logging

import pytest

from bmc_exporter import __version__
from bmc_exporter.log_config import PACKAGE_LOGGER


@pytest.fixture
def restore_level():
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    level = package_logger.level
    yield
    package_logger.setLevel(level)


class TestHealth:
    """Test health check endpoint"""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data

    def test_trace_id_generated(self, client):
        response = client.get("/health")
        assert len(response.headers["X-Trace-Id"]) == 32


class TestVerbosity:
    """Test runtime log level changes"""

    def test_set_and_get(self, client, restore_level):
        response = client.put("/verbosity?v=debug")
        assert response.status_code == 204

        response = client.get("/verbosity")
        assert response.status_code == 200
        assert response.json() == {"verbosity": "debug"}

    def test_case_insensitive(self, client, restore_level):
        assert client.put("/verbosity?v=WARN").status_code == 204
        assert client.get("/verbosity").json() == {"verbosity": "warn"}

    def test_missing_level(self, client):
        response = client.put("/verbosity")
        assert response.status_code == 400
        assert response.json()["detail"] == "'v' parameter must be specified"

    def test_invalid_level(self, client, restore_level):
        response = client.put("/verbosity?v=loud")
        assert response.status_code == 400
        assert "invalid verbosity" in response.json()["detail"]


class TestInfo:
    """Test /info"""

    def test_info(self, client):
        response = client.get("/info")
        assert response.status_code == 200
        data = response.json()
        assert data["version"] == __version__
        assert data["vault_configured"] is False
        assert data["credential_profiles"] == []
        assert data["ignored_hosts"] == 0
        assert data["settings"]["retry_max"] == 0
        assert "password" not in str(data).lower()


class TestMetrics:
    """Test the exporter's own metrics"""

    def test_metrics(self, client):
        client.get("/health")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert 'bmc_exporter_requests_total{method="GET",endpoint="/health",status_code="200"}' in response.text
