"""
Integration tests for health, readiness and metrics endpoints.
"""
import pytest
from django.urls import reverse


@pytest.mark.django_db
@pytest.mark.integration
class TestHealthAPI:
    """Integration tests for operational endpoints."""

    def test_health(self, client):
        """Test the liveness endpoint."""
        response = client.get(reverse("health"))

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health_db(self, client):
        """Test the database check."""
        response = client.get(reverse("health-db"))
        assert response.json() == {"status": "healthy", "database": "connected"}

    def test_ready(self, client):
        """Test the readiness endpoint."""
        response = client.get(reverse("ready"))

        assert response.status_code == 200
        assert response.json()["checks"] == {"database": True}

    def test_metrics(self, client):
        """Test requests are counted in the Prometheus registry."""
        client.get(reverse("health"))

        response = client.get(reverse("metrics"))

        assert response.status_code == 200
        assert b"http_requests_total" in response.content
