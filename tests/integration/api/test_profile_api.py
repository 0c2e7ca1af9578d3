"""
Integration tests for Profile API endpoints.
"""
import pytest
from django.urls import reverse


@pytest.mark.django_db
@pytest.mark.integration
class TestProfileAPI:
    """Integration tests for the profile endpoints."""

    def test_get_creates_profile(self, user_client, user_id):
        """Test the first read returns a default profile."""
        response = user_client.get(reverse("profile:profile"))

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == user_id
        assert data["setup_phase"] == "SETUP"
        assert data["notification_enabled"] is True
        assert data["test_results"] is None

    def test_get_requires_identity(self, api_client):
        """Test anonymous reads are refused."""
        response = api_client.get(reverse("profile:profile"))
        assert response.status_code == 401

    def test_update_notification_settings(self, user_client):
        """Test switching notifications off persists."""
        response = user_client.patch(
            reverse("profile:profile"), {"notificationEnabled": False}, format="json"
        )

        assert response.status_code == 200
        assert response.json()["notification_enabled"] is False
        assert user_client.get(reverse("profile:profile")).json()["notification_enabled"] is False

    def test_update_requires_flag(self, user_client):
        """Test the body must carry notificationEnabled."""
        response = user_client.patch(reverse("profile:profile"), {}, format="json")
        assert response.status_code == 400

    def test_progress_setup_phase(self, user_client):
        """Test moving through the setup phases one at a time."""
        url = reverse("profile:progress-setup-phase")

        first = user_client.post(url, {"targetPhase": "TEST"}, format="json")
        second = user_client.post(url, {"targetPhase": "PRODUCTION"}, format="json")

        assert first.json()["setup_phase"] == "TEST"
        assert second.json()["setup_phase"] == "PRODUCTION"

    def test_skipping_a_phase_conflicts(self, user_client):
        """Test SETUP cannot jump to PRODUCTION."""
        response = user_client.post(
            reverse("profile:progress-setup-phase"), {"targetPhase": "PRODUCTION"}, format="json"
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_TRANSITION"

    def test_unknown_phase(self, user_client):
        """Test an unknown target phase."""
        response = user_client.post(
            reverse("profile:progress-setup-phase"), {"targetPhase": "LIVE"}, format="json"
        )
        assert response.status_code == 400

    def test_gas_connection_check_unlocks_test_phase(self, user_client, user_id):
        """Test a passed GAS connection check shows up on the profile."""
        response = user_client.post(
            reverse("webhooks:webhook-events"),
            {
                "action": "gas_connection_test",
                "userId": user_id,
                "testResult": {"success": True, "timestamp": "2024-01-01T00:00:00Z"},
            },
            format="json",
        )

        assert response.status_code == 200
        assert response.json()["setup_phase"] == "TEST"
        assert response.json()["next_step"] == "Ready for integration test"

        profile = user_client.get(reverse("profile:profile")).json()
        assert profile["setup_phase"] == "TEST"
        assert profile["test_results"]["setupTest"]["success"] is True
        assert profile["test_results"]["setupTest"]["timestamp"].startswith("2024-01-01T00:00:00")
