"""
Integration tests for Integration Test and Webhook API endpoints.
"""
import pytest
import requests
from django.urls import reverse

from integrations.infrastructure.gas_webapp_client import RequestsGasWebAppClient

URL = "https://script.google.com/macros/s/abc/exec"


@pytest.fixture
def gas_calls(monkeypatch):
    """Record GAS WebApp triggers instead of sending them."""
    calls = []
    monkeypatch.setattr(
        RequestsGasWebAppClient,
        "trigger_test",
        lambda self, url, test_id, timestamp: calls.append((url, test_id)),
    )
    return calls


def start_test(client):
    response = client.post(
        reverse("integration:start-integration-test"), {"gasWebappUrl": URL}, format="json"
    )
    assert response.status_code == 201
    return response.json()


def report_step(client, test_id, step, success=True, details=None):
    body = {"action": "integration_test_step", "testId": test_id, "step": step, "success": success}
    if details is not None:
        body["details"] = details
    return client.post(reverse("webhooks:webhook-events"), body, format="json")


@pytest.mark.django_db
@pytest.mark.integration
class TestIntegrationTestAPI:
    """Integration tests for starting and tracking integration tests."""

    def test_start(self, user_client, gas_calls):
        """Test starting a test triggers the WebApp."""
        data = start_test(user_client)

        assert data["status"] == "success"
        assert data["next_step"] == "GAS_WEBHOOK_RECEIVED"
        assert data["error"] is None
        assert gas_calls == [(URL, data["test_id"])]

    def test_start_with_unreachable_webapp(self, user_client, monkeypatch):
        """Test a failed WebApp call is reported, not raised."""

        def refuse(self, url, test_id, timestamp):
            raise requests.exceptions.ConnectionError("refused")

        monkeypatch.setattr(RequestsGasWebAppClient, "trigger_test", refuse)

        data = start_test(user_client)

        assert data["status"] == "failed"
        assert "refused" in data["error"]

    def test_start_while_running(self, user_client, gas_calls):
        """Test a second start while a test runs conflicts."""
        start_test(user_client)

        response = user_client.post(
            reverse("integration:start-integration-test"), {"gasWebappUrl": URL}, format="json"
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INTEGRATION_TEST_IN_PROGRESS"

    def test_start_requires_url(self, user_client, gas_calls):
        """Test the WebApp URL must be a URL."""
        response = user_client.post(
            reverse("integration:start-integration-test"), {"gasWebappUrl": "nope"}, format="json"
        )
        assert response.status_code == 400
        assert gas_calls == []

    def test_status_without_test(self, user_client):
        """Test the status of a user who never started a test."""
        response = user_client.get(reverse("integration:integration-test-status"))

        assert response.status_code == 200
        assert response.json() == {
            "active": False,
            "test": None,
            "can_retry": True,
            "next_step": None,
            "progress": 0,
            "duration_ms": None,
        }

    def test_full_run(self, user_client, user_id, gas_calls):
        """Test a run driven by harness webhooks reaches 100 percent."""
        test_id = start_test(user_client)["test_id"]
        submission = user_client.post(
            reverse("webhooks:webhook-events"),
            {
                "action": "form_submission",
                "userId": user_id,
                "fields": {
                    "eaName": "Integration Test EA",
                    "broker": "Test Broker",
                    "accountNumber": "INTEGRATION_TEST_123456",
                    "email": "trader@example.com",
                    "integrationTestId": test_id,
                },
            },
            format="json",
        )
        assert submission.status_code == 201

        for step in ("LICENSE_ISSUED", "COMPLETED"):
            response = report_step(user_client, test_id, step)
            assert response.status_code == 200

        status = user_client.get(reverse("integration:integration-test-status")).json()
        assert status["progress"] == 100
        assert status["active"] is False
        assert status["duration_ms"] is not None
        assert status["test"]["applicationSK"] == submission.json()["application"]["sk"]


@pytest.mark.django_db
@pytest.mark.integration
class TestWebhookAPI:
    """Integration tests for the inbound webhook endpoint."""

    def test_unknown_action(self, api_client):
        """Test an unknown action is rejected."""
        response = api_client.post(
            reverse("webhooks:webhook-events"), {"action": "ping"}, format="json"
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_malformed_form(self, api_client):
        """Test a form submission missing required fields."""
        response = api_client.post(
            reverse("webhooks:webhook-events"),
            {"action": "form_submission", "userId": "user-1", "fields": {"eaName": "X"}},
            format="json",
        )
        assert response.status_code == 400

    def test_step_for_unknown_test(self, api_client):
        """Test a step report for a test nobody runs."""
        response = report_step(api_client, "INTEGRATION_1700000000000_abcd1234", "STARTED")

        assert response.status_code == 404

    def test_step_report(self, user_client, gas_calls):
        """Test a failed step report is recorded."""
        test_id = start_test(user_client)["test_id"]

        response = report_step(
            user_client, test_id, "GAS_WEBHOOK_RECEIVED", success=False, details={"error": "boom"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "action": "integration_test_step",
            "test_id": test_id,
            "current_step": "GAS_WEBHOOK_RECEIVED",
            "current_step_status": "failed",
            "progress": 25,
        }

    def test_form_for_another_users_test(self, user_client, api_client, gas_calls):
        """Test a form naming someone else's test is refused and stores nothing."""
        test_id = start_test(user_client)["test_id"]

        response = api_client.post(
            reverse("webhooks:webhook-events"),
            {
                "action": "form_submission",
                "userId": "intruder",
                "fields": {
                    "eaName": "Integration Test EA",
                    "broker": "Test Broker",
                    "accountNumber": "9",
                    "email": "intruder@example.com",
                    "integrationTestId": test_id,
                },
            },
            format="json",
        )

        assert response.status_code == 404
        status = user_client.get(reverse("integration:integration-test-status")).json()
        assert status["progress"] == 25
        assert status["test"].get("applicationSK") is None

        api_client.credentials(HTTP_X_USER_ID="intruder")
        assert api_client.get(reverse("applications:list-applications")).json() == []

    def test_signature_required_when_configured(self, api_client, settings):
        """Test unsigned events are refused once a secret is set."""
        settings.WEBHOOK_SIGNING_SECRET = "s3cret"

        response = api_client.post(
            reverse("webhooks:webhook-events"), {"action": "form_submission"}, format="json"
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_SIGNATURE"
