"""
Unit tests for IntegrationTestPoller.
"""
from datetime import datetime, timezone

import pytest

from core.domain.exceptions import PollingTimeoutError
from core.domain.value_objects import IntegrationTestStep
from integrations.application.services.integration_test_service import build_status
from integrations.application.services.poller import IntegrationTestPoller
from integrations.domain.integration_test import create_integration_test, record_step_progress

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
URL = "https://script.google.com/macros/s/abc/exec"


def running():
    test = create_integration_test(URL, now=NOW)
    return build_status(record_step_progress(test, IntegrationTestStep.STARTED, True, now=NOW))


def completed():
    test = create_integration_test(URL, now=NOW)
    for step in IntegrationTestStep:
        test = record_step_progress(test, step, True, now=NOW)
    return build_status(test)


def failed():
    test = create_integration_test(URL, now=NOW)
    return build_status(
        record_step_progress(test, IntegrationTestStep.STARTED, False, {"error": "x"}, now=NOW)
    )


class ScriptedReader:
    """Status reader returning a fixed sequence of statuses."""

    def __init__(self, *statuses):
        self.statuses = list(statuses)
        self.reads = 0

    async def __call__(self, user_id):
        status = self.statuses[min(self.reads, len(self.statuses) - 1)]
        self.reads += 1
        return status


class RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.mark.asyncio
class TestIntegrationTestPoller:
    """Tests for IntegrationTestPoller.wait_for_completion."""

    async def test_returns_on_completion(self):
        """Test polling stops at the first completed status."""
        reader = ScriptedReader(running(), running(), completed())
        sleep = RecordingSleep()
        poller = IntegrationTestPoller(reader, interval_seconds=2, max_attempts=5, sleep=sleep)

        status = await poller.wait_for_completion("user-1")

        assert status.progress == 100
        assert reader.reads == 3
        assert sleep.calls == [2, 2]

    async def test_returns_on_failure(self):
        """Test a failed step ends polling."""
        reader = ScriptedReader(running(), failed())
        poller = IntegrationTestPoller(reader, interval_seconds=0, max_attempts=5, sleep=RecordingSleep())

        status = await poller.wait_for_completion("user-1")

        assert status.can_retry
        assert reader.reads == 2

    async def test_missing_test_keeps_polling(self):
        """Test a user without a test is not treated as finished."""
        reader = ScriptedReader(build_status(None), completed())
        poller = IntegrationTestPoller(reader, interval_seconds=0, max_attempts=3, sleep=RecordingSleep())

        await poller.wait_for_completion("user-1")
        assert reader.reads == 2

    async def test_times_out_after_max_attempts(self):
        """Test exactly max_attempts reads happen before giving up."""
        reader = ScriptedReader(running())
        sleep = RecordingSleep()
        poller = IntegrationTestPoller(reader, interval_seconds=1, max_attempts=4, sleep=sleep)

        with pytest.raises(PollingTimeoutError) as exc_info:
            await poller.wait_for_completion("user-1")

        assert reader.reads == 4
        assert len(sleep.calls) == 3
        assert exc_info.value.context["progress"] == 25
        assert exc_info.value.context["attempts"] == 4

    async def test_defaults_from_settings(self, settings):
        """Test interval and attempts default to settings."""
        settings.INTEGRATION_TEST_POLL_INTERVAL_SECONDS = 0.5
        settings.INTEGRATION_TEST_POLL_MAX_ATTEMPTS = 2
        reader = ScriptedReader(running())
        sleep = RecordingSleep()

        with pytest.raises(PollingTimeoutError):
            await IntegrationTestPoller(reader, sleep=sleep).wait_for_completion("user-1")

        assert reader.reads == 2
        assert sleep.calls == [0.5]
