"""
Unit tests for the IntegrationTest entity and tracker functions.
"""
from datetime import datetime, timedelta, timezone

import pytest

from core.domain.exceptions import ValidationError
from core.domain.value_objects import IntegrationTestStep, SetupPhase, StepStatus
from integrations.domain.integration_test import (
    UNKNOWN_ERROR,
    create_integration_test,
    generate_test_id,
    get_integration_test_progress,
    get_next_step,
    get_test_duration,
    integration_test_from_dict,
    integration_test_to_dict,
    is_integration_test_completed,
    is_step_completed,
    is_valid_integration_test_step,
    is_valid_setup_phase,
    is_valid_step_status,
    record_step_progress,
    validate_test_id,
)

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
URL = "https://script.google.com/macros/s/abc/exec"


def run_steps(*steps, spacing=timedelta(seconds=1)):
    test = create_integration_test(URL, now=NOW)
    for offset, step in enumerate(steps, start=1):
        test = record_step_progress(test, step, True, now=NOW + offset * spacing)
    return test


class TestTestIds:
    """Tests for test id generation and validation."""

    def test_generate(self):
        """Test the generated id embeds the epoch millis."""
        test_id = generate_test_id(NOW)
        assert test_id.startswith(f"INTEGRATION_{int(NOW.timestamp() * 1000)}_")
        assert validate_test_id(test_id) == test_id

    def test_generated_ids_differ(self):
        """Test two ids from the same instant differ."""
        assert generate_test_id(NOW) != generate_test_id(NOW)

    @pytest.mark.parametrize(
        "value", ["", None, "INTEGRATION_abc_x1", "TEST_123_abc", "INTEGRATION_123_ABC", 42]
    )
    def test_invalid_ids(self, value):
        """Test malformed ids are rejected."""
        with pytest.raises(ValidationError):
            validate_test_id(value)


class TestRecordStepProgress:
    """Tests for record_step_progress."""

    def test_new_test(self):
        """Test a new test starts in STARTED/pending with nothing completed."""
        test = create_integration_test(URL, now=NOW)

        assert test.current_step == IntegrationTestStep.STARTED
        assert test.current_step_status == StepStatus.PENDING
        assert test.completed_steps == {}
        assert get_integration_test_progress(test) == 0

    def test_create_requires_url(self):
        """Test a test needs a WebApp URL."""
        with pytest.raises(ValidationError):
            create_integration_test("")

    def test_success_marks_step_completed(self):
        """Test a successful report completes the step and merges details."""
        test = create_integration_test(URL, now=NOW)
        updated = record_step_progress(
            test,
            IntegrationTestStep.GAS_WEBHOOK_RECEIVED,
            True,
            {"applicationSK": "APPLICATION#x"},
            now=NOW + timedelta(seconds=2),
        )

        assert updated.current_step == IntegrationTestStep.GAS_WEBHOOK_RECEIVED
        assert updated.current_step_status == StepStatus.SUCCESS
        assert is_step_completed(updated, IntegrationTestStep.GAS_WEBHOOK_RECEIVED)
        assert updated.application_sk == "APPLICATION#x"
        assert test.completed_steps == {}

    def test_failure_keeps_completed_steps(self):
        """Test a failed report records the error without touching completed steps."""
        test = run_steps(IntegrationTestStep.STARTED)
        failed = record_step_progress(
            test, IntegrationTestStep.GAS_WEBHOOK_RECEIVED, False, {"error": "timeout"}, now=NOW
        )

        assert failed.current_step_status == StepStatus.FAILED
        assert failed.last_error.message == "timeout"
        assert failed.last_error.step == IntegrationTestStep.GAS_WEBHOOK_RECEIVED
        assert list(failed.completed_steps) == [IntegrationTestStep.STARTED]

    def test_failure_without_message(self):
        """Test a failure without details gets a default message."""
        failed = record_step_progress(
            create_integration_test(URL, now=NOW), IntegrationTestStep.STARTED, False
        )
        assert failed.last_error.message == UNKNOWN_ERROR

    def test_success_clears_last_error(self):
        """Test a later success clears the error."""
        test = create_integration_test(URL, now=NOW)
        failed = record_step_progress(test, IntegrationTestStep.STARTED, False, now=NOW)
        recovered = record_step_progress(failed, IntegrationTestStep.STARTED, True, now=NOW)
        assert recovered.last_error is None

    def test_repeated_success_keeps_first_time(self):
        """Test a duplicate report does not move the completion time."""
        test = run_steps(IntegrationTestStep.STARTED)
        first = test.completed_steps[IntegrationTestStep.STARTED]

        again = record_step_progress(
            test, IntegrationTestStep.STARTED, True, now=NOW + timedelta(minutes=1)
        )

        assert again.completed_steps[IntegrationTestStep.STARTED] == first
        assert get_integration_test_progress(again) == 25

    def test_out_of_order_reports(self):
        """Test steps reported out of order still count."""
        test = run_steps(IntegrationTestStep.LICENSE_ISSUED, IntegrationTestStep.STARTED)
        assert list(test.completed_steps) == [
            IntegrationTestStep.LICENSE_ISSUED,
            IntegrationTestStep.STARTED,
        ]
        assert get_integration_test_progress(test) == 50


class TestTrackerQueries:
    """Tests for progress, completion and duration."""

    def test_full_run(self):
        """Test a complete run."""
        test = run_steps(*IntegrationTestStep)

        assert is_integration_test_completed(test)
        assert get_integration_test_progress(test) == 100
        assert get_test_duration(test) == 3000

    def test_duration_spans_started_to_completed(self):
        """Test the duration is measured between the STARTED and COMPLETED confirmations."""
        test = run_steps(*IntegrationTestStep, spacing=timedelta(minutes=1))

        assert test.completed_steps[IntegrationTestStep.STARTED] == NOW + timedelta(minutes=1)
        assert test.completed_steps[IntegrationTestStep.COMPLETED] == NOW + timedelta(minutes=4)
        assert get_test_duration(test) == 180000

    @pytest.mark.parametrize("count,expected", [(0, 0), (1, 25), (2, 50), (3, 75), (4, 100)])
    def test_progress_per_confirmed_step(self, count, expected):
        """Test each confirmed step adds a quarter of the progress."""
        test = run_steps(*list(IntegrationTestStep)[:count])

        assert len(test.completed_steps) == count
        assert get_integration_test_progress(test) == expected
        assert is_integration_test_completed(test) is (count == 4)

    def test_completed_requires_success(self):
        """Test a failed COMPLETED report does not complete the test."""
        test = run_steps(IntegrationTestStep.STARTED)
        failed = record_step_progress(test, IntegrationTestStep.COMPLETED, False, now=NOW)

        assert not is_integration_test_completed(failed)
        assert get_test_duration(failed) is None

    def test_none_test(self):
        """Test tracker queries on a missing test."""
        assert not is_integration_test_completed(None)
        assert get_integration_test_progress(None) == 0
        assert get_test_duration(None) is None
        assert not is_step_completed(None, IntegrationTestStep.STARTED)

    @pytest.mark.parametrize(
        "step,expected",
        [
            (IntegrationTestStep.STARTED, IntegrationTestStep.GAS_WEBHOOK_RECEIVED),
            ("GAS_WEBHOOK_RECEIVED", IntegrationTestStep.LICENSE_ISSUED),
            (IntegrationTestStep.LICENSE_ISSUED, IntegrationTestStep.COMPLETED),
            (IntegrationTestStep.COMPLETED, None),
            ("BOGUS", None),
            (None, None),
        ],
    )
    def test_next_step(self, step, expected):
        """Test the step successor."""
        assert get_next_step(step) == expected

    def test_validators(self):
        """Test the enum membership checks."""
        assert is_valid_integration_test_step("LICENSE_ISSUED")
        assert not is_valid_integration_test_step("license_issued")
        assert is_valid_step_status(StepStatus.FAILED)
        assert not is_valid_step_status("")
        assert is_valid_setup_phase("PRODUCTION")
        assert not is_valid_setup_phase(SetupPhase)


class TestSerialization:
    """Tests for the stored form."""

    def test_round_trip(self):
        """Test a test with errors and details survives storage."""
        test = run_steps(IntegrationTestStep.STARTED)
        test = record_step_progress(
            test,
            IntegrationTestStep.LICENSE_ISSUED,
            True,
            {"licenseId": "lic", "applicationSK": "APPLICATION#x"},
            now=NOW,
        )
        test = record_step_progress(test, IntegrationTestStep.COMPLETED, False, {"error": "e"}, now=NOW)

        data = integration_test_to_dict(test)

        assert data["completedSteps"] == {
            "STARTED": "2024-03-15T12:00:01.000Z",
            "LICENSE_ISSUED": "2024-03-15T12:00:00.000Z",
        }
        assert data["lastError"]["message"] == "e"
        assert integration_test_from_dict(data) == test

    def test_minimal_form(self):
        """Test optional keys are omitted."""
        data = integration_test_to_dict(create_integration_test(URL, test_id="INTEGRATION_1_abc", now=NOW))
        assert set(data) == {"testId", "gasWebappUrl", "currentStep", "currentStepStatus", "lastUpdated"}
