"""
IntegrationTest domain entity and tracker functions.

An integration test exercises a developer's GAS WebApp end to end:
STARTED -> GAS_WEBHOOK_RECEIVED -> LICENSE_ISSUED -> COMPLETED. Reports may
arrive late, twice or out of order, so progress and completion are computed
from ``completed_steps`` (confirmed successes only) and never from
``current_step``.
"""
import re
import secrets
import string
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Union

from core.domain.exceptions import ValidationError
from core.domain.timestamps import from_iso, to_iso, utcnow
from core.domain.value_objects import IntegrationTestStep, SetupPhase, StepStatus

TEST_ID_PREFIX = "INTEGRATION_"
TEST_ID_PATTERN = re.compile(r"^INTEGRATION_\d+_[a-z0-9]+$")
TEST_ID_SUFFIX_LENGTH = 8
_BASE36 = string.digits + string.ascii_lowercase

STEP_ORDER = (
    IntegrationTestStep.STARTED,
    IntegrationTestStep.GAS_WEBHOOK_RECEIVED,
    IntegrationTestStep.LICENSE_ISSUED,
    IntegrationTestStep.COMPLETED,
)

UNKNOWN_ERROR = "Unknown error"


@dataclass(frozen=True)
class StepError:
    """Most recent failed step report."""

    step: IntegrationTestStep
    timestamp: datetime
    message: str


@dataclass(frozen=True)
class IntegrationTest:
    """
    IntegrationTest domain entity.

    ``completed_steps`` maps each confirmed step to the time it was first
    confirmed; insertion order is completion order and entries are never
    removed.
    """

    test_id: str
    gas_webapp_url: str
    current_step: IntegrationTestStep
    current_step_status: StepStatus
    last_updated: datetime
    completed_steps: Dict[IntegrationTestStep, datetime] = field(default_factory=dict)
    last_error: Optional[StepError] = None
    license_id: Optional[str] = None
    application_sk: Optional[str] = None


def generate_test_id(now: Optional[datetime] = None) -> str:
    """Generate ``INTEGRATION_<epoch millis>_<8 base36 chars>``."""
    now = now or utcnow()
    millis = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(TEST_ID_SUFFIX_LENGTH))
    return f"{TEST_ID_PREFIX}{millis}_{suffix}"


def validate_test_id(test_id: Any) -> str:
    """
    Check the shape of an integration test id.

    Raises:
        ValidationError: If the id is not ``INTEGRATION_<digits>_<base36>``
    """
    if not isinstance(test_id, str) or not TEST_ID_PATTERN.match(test_id):
        raise ValidationError(
            f"Invalid integration test id: {test_id!r}", context={"test_id": test_id}
        )
    return test_id


def create_integration_test(
    gas_webapp_url: str, test_id: Optional[str] = None, now: Optional[datetime] = None
) -> IntegrationTest:
    """
    Create a new integration test in STARTED/pending.

    Args:
        gas_webapp_url: GAS WebApp under test
        test_id: Test id (generated when omitted)
        now: Creation time (defaults to now)

    Returns:
        IntegrationTest
    """
    if not gas_webapp_url:
        raise ValidationError("gasWebappUrl is required")
    now = now or utcnow()
    return IntegrationTest(
        test_id=validate_test_id(test_id) if test_id else generate_test_id(now),
        gas_webapp_url=gas_webapp_url,
        current_step=IntegrationTestStep.STARTED,
        current_step_status=StepStatus.PENDING,
        last_updated=now,
    )


def record_step_progress(
    test: IntegrationTest,
    step: IntegrationTestStep,
    success: bool,
    details: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> IntegrationTest:
    """
    Record the outcome of one step.

    A success marks the step completed (keeping the first completion time if
    it was already completed), merges ``licenseId``/``applicationSK`` from
    ``details`` and clears ``last_error``. A failure records ``last_error``
    and leaves ``completed_steps`` untouched.

    Args:
        test: Current test state
        step: Reported step
        success: Whether the step succeeded
        details: Optional ``{error, licenseId, applicationSK}``
        now: Report time (defaults to now)

    Returns:
        The updated IntegrationTest
    """
    now = now or utcnow()
    details = details or {}

    if not success:
        return replace(
            test,
            current_step=step,
            current_step_status=StepStatus.FAILED,
            last_updated=now,
            last_error=StepError(
                step=step,
                timestamp=now,
                message=details.get("error") or UNKNOWN_ERROR,
            ),
        )

    completed_steps = dict(test.completed_steps)
    completed_steps.setdefault(step, now)
    return replace(
        test,
        current_step=step,
        current_step_status=StepStatus.SUCCESS,
        last_updated=now,
        completed_steps=completed_steps,
        last_error=None,
        license_id=details.get("licenseId") or test.license_id,
        application_sk=details.get("applicationSK") or test.application_sk,
    )


def get_next_step(step: Union[IntegrationTestStep, str, None]) -> Optional[IntegrationTestStep]:
    """Successor of ``step``; None after COMPLETED or for an unknown step."""
    if not is_valid_integration_test_step(step):
        return None
    index = STEP_ORDER.index(IntegrationTestStep(str(step)))
    if index == len(STEP_ORDER) - 1:
        return None
    return STEP_ORDER[index + 1]


def is_integration_test_completed(test: Optional[IntegrationTest]) -> bool:
    """True iff the test reached COMPLETED with a successful report."""
    if test is None:
        return False
    return (
        test.current_step == IntegrationTestStep.COMPLETED
        and test.current_step_status == StepStatus.SUCCESS
    )


def get_integration_test_progress(test: Optional[IntegrationTest]) -> int:
    """Percentage of confirmed steps, 0..100."""
    if test is None:
        return 0
    return round(100 * len(test.completed_steps) / len(STEP_ORDER))


def get_test_duration(test: Optional[IntegrationTest]) -> Optional[int]:
    """Milliseconds from STARTED to COMPLETED, or None unless both are confirmed."""
    if test is None:
        return None
    started = test.completed_steps.get(IntegrationTestStep.STARTED)
    completed = test.completed_steps.get(IntegrationTestStep.COMPLETED)
    if started is None or completed is None:
        return None
    return (completed - started) // timedelta(milliseconds=1)


def is_step_completed(test: Optional[IntegrationTest], step: IntegrationTestStep) -> bool:
    """True iff ``step`` has been confirmed."""
    if test is None:
        return False
    return step in test.completed_steps


def is_valid_integration_test_step(value: Any) -> bool:
    return _is_member(IntegrationTestStep, value)


def is_valid_step_status(value: Any) -> bool:
    return _is_member(StepStatus, value)


def is_valid_setup_phase(value: Any) -> bool:
    return _is_member(SetupPhase, value)


def _is_member(enum_cls, value: Any) -> bool:
    if isinstance(value, enum_cls):
        return True
    if not isinstance(value, str) or not value:
        return False
    return value in {member.value for member in enum_cls}


def integration_test_to_dict(test: IntegrationTest) -> Dict[str, Any]:
    """Serialize an integration test to its stored (camelCase) form."""
    data = {
        "testId": test.test_id,
        "gasWebappUrl": test.gas_webapp_url,
        "currentStep": test.current_step.value,
        "currentStepStatus": test.current_step_status.value,
        "lastUpdated": to_iso(test.last_updated),
    }
    if test.completed_steps:
        data["completedSteps"] = {
            step.value: to_iso(timestamp) for step, timestamp in test.completed_steps.items()
        }
    if test.last_error is not None:
        data["lastError"] = {
            "step": test.last_error.step.value,
            "timestamp": to_iso(test.last_error.timestamp),
            "message": test.last_error.message,
        }
    if test.license_id:
        data["licenseId"] = test.license_id
    if test.application_sk:
        data["applicationSK"] = test.application_sk
    return data


def integration_test_from_dict(data: Dict[str, Any]) -> IntegrationTest:
    """Deserialize an integration test from its stored form."""
    last_error = data.get("lastError")
    return IntegrationTest(
        test_id=data["testId"],
        gas_webapp_url=data["gasWebappUrl"],
        current_step=IntegrationTestStep(data["currentStep"]),
        current_step_status=StepStatus(data["currentStepStatus"]),
        last_updated=from_iso(data["lastUpdated"]),
        completed_steps={
            IntegrationTestStep(step): from_iso(timestamp)
            for step, timestamp in (data.get("completedSteps") or {}).items()
        },
        last_error=StepError(
            step=IntegrationTestStep(last_error["step"]),
            timestamp=from_iso(last_error["timestamp"]),
            message=last_error["message"],
        )
        if last_error
        else None,
        license_id=data.get("licenseId"),
        application_sk=data.get("applicationSK"),
    )


