"""
Integration test service.

Applies tracker functions to the integration test embedded in a user's
profile. Every change is a read/compute/conditional-write cycle on the
profile item, re-run on conflict.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

import requests
from asgiref.sync import sync_to_async
from django.conf import settings

from core.domain.events import EventBus
from core.domain.exceptions import IntegrationTestInProgressError, NotFoundError
from core.domain.timestamps import utcnow
from core.domain.value_objects import IntegrationTestStep, SetupPhase, StepStatus
from core.infrastructure.retry import retry_on_conflict
from core.metrics import integration_test_steps_total, integration_tests_started_total
from integrations.domain.events import (
    IntegrationTestCompleted,
    IntegrationTestStarted,
    IntegrationTestStepRecorded,
)
from integrations.domain.integration_test import (
    IntegrationTest,
    create_integration_test,
    get_integration_test_progress,
    get_next_step,
    get_test_duration,
    is_integration_test_completed,
    record_step_progress,
    validate_test_id,
)
from integrations.ports.gas_webapp_client import GasWebAppClient
from profiles.application.handlers.profile_handlers import get_or_create_profile
from profiles.domain.user_profile import UserProfile, can_progress_to_phase
from profiles.ports.user_profile_repository import UserProfileRepository

logger = logging.getLogger(__name__)


@dataclass
class IntegrationTestStatus:
    """Snapshot of a user's integration test."""

    active: bool
    test: Optional[IntegrationTest]
    can_retry: bool
    next_step: Optional[IntegrationTestStep]
    progress: int


def build_status(test: Optional[IntegrationTest]) -> IntegrationTestStatus:
    """
    Summarize a test for status readers.

    ``next_step`` is only offered after a successful report; a failed step
    makes the test retryable instead.
    """
    if test is None:
        return IntegrationTestStatus(
            active=False, test=None, can_retry=True, next_step=None, progress=0
        )

    completed = is_integration_test_completed(test)
    next_step = None
    if not completed and test.current_step_status == StepStatus.SUCCESS:
        next_step = get_next_step(test.current_step)
    return IntegrationTestStatus(
        active=not completed,
        test=test,
        can_retry=test.current_step_status == StepStatus.FAILED,
        next_step=next_step,
        progress=get_integration_test_progress(test),
    )


class IntegrationTestService:
    """Starts integration tests and applies step reports to them."""

    def __init__(
        self,
        profile_repository: UserProfileRepository,
        gas_client: Optional[GasWebAppClient] = None,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize service with its collaborators."""
        if event_bus is None:
            from core.infrastructure.events import event_bus as default_bus

            event_bus = default_bus
        self.profile_repository = profile_repository
        self.gas_client = gas_client
        self.event_bus = event_bus
        self.clock = clock

    def is_abandoned(self, test: IntegrationTest) -> bool:
        """True once a test has been silent for longer than a full run should take."""
        stale_after = timedelta(seconds=settings.INTEGRATION_TEST_ESTIMATED_DURATION_SECONDS)
        return self.clock() - test.last_updated > stale_after

    async def start(self, user_id: str, gas_webapp_url: str) -> IntegrationTest:
        """
        Start a new integration test against ``gas_webapp_url``.

        The test is stored before the WebApp is called so that its first
        step report can always be routed.

        Raises:
            IntegrationTestInProgressError: If a test is running and cannot be retried
        """
        if self.gas_client is None:
            raise RuntimeError("start requires a GAS WebApp client")

        async def attempt() -> UserProfile:
            profile = await get_or_create_profile(self.profile_repository, user_id)
            current = profile.integration_test
            status = build_status(current)
            if status.active and not status.can_retry and not self.is_abandoned(current):
                raise IntegrationTestInProgressError(
                    f"Integration test {current.test_id} is still running",
                    context={
                        "user_id": user_id,
                        "test_id": current.test_id,
                        "current_step": current.current_step.value,
                        "current_step_status": current.current_step_status.value,
                    },
                )
            now = self.clock()
            test = create_integration_test(gas_webapp_url, now=now)
            return await self.profile_repository.conditional_update(
                profile.with_integration_test(test, now)
            )

        profile = await retry_on_conflict(attempt, operation_name="integration_test.start")
        test = profile.integration_test
        logger.info(
            "Integration test %s created",
            test.test_id,
            extra={"user_id": user_id, "gas_webapp_url": gas_webapp_url},
        )
        await self.event_bus.publish(
            IntegrationTestStarted(
                aggregate_id=test.test_id, user_id=user_id, gas_webapp_url=gas_webapp_url
            )
        )

        try:
            await sync_to_async(self.gas_client.trigger_test)(
                gas_webapp_url, test.test_id, test.last_updated
            )
        except requests.exceptions.RequestException as e:
            integration_tests_started_total.labels(result="failed").inc()
            logger.warning(
                "GAS WebApp call for %s failed: %s",
                test.test_id,
                e,
                extra={"user_id": user_id, "test_id": test.test_id},
            )
            return await self.record_step(
                test.test_id,
                IntegrationTestStep.STARTED,
                False,
                {"error": f"GAS WebApp call failed: {e}"},
            )

        integration_tests_started_total.labels(result="success").inc()
        return await self.record_step(test.test_id, IntegrationTestStep.STARTED, True)

    async def record_step(
        self,
        test_id: str,
        step: IntegrationTestStep,
        success: bool,
        details: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> IntegrationTest:
        """
        Apply a step report to the test ``test_id``.

        A successful COMPLETED report also moves the owner's setup phase from
        TEST to PRODUCTION.

        Args:
            test_id: Test to update
            step: Reported step
            success: Whether the step succeeded
            details: Detail fields merged into the test
            user_id: When given, the test must belong to this user

        Raises:
            ValidationError: If ``test_id`` is malformed
            NotFoundError: If no profile is running ``test_id``, or it belongs to someone else
        """
        validate_test_id(test_id)

        async def attempt() -> UserProfile:
            profile = await self._find_profile(test_id, user_id, step=step.value)
            now = self.clock()
            updated_test = record_step_progress(
                profile.integration_test, step, success, details, now=now
            )
            updated = profile.with_integration_test(updated_test, now)
            if is_integration_test_completed(updated_test) and can_progress_to_phase(
                updated.setup_phase, SetupPhase.PRODUCTION
            ):
                updated = updated.progress_to(SetupPhase.PRODUCTION, now)
            return await self.profile_repository.conditional_update(updated)

        profile = await retry_on_conflict(attempt, operation_name="integration_test.record_step")
        test = profile.integration_test

        result = "success" if success else "failed"
        integration_test_steps_total.labels(step=step.value, result=result).inc()
        message = test.last_error.message if not success and test.last_error else None
        log = logger.info if success else logger.warning
        log(
            "Integration test %s: %s %s",
            test_id,
            step.value,
            result,
            extra={"user_id": profile.user_id, "test_id": test_id, "error": message},
        )

        await self.event_bus.publish(
            IntegrationTestStepRecorded(
                aggregate_id=test_id,
                user_id=profile.user_id,
                step=step.value,
                success=success,
                message=message,
            )
        )
        if success and step == IntegrationTestStep.COMPLETED:
            await self.event_bus.publish(
                IntegrationTestCompleted(
                    aggregate_id=test_id,
                    user_id=profile.user_id,
                    duration_ms=get_test_duration(test),
                )
            )
        return test

    async def get_status(self, user_id: str) -> IntegrationTestStatus:
        """Status of the user's current integration test."""
        profile = await self.profile_repository.get(user_id)
        return build_status(profile.integration_test if profile else None)

    async def get_test(self, test_id: str, user_id: Optional[str] = None) -> IntegrationTest:
        """
        Load a test by id.

        Raises:
            NotFoundError: If no profile is running ``test_id``, or it belongs to
                someone other than ``user_id``
        """
        profile = await self._find_profile(test_id, user_id)
        return profile.integration_test

    async def _find_profile(self, test_id: str, user_id: Optional[str], **context) -> UserProfile:
        profile = await self.profile_repository.find_by_test_id(test_id)
        if profile is None or profile.integration_test is None:
            raise NotFoundError(
                f"Integration test {test_id} not found", context={"test_id": test_id, **context}
            )
        if user_id is not None and profile.user_id != user_id:
            logger.warning(
                "Integration test %s referenced by a user who does not own it",
                test_id,
                extra={"user_id": user_id, "test_id": test_id},
            )
            raise NotFoundError(
                f"Integration test {test_id} not found",
                context={"test_id": test_id, "user_id": user_id, **context},
            )
        return profile
