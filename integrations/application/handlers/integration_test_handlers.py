"""
Integration test handlers.
"""
from django.conf import settings

from core.domain.value_objects import StepStatus
from integrations.application.commands.report_integration_test_step import (
    ReportIntegrationTestStepCommand,
)
from integrations.application.commands.start_integration_test import StartIntegrationTestCommand
from integrations.application.dto.integration_test_dto import (
    IntegrationTestStatusDTO,
    IntegrationTestStepDTO,
    StartIntegrationTestDTO,
)
from integrations.application.queries.get_integration_test_status import (
    GetIntegrationTestStatusQuery,
)
from integrations.application.services.integration_test_service import IntegrationTestService
from integrations.domain.integration_test import get_next_step


class StartIntegrationTestHandler:
    """Handler for StartIntegrationTestCommand."""

    def __init__(self, service: IntegrationTestService):
        """Initialize handler with the integration test service."""
        self.service = service

    async def handle(self, command: StartIntegrationTestCommand) -> StartIntegrationTestDTO:
        """
        Handle start integration test command.

        Args:
            command: StartIntegrationTestCommand

        Returns:
            StartIntegrationTestDTO with the new test id

        Raises:
            IntegrationTestInProgressError: If a test is still running
        """
        test = await self.service.start(command.user_id, command.gas_webapp_url)
        succeeded = test.current_step_status == StepStatus.SUCCESS
        return StartIntegrationTestDTO(
            test_id=test.test_id,
            status=test.current_step_status.value,
            next_step=get_next_step(test.current_step).value if succeeded else None,
            estimated_duration_seconds=settings.INTEGRATION_TEST_ESTIMATED_DURATION_SECONDS,
            error=test.last_error.message if test.last_error else None,
        )


class ReportIntegrationTestStepHandler:
    """Handler for ReportIntegrationTestStepCommand."""

    def __init__(self, service: IntegrationTestService):
        """Initialize handler with the integration test service."""
        self.service = service

    async def handle(self, command: ReportIntegrationTestStepCommand) -> IntegrationTestStepDTO:
        """
        Handle a harness step report.

        Raises:
            ValidationError: If the test id is malformed
            NotFoundError: If the test is unknown
        """
        test = await self.service.record_step(
            command.test_id, command.step, command.success, command.details
        )
        return IntegrationTestStepDTO.from_entity(test)


class GetIntegrationTestStatusHandler:
    """Handler for GetIntegrationTestStatusQuery."""

    def __init__(self, service: IntegrationTestService):
        """Initialize handler with the integration test service."""
        self.service = service

    async def handle(self, query: GetIntegrationTestStatusQuery) -> IntegrationTestStatusDTO:
        """Return the status of the caller's current integration test."""
        return IntegrationTestStatusDTO.from_status(await self.service.get_status(query.user_id))
