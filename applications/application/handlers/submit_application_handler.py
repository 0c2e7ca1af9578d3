"""
SubmitApplicationHandler.

Handler for applications arriving from the external form webhook.
"""
import logging
from typing import Optional

from applications.application.commands.submit_application import SubmitApplicationCommand
from applications.domain.application import EAApplication
from applications.domain.events import ApplicationSubmitted
from applications.domain.history import ApplicationHistory
from applications.domain.services import is_integration_test_application
from applications.ports.application_repository import ApplicationRepository
from core.domain.events import EventBus
from core.metrics import applications_submitted_total

logger = logging.getLogger(__name__)

SUBMIT_ACTION = "submit"


class SubmitApplicationHandler:
    """Handler for SubmitApplicationCommand."""

    def __init__(self, application_repository: ApplicationRepository, event_bus: Optional[EventBus] = None):
        """Initialize handler with repository."""
        if event_bus is None:
            from core.infrastructure.events import event_bus as default_bus

            event_bus = default_bus
        self.application_repository = application_repository
        self.event_bus = event_bus

    async def handle(self, command: SubmitApplicationCommand) -> EAApplication:
        """
        Handle submit application command.

        Args:
            command: SubmitApplicationCommand

        Returns:
            Stored Pending application

        Raises:
            ValidationError: If a required field is missing
            ConflictError: If an application with the same key already exists
        """
        application = EAApplication.create(
            user_id=command.user_id,
            ea_name=command.ea_name,
            account_number=command.account_number,
            broker=command.broker,
            email=command.email,
            x_account=command.x_account,
            integration_test_id=command.integration_test_id,
        )
        stored = await self.application_repository.put(application)
        await self.application_repository.append_history(
            ApplicationHistory.record(None, stored, SUBMIT_ACTION, command.user_id)
        )

        integration = is_integration_test_application(stored)
        applications_submitted_total.labels(integration_test=str(integration).lower()).inc()
        logger.info(
            "Application submitted: %s",
            stored.sk,
            extra={"user_id": stored.user_id, "integration_test_id": stored.integration_test_id},
        )

        await self.event_bus.publish(
            ApplicationSubmitted(
                aggregate_id=stored.sk,
                user_id=stored.user_id,
                broker=stored.broker,
                account_number=stored.account_number,
                integration_test_id=stored.integration_test_id,
            )
        )
        return stored
