"""
License notification handlers.

Firing and delivery are separate steps: firing is the conditional
AwaitingNotification -> Active transition, delivery pushes the license to
its channel and may be retried on its own.
"""
import logging
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from asgiref.sync import sync_to_async

from applications.application.commands.license_notification import (
    DeliverLicenseNotificationCommand,
    FireLicenseNotificationCommand,
    FireOverdueNotificationsCommand,
    RecordDeliveryFailureCommand,
)
from applications.application.commands.retry_notification import RetryNotificationCommand
from applications.application.dto.application_dto import ApplicationDTO
from applications.application.services.state_machine import ApplicationStateMachine
from applications.domain.application import EAApplication, normalize_application_sk
from applications.domain.events import LicenseNotificationDelivered
from applications.infrastructure.notifiers import GasWebAppNotifier
from applications.ports.application_repository import ApplicationRepository
from applications.ports.notifier import NotificationResult, Notifier
from core.domain.events import EventBus
from core.domain.exceptions import (
    ConflictError,
    DomainException,
    NotFoundError,
    NotificationDeliveryError,
)
from core.domain.timestamps import to_iso
from core.domain.value_objects import ApplicationStatus, IntegrationTestStep
from core.metrics import notifications_delivered_total, notifications_recovered_total
from integrations.application.services.integration_test_service import IntegrationTestService

logger = logging.getLogger(__name__)


def build_notification_payload(application: EAApplication) -> Dict[str, Any]:
    """
    Build the payload handed to notifiers.

    Args:
        application: Active application

    Returns:
        Payload dict with camelCase keys
    """
    payload = {
        "userId": application.user_id,
        "applicationId": application.sk,
        "licenseId": application.license_key,
        "licenseKey": application.license_key,
        "eaName": application.ea_name,
        "accountNumber": application.account_number,
        "broker": application.broker,
        "email": application.email,
        "expiryDate": to_iso(application.expiry_date) if application.expiry_date else "",
        "issuedAt": to_iso(application.updated_at),
    }
    if application.integration_test_id:
        payload["testId"] = application.integration_test_id
    return payload


class FireLicenseNotificationHandler:
    """Handler for FireLicenseNotificationCommand."""

    def __init__(self, state_machine: ApplicationStateMachine):
        """Initialize handler with the state machine."""
        self.state_machine = state_machine

    async def handle(self, command: FireLicenseNotificationCommand) -> Optional[EAApplication]:
        """
        Activate the application if it is still awaiting notification.

        Returns:
            The activated application, or None when a cancel got there first
        """
        return await self.state_machine.mark_notification_sent(command.user_id, command.sk)


class FireOverdueNotificationsHandler:
    """
    Handler for FireOverdueNotificationsCommand.

    Recovers approvals whose scheduled fire task was never armed or was
    lost by the broker. The grace period leaves the regular task time to
    run first.
    """

    def __init__(self, state_machine: ApplicationStateMachine):
        """Initialize handler with the state machine."""
        self.state_machine = state_machine

    async def handle(self, command: FireOverdueNotificationsCommand) -> List[EAApplication]:
        """
        Activate AwaitingNotification applications past their send time.

        Returns:
            The applications this sweep activated
        """
        cutoff = self.state_machine.clock() - timedelta(seconds=command.grace_seconds)
        overdue = await self.state_machine.repository.find_overdue_notifications(
            cutoff, command.limit
        )

        activated = []
        for application in overdue:
            try:
                result = await self.state_machine.mark_notification_sent(
                    application.user_id, application.sk
                )
            except ConflictError as e:
                logger.warning(
                    "Skipping overdue notification for %s: %s",
                    application.sk,
                    e.message,
                    extra={"user_id": application.user_id},
                )
                continue
            if result is not None:
                notifications_recovered_total.inc()
                activated.append(result)

        if activated:
            logger.warning(
                "Fired %s overdue license notifications",
                len(activated),
                extra={"count": len(activated)},
            )
        return activated


class RecordDeliveryFailureHandler:
    """Handler for RecordDeliveryFailureCommand."""

    def __init__(self, state_machine: ApplicationStateMachine):
        """Initialize handler with the state machine."""
        self.state_machine = state_machine

    async def handle(self, command: RecordDeliveryFailureCommand) -> Optional[EAApplication]:
        """
        Mark the application's notification as undeliverable.

        Returns:
            The marked application, or None if it is no longer Active
        """
        return await self.state_machine.record_delivery_failure(
            command.user_id, command.sk, command.error, command.channel
        )


class RetryNotificationHandler:
    """
    Handler for RetryNotificationCommand.

    Args:
        state_machine: Clears the failure marker
        enqueue_delivery: Queues a new delivery attempt for ``(user_id, sk)``
    """

    def __init__(
        self,
        state_machine: ApplicationStateMachine,
        enqueue_delivery: Callable[[str, str], Any],
    ):
        self.state_machine = state_machine
        self.enqueue_delivery = enqueue_delivery

    async def handle(self, command: RetryNotificationCommand) -> ApplicationDTO:
        """
        Handle retry notification command.

        Returns:
            ApplicationDTO with the failure marker cleared

        Raises:
            NotFoundError: If application not found
            InvalidTransitionError: If the application has no failed notification
            ValidationError: If the retry budget is spent and ``force`` is not set
        """
        application = await self.state_machine.retry_delivery(
            user_id=command.user_id,
            sk=normalize_application_sk(command.application_id),
            changed_by=command.changed_by,
            reason=command.reason,
            force=command.force,
        )
        await sync_to_async(self.enqueue_delivery)(application.user_id, application.sk)
        return ApplicationDTO.from_entity(application)


class DeliverLicenseNotificationHandler:
    """Handler for DeliverLicenseNotificationCommand."""

    def __init__(
        self,
        application_repository: ApplicationRepository,
        email_notifier: Notifier,
        integration_test_service: Optional[IntegrationTestService] = None,
        gas_notifier_factory: Callable[[str], Notifier] = GasWebAppNotifier,
        event_bus: Optional[EventBus] = None,
    ):
        """Initialize handler with repository and notifiers."""
        if event_bus is None:
            from core.infrastructure.events import event_bus as default_bus

            event_bus = default_bus
        self.application_repository = application_repository
        self.email_notifier = email_notifier
        self.integration_test_service = integration_test_service
        self.gas_notifier_factory = gas_notifier_factory
        self.event_bus = event_bus

    async def handle(self, command: DeliverLicenseNotificationCommand) -> Optional[NotificationResult]:
        """
        Handle deliver license notification command.

        Args:
            command: DeliverLicenseNotificationCommand

        Returns:
            NotificationResult, or None if the application is no longer Active

        Raises:
            NotFoundError: If the application does not exist
            NotificationDeliveryError: If the notifier reported a failure
        """
        application = await self.application_repository.get(command.user_id, command.sk)
        if application is None:
            raise NotFoundError(
                f"Application {command.sk} not found",
                context={"user_id": command.user_id, "application_id": command.sk},
            )
        if application.status != ApplicationStatus.ACTIVE:
            logger.info(
                "Not delivering license for %s in status %s",
                application.sk,
                application.status.value,
                extra={"user_id": application.user_id},
            )
            return None

        notifier = await self._notifier_for(application)
        result = await sync_to_async(notifier.send)(build_notification_payload(application))
        notifications_delivered_total.labels(
            channel=notifier.channel, result="success" if result.success else "failed"
        ).inc()

        if not result.success:
            raise NotificationDeliveryError(
                f"License delivery for {application.sk} failed: {result.error}",
                context={
                    "user_id": application.user_id,
                    "application_id": application.sk,
                    "channel": notifier.channel,
                },
            )

        if notifier is not self.email_notifier:
            await self._record_license_issued(application)

        await self.event_bus.publish(
            LicenseNotificationDelivered(
                aggregate_id=application.sk,
                user_id=application.user_id,
                channel=notifier.channel,
            )
        )
        return result

    async def _notifier_for(self, application: EAApplication) -> Notifier:
        if self.integration_test_service is None or not application.integration_test_id:
            return self.email_notifier
        try:
            test = await self.integration_test_service.get_test(
                application.integration_test_id, user_id=application.user_id
            )
        except NotFoundError:
            logger.warning(
                "Integration test %s is gone, delivering %s by email",
                application.integration_test_id,
                application.sk,
                extra={"user_id": application.user_id},
            )
            return self.email_notifier
        return self.gas_notifier_factory(test.gas_webapp_url)

    async def _record_license_issued(self, application: EAApplication) -> None:
        try:
            await self.integration_test_service.record_step(
                application.integration_test_id,
                IntegrationTestStep.LICENSE_ISSUED,
                True,
                {"applicationSK": application.sk, "licenseId": application.license_key},
                user_id=application.user_id,
            )
        except DomainException as e:
            logger.error(
                "Failed to record LICENSE_ISSUED for %s: %s",
                application.integration_test_id,
                e.message,
                extra={"user_id": application.user_id, "application_id": application.sk},
            )
