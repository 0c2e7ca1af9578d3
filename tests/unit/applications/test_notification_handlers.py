"""
Unit tests for license notification firing and delivery.
"""
from datetime import timedelta

import pytest

from applications.application.commands.license_notification import (
    DeliverLicenseNotificationCommand,
    FireLicenseNotificationCommand,
    FireOverdueNotificationsCommand,
    RecordDeliveryFailureCommand,
)
from applications.application.commands.retry_notification import RetryNotificationCommand
from applications.application.handlers.notification_handlers import (
    FireLicenseNotificationHandler,
    FireOverdueNotificationsHandler,
    RecordDeliveryFailureHandler,
    RetryNotificationHandler,
    build_notification_payload,
)
from applications.domain.application import EAApplication
from applications.domain.events import LicenseNotificationDelivered
from applications.ports.notifier import NotificationResult
from core.domain.exceptions import (
    NotFoundError,
    NotificationDeliveryError,
    NotificationSchedulingError,
    ValidationError,
)
from core.domain.value_objects import ApplicationStatus, IntegrationTestStep


async def activate(state_machine, application, clock):
    await state_machine.approve(
        application.user_id, application.sk, clock() + timedelta(days=30), "admin"
    )
    clock.advance(seconds=300)
    return await FireLicenseNotificationHandler(state_machine).handle(
        FireLicenseNotificationCommand(application.user_id, application.sk)
    )


@pytest.mark.asyncio
class TestFireLicenseNotificationHandler:
    """Tests for FireLicenseNotificationHandler."""

    async def test_fire_activates(self, state_machine, pending_application, clock):
        """Test firing an awaiting application activates it."""
        active = await activate(state_machine, pending_application, clock)
        assert active.status.value == "Active"

    async def test_fire_twice_is_a_no_op(self, state_machine, pending_application, clock):
        """Test a duplicate fire does nothing."""
        await activate(state_machine, pending_application, clock)
        second = await FireLicenseNotificationHandler(state_machine).handle(
            FireLicenseNotificationCommand(pending_application.user_id, pending_application.sk)
        )
        assert second is None


@pytest.mark.asyncio
class TestDeliverLicenseNotificationHandler:
    """Tests for DeliverLicenseNotificationHandler."""

    async def test_email_delivery(
        self, state_machine, pending_application, clock, delivery_handler, email_notifier, event_bus
    ):
        """Test a regular application is delivered by email."""
        active = await activate(state_machine, pending_application, clock)

        result = await delivery_handler.handle(
            DeliverLicenseNotificationCommand(active.user_id, active.sk)
        )

        assert result.success
        assert len(email_notifier.sent) == 1
        payload = email_notifier.sent[0]
        assert payload["licenseKey"] == active.license_key
        assert payload["email"] == "trader@example.com"
        assert "testId" not in payload
        assert event_bus.of_type(LicenseNotificationDelivered)[0].channel == "email"

    async def test_failed_delivery_raises(
        self, state_machine, pending_application, clock, delivery_handler, email_notifier
    ):
        """Test a failed send surfaces as NotificationDeliveryError."""
        active = await activate(state_machine, pending_application, clock)
        email_notifier.result = NotificationResult(success=False, error="smtp down")

        with pytest.raises(NotificationDeliveryError, match="smtp down"):
            await delivery_handler.handle(DeliverLicenseNotificationCommand(active.user_id, active.sk))

    async def test_non_active_is_skipped(self, pending_application, delivery_handler, email_notifier):
        """Test a Pending application is not delivered."""
        result = await delivery_handler.handle(
            DeliverLicenseNotificationCommand(pending_application.user_id, pending_application.sk)
        )
        assert result is None
        assert email_notifier.sent == []

    async def test_missing_application(self, delivery_handler, user_id):
        """Test delivery of an unknown application."""
        with pytest.raises(NotFoundError):
            await delivery_handler.handle(DeliverLicenseNotificationCommand(user_id, "APPLICATION#x"))

    async def test_integration_test_delivery(
        self,
        state_machine,
        application_repository,
        integration_test_service,
        delivery_handler,
        email_notifier,
        gas_notifiers,
        clock,
        user_id,
    ):
        """Test an integration test application is delivered to the GAS WebApp."""
        test = await integration_test_service.start(user_id, "https://script.google.com/macros/s/abc/exec")
        application = application_repository.seed(
            EAApplication.create(
                user_id=user_id,
                ea_name="Integration Test EA",
                account_number="INTEGRATION_TEST_123456",
                broker="Test Broker",
                email="dev@example.com",
                integration_test_id=test.test_id,
                applied_at=clock(),
            )
        )
        active = await activate(state_machine, application, clock)

        result = await delivery_handler.handle(
            DeliverLicenseNotificationCommand(active.user_id, active.sk)
        )

        assert result.success
        assert email_notifier.sent == []
        gas_notifier = gas_notifiers["https://script.google.com/macros/s/abc/exec"]
        assert gas_notifier.sent[0]["testId"] == test.test_id

        recorded = await integration_test_service.get_test(test.test_id)
        assert IntegrationTestStep.LICENSE_ISSUED in recorded.completed_steps
        assert recorded.license_id == active.license_key
        assert recorded.application_sk == active.sk

    async def test_missing_test_falls_back_to_email(
        self, state_machine, application_repository, delivery_handler, email_notifier, clock, user_id
    ):
        """Test an application whose test is gone is delivered by email."""
        application = application_repository.seed(
            EAApplication.create(
                user_id=user_id,
                ea_name="Integration Test EA",
                account_number="INTEGRATION_TEST_123456",
                broker="Test Broker",
                email="dev@example.com",
                integration_test_id="INTEGRATION_1700000000000_abcd1234",
                applied_at=clock(),
            )
        )
        active = await activate(state_machine, application, clock)

        await delivery_handler.handle(DeliverLicenseNotificationCommand(active.user_id, active.sk))

        assert len(email_notifier.sent) == 1

    async def test_foreign_test_is_not_used(
        self,
        state_machine,
        application_repository,
        integration_test_service,
        delivery_handler,
        email_notifier,
        gas_notifiers,
        clock,
        user_id,
    ):
        """Test a license is never pushed to, or recorded on, another user's test."""
        test = await integration_test_service.start("other-user", "https://script.google.com/macros/s/abc/exec")
        application = application_repository.seed(
            EAApplication.create(
                user_id=user_id,
                ea_name="Integration Test EA",
                account_number="INTEGRATION_TEST_123456",
                broker="Test Broker",
                email="dev@example.com",
                integration_test_id=test.test_id,
                applied_at=clock(),
            )
        )
        active = await activate(state_machine, application, clock)

        await delivery_handler.handle(DeliverLicenseNotificationCommand(active.user_id, active.sk))

        assert len(email_notifier.sent) == 1
        assert gas_notifiers == {}
        untouched = await integration_test_service.get_test(test.test_id)
        assert IntegrationTestStep.LICENSE_ISSUED not in untouched.completed_steps


@pytest.mark.asyncio
class TestFireOverdueNotificationsHandler:
    """Tests for FireOverdueNotificationsHandler."""

    async def test_fires_unarmed_approval_after_grace(
        self, state_machine, pending_application, scheduler, clock, application_repository
    ):
        """Test an approval whose task was never armed is activated by the sweep."""
        scheduler.error = NotificationSchedulingError("broker down")
        await state_machine.approve(
            pending_application.user_id,
            pending_application.sk,
            clock() + timedelta(days=30),
            "admin",
        )
        handler = FireOverdueNotificationsHandler(state_machine)
        command = FireOverdueNotificationsCommand(grace_seconds=60)

        clock.advance(seconds=330)
        assert await handler.handle(command) == []

        clock.advance(seconds=31)
        activated = await handler.handle(command)

        assert [application.sk for application in activated] == [pending_application.sk]
        stored = await application_repository.get(
            pending_application.user_id, pending_application.sk
        )
        assert stored.status == ApplicationStatus.ACTIVE
        assert await handler.handle(command) == []

    async def test_ignores_cancelled(self, state_machine, pending_application, clock):
        """Test a cancelled approval is never swept."""
        approved = await state_machine.approve(
            pending_application.user_id,
            pending_application.sk,
            clock() + timedelta(days=30),
            "admin",
        )
        await state_machine.cancel(approved.user_id, approved.sk, approved.user_id)
        clock.advance(hours=1)

        activated = await FireOverdueNotificationsHandler(state_machine).handle(
            FireOverdueNotificationsCommand()
        )
        assert activated == []


@pytest.mark.asyncio
class TestDeliveryRetryHandlers:
    """Tests for RecordDeliveryFailureHandler and RetryNotificationHandler."""

    async def test_record_then_retry(self, state_machine, pending_application, clock, settings):
        """Test a failed delivery can be retried and a new delivery is queued."""
        settings.NOTIFICATION_MAX_FAILURE_COUNT = 3
        active = await activate(state_machine, pending_application, clock)
        clock.advance(seconds=1)
        failed = await RecordDeliveryFailureHandler(state_machine).handle(
            RecordDeliveryFailureCommand(active.user_id, active.sk, "SMTP timeout")
        )
        assert failed.delivery_failed
        clock.advance(seconds=1)

        queued = []
        dto = await RetryNotificationHandler(
            state_machine, lambda user_id, sk: queued.append((user_id, sk))
        ).handle(
            RetryNotificationCommand(
                user_id=active.user_id,
                application_id=active.application_id,
                changed_by="admin",
                reason="mailbox fixed",
            )
        )

        assert queued == [(active.user_id, active.sk)]
        assert dto.status == "Active"
        assert dto.delivery_failure_count == 1
        assert dto.last_delivery_failed_at is None

    async def test_exhausted_retry_queues_nothing(
        self, state_machine, pending_application, clock, settings
    ):
        """Test a refused retry does not queue a delivery."""
        settings.NOTIFICATION_MAX_FAILURE_COUNT = 1
        active = await activate(state_machine, pending_application, clock)
        await state_machine.record_delivery_failure(active.user_id, active.sk, "bounced")

        queued = []
        with pytest.raises(ValidationError):
            await RetryNotificationHandler(
                state_machine, lambda user_id, sk: queued.append((user_id, sk))
            ).handle(
                RetryNotificationCommand(
                    user_id=active.user_id, application_id=active.sk, changed_by="admin"
                )
            )
        assert queued == []

class TestBuildNotificationPayload:
    """Tests for build_notification_payload."""

    def test_payload_fields(self, pending_application):
        """Test the payload carries the license and applicant details."""
        payload = build_notification_payload(pending_application)

        assert payload["userId"] == pending_application.user_id
        assert payload["applicationId"] == pending_application.sk
        assert payload["expiryDate"] == ""
        assert payload["issuedAt"] == "2024-03-15T12:00:00.000Z"
