"""
Wiring of ports to their Django, Celery and requests adapters.

Views, tasks and management commands build their handlers from here.
"""
from django.conf import settings

from applications.application.handlers.application_query_handlers import GetFailureStatusHandler
from applications.application.handlers.notification_handlers import (
    DeliverLicenseNotificationHandler,
    RetryNotificationHandler,
)
from applications.application.handlers.submit_application_handler import SubmitApplicationHandler
from applications.application.services.state_machine import ApplicationStateMachine
from applications.infrastructure.codec import FernetLicenseCodec
from applications.infrastructure.notifiers import EmailNotifier, GasWebAppNotifier
from applications.infrastructure.repositories.django_application_repository import (
    DjangoApplicationRepository,
)
from applications.infrastructure.scheduler import CeleryNotificationScheduler
from integrations.application.services.integration_test_service import IntegrationTestService
from integrations.infrastructure.gas_webapp_client import RequestsGasWebAppClient
from profiles.infrastructure.repositories.django_user_profile_repository import (
    DjangoUserProfileRepository,
)
from webhooks.application.ingestor import WebhookIngestor

application_repository = DjangoApplicationRepository()
profile_repository = DjangoUserProfileRepository()


def build_license_codec() -> FernetLicenseCodec:
    return FernetLicenseCodec()


def build_state_machine() -> ApplicationStateMachine:
    """State machine backed by the license table, Celery and Fernet."""
    return ApplicationStateMachine(
        repository=application_repository,
        scheduler=CeleryNotificationScheduler(),
        codec=build_license_codec(),
    )


def build_integration_test_service() -> IntegrationTestService:
    """Integration test service calling GAS WebApps over HTTP."""
    return IntegrationTestService(
        profile_repository=profile_repository,
        gas_client=RequestsGasWebAppClient(),
    )


def build_delivery_handler() -> DeliverLicenseNotificationHandler:
    """Delivery handler with email and GAS WebApp channels."""
    return DeliverLicenseNotificationHandler(
        application_repository=application_repository,
        email_notifier=EmailNotifier(),
        integration_test_service=build_integration_test_service(),
        gas_notifier_factory=GasWebAppNotifier,
    )


def build_webhook_ingestor() -> WebhookIngestor:
    """Ingestor for form submissions and harness step reports."""
    return WebhookIngestor(
        submit_handler=SubmitApplicationHandler(application_repository),
        integration_test_service=build_integration_test_service(),
        signing_secret=settings.WEBHOOK_SIGNING_SECRET,
    )


def enqueue_delivery(user_id: str, sk: str) -> None:
    """Queue a delivery attempt on the Celery worker."""
    from core.tasks import deliver_license_notification

    deliver_license_notification.delay(user_id=user_id, sk=sk)


def build_retry_notification_handler() -> RetryNotificationHandler:
    """Retry handler that re-queues delivery on Celery."""
    return RetryNotificationHandler(build_state_machine(), enqueue_delivery)


def build_failure_status_handler() -> GetFailureStatusHandler:
    return GetFailureStatusHandler(application_repository)
