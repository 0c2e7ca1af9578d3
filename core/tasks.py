"""
Celery tasks for background processing.

Tasks for deferred license notification and its recovery, expiry sweeps
and purging of items past their retention window.
"""
import logging

from asgiref.sync import async_to_sync
from django.conf import settings

from applications.application.commands.expire_applications import ExpireApplicationsCommand
from applications.application.commands.license_notification import (
    DeliverLicenseNotificationCommand,
    FireLicenseNotificationCommand,
    FireOverdueNotificationsCommand,
    RecordDeliveryFailureCommand,
)
from applications.application.handlers.expire_applications_handler import (
    ExpireApplicationsHandler,
)
from applications.application.handlers.notification_handlers import (
    FireLicenseNotificationHandler,
    FireOverdueNotificationsHandler,
    RecordDeliveryFailureHandler,
)
from core import container
from core.domain.exceptions import NotificationDeliveryError
from core.infrastructure import purge
from core.instrumentation import Status, StatusCode, get_tracer
from EALicenseService.celery import app

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


@app.task
def fire_license_notification(user_id: str, sk: str):
    """
    Activate an approved application when its send time arrives.

    A revoked task never runs; a task that runs after a cancel landed finds
    the application no longer awaiting notification and does nothing.

    Args:
        user_id: Application owner
        sk: Application sort key
    """
    with tracer.start_as_current_span("fire_license_notification") as span:
        span.set_attribute("application.id", sk)
        handler = FireLicenseNotificationHandler(container.build_state_machine())
        activated = async_to_sync(handler.handle)(FireLicenseNotificationCommand(user_id, sk))
        if activated is None:
            span.set_attribute("skipped", True)
            return False

        deliver_license_notification.delay(user_id=user_id, sk=sk)
        span.set_status(Status(StatusCode.OK))
        return True


@app.task(bind=True, max_retries=settings.NOTIFICATION_DELIVERY_MAX_RETRIES)
def deliver_license_notification(self, user_id: str, sk: str):
    """
    Deliver the license of an activated application.

    Args:
        user_id: Application owner
        sk: Application sort key
    """
    with tracer.start_as_current_span("deliver_license_notification") as span:
        span.set_attribute("application.id", sk)
        span.set_attribute("attempt", self.request.retries + 1)
        handler = container.build_delivery_handler()
        try:
            result = async_to_sync(handler.handle)(DeliverLicenseNotificationCommand(user_id, sk))
        except NotificationDeliveryError as exc:
            span.set_status(Status(StatusCode.ERROR, exc.message))
            logger.error(
                "License delivery failed (attempt %s/%s): %s",
                self.request.retries + 1,
                self.max_retries + 1,
                exc.message,
                extra=exc.context,
            )
            if self.request.retries >= self.max_retries:
                failure_handler = RecordDeliveryFailureHandler(container.build_state_machine())
                async_to_sync(failure_handler.handle)(
                    RecordDeliveryFailureCommand(
                        user_id, sk, exc.message, exc.context.get("channel", "email")
                    )
                )
                return False
            raise self.retry(exc=exc, countdown=settings.NOTIFICATION_RETRY_DELAY_SECONDS)

        span.set_status(Status(StatusCode.OK))
        return result is not None


@app.task
def sweep_expired_applications(limit: int = 100):
    """
    Expire Active licenses whose expiry date has passed.

    Args:
        limit: Maximum number of applications to expire in one run
    """
    handler = ExpireApplicationsHandler(container.build_state_machine())
    expired = async_to_sync(handler.handle)(ExpireApplicationsCommand(limit=limit))
    return len(expired)


@app.task
def purge_expired_items():
    """Delete terminal items whose retention window has passed."""
    return purge.purge_expired_items()


@app.task
def sweep_overdue_notifications(limit: int = 100):
    """
    Fire approvals whose scheduled notification never ran.

    Each recovered application gets its delivery queued like a regular fire.

    Args:
        limit: Maximum number of applications to fire in one run
    """
    handler = FireOverdueNotificationsHandler(container.build_state_machine())
    activated = async_to_sync(handler.handle)(
        FireOverdueNotificationsCommand(
            limit=limit, grace_seconds=settings.NOTIFICATION_SWEEP_GRACE_SECONDS
        )
    )
    for application in activated:
        deliver_license_notification.delay(user_id=application.user_id, sk=application.sk)
    return len(activated)
