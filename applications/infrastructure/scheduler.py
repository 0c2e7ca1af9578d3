"""
Celery implementation of the NotificationScheduler port.
"""
import logging
import uuid
from datetime import datetime

from kombu.exceptions import OperationalError

from applications.domain.application import EAApplication
from applications.ports.notification_scheduler import NotificationScheduler
from core.domain.exceptions import NotificationSchedulingError
from core.metrics import notifications_cancelled_total, notifications_scheduled_total

logger = logging.getLogger(__name__)

FIRE_TASK_NAME = "core.tasks.fire_license_notification"


class CeleryNotificationScheduler(NotificationScheduler):
    """Schedules the fire task with an ETA and revokes it on cancel."""

    def __init__(self, celery_app=None):
        """
        Initialize scheduler.

        Args:
            celery_app: Celery application (defaults to the project app)
        """
        if celery_app is None:
            from EALicenseService.celery import app as celery_app
        self.celery_app = celery_app

    def new_handle(self) -> str:
        """Return a fresh Celery task id."""
        return str(uuid.uuid4())

    def arm(self, application: EAApplication, fire_at: datetime, handle: str) -> None:
        """
        Schedule the fire task for ``fire_at``.

        Args:
            application: Application awaiting notification
            fire_at: Target fire time
            handle: Task id to use

        Raises:
            NotificationSchedulingError: If the broker refused or could not be reached
        """
        try:
            self.celery_app.send_task(
                FIRE_TASK_NAME,
                kwargs={"user_id": application.user_id, "sk": application.sk},
                eta=fire_at,
                task_id=handle,
            )
        except (OperationalError, ConnectionError) as e:
            raise NotificationSchedulingError(
                f"Could not arm license notification for {application.sk}: {e}",
                context={
                    "user_id": application.user_id,
                    "application_id": application.sk,
                    "task_id": handle,
                },
            ) from e
        notifications_scheduled_total.inc()
        logger.info(
            "Armed license notification for %s at %s",
            application.sk,
            fire_at.isoformat(),
            extra={"user_id": application.user_id, "task_id": handle},
        )

    def disarm(self, handle: str) -> None:
        """
        Revoke the scheduled fire task.

        Args:
            handle: Task id passed to ``arm``
        """
        self.celery_app.control.revoke(handle)
        notifications_cancelled_total.inc()
        logger.info("Disarmed license notification %s", handle, extra={"task_id": handle})
