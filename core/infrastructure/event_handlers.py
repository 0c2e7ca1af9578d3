"""
Event handlers for domain events.

These handlers process domain events asynchronously for side effects
like audit logging.
"""

import logging

from applications.domain.events import (
    ApplicationApproved,
    ApplicationCancelled,
    ApplicationStatusChanged,
    ApplicationSubmitted,
    LicenseActivated,
    LicenseNotificationDelivered,
)
from core.domain.events import DomainEvent, EventHandler
from integrations.domain.events import (
    IntegrationTestCompleted,
    IntegrationTestStarted,
    IntegrationTestStepRecorded,
)

logger = logging.getLogger("core.audit")

AUDITED_EVENTS = (
    ApplicationSubmitted,
    ApplicationStatusChanged,
    ApplicationApproved,
    ApplicationCancelled,
    LicenseActivated,
    LicenseNotificationDelivered,
    IntegrationTestStarted,
    IntegrationTestStepRecorded,
    IntegrationTestCompleted,
)


class AuditLogEventHandler(EventHandler):
    """
    Event handler for audit logging.

    Writes every domain event as one structured log record on the
    ``core.audit`` logger.
    """

    async def handle(self, event: DomainEvent) -> None:
        """
        Handle domain event for audit logging.

        Args:
            event: Domain event to log
        """
        logger.info(
            "Audit log: %s - %s",
            event.event_type,
            event.aggregate_id,
            extra={"event": event.to_dict()},
        )


audit_handler = AuditLogEventHandler()


def register_event_handlers():
    """Register all event handlers with the event bus."""
    from core.infrastructure.events import event_bus

    for event_type in AUDITED_EVENTS:
        event_bus.subscribe(event_type, audit_handler)

    logger.info("Event handlers registered")
