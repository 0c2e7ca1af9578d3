"""
Application status transition table.

The table is the single source of truth for which status changes are legal.
Anything not listed, including every action from a terminal status, is an
invalid transition.
"""
from enum import Enum
from typing import Dict, List, Optional, Tuple

from core.domain.exceptions import InvalidTransitionError
from core.domain.value_objects import ApplicationStatus


class ApplicationAction(Enum):
    """Actions that drive an application through its lifecycle."""

    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"
    NOTIFICATION_SENT = "notificationSent"
    REVOKE = "revoke"
    EXPIRY_ELAPSED = "expiryElapsed"

    def __str__(self) -> str:
        """Return action as string."""
        return self.value


TRANSITIONS: Dict[Tuple[ApplicationStatus, ApplicationAction], ApplicationStatus] = {
    (ApplicationStatus.PENDING, ApplicationAction.APPROVE): ApplicationStatus.AWAITING_NOTIFICATION,
    (ApplicationStatus.PENDING, ApplicationAction.REJECT): ApplicationStatus.REJECTED,
    (ApplicationStatus.AWAITING_NOTIFICATION, ApplicationAction.CANCEL): ApplicationStatus.CANCELLED,
    (
        ApplicationStatus.AWAITING_NOTIFICATION,
        ApplicationAction.NOTIFICATION_SENT,
    ): ApplicationStatus.ACTIVE,
    (ApplicationStatus.ACTIVE, ApplicationAction.REVOKE): ApplicationStatus.REVOKED,
    (ApplicationStatus.ACTIVE, ApplicationAction.EXPIRY_ELAPSED): ApplicationStatus.EXPIRED,
}


def next_status(
    current: ApplicationStatus,
    action: ApplicationAction,
    application_id: Optional[str] = None,
) -> ApplicationStatus:
    """
    Resolve the status reached by applying ``action`` to ``current``.

    Args:
        current: Current application status
        action: Attempted action
        application_id: Application sort key, used for error context

    Returns:
        The target status

    Raises:
        InvalidTransitionError: If the pair is not in the transition table
    """
    target = TRANSITIONS.get((current, action))
    if target is None:
        raise InvalidTransitionError(
            f"Cannot {action.value} an application in status {current.value}",
            context={
                "application_id": application_id,
                "action": action.value,
                "current_status": current.value,
            },
        )
    return target


def allowed_actions(current: ApplicationStatus) -> List[ApplicationAction]:
    """List the actions that are legal from ``current``."""
    return [action for (status, action) in TRANSITIONS if status == current]
