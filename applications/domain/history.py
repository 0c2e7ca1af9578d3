"""
Application history domain entity.

One immutable record per status change, stored alongside the application.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from applications.domain.application import APPLICATION_PREFIX, EAApplication
from core.domain.timestamps import to_iso
from core.domain.value_objects import ApplicationStatus

HISTORY_PREFIX = "HISTORY#"


def history_prefix_for(application_sk: str) -> str:
    """Sort key prefix shared by every history record of one application."""
    return f"{HISTORY_PREFIX}{application_sk[len(APPLICATION_PREFIX):]}#"


@dataclass(frozen=True)
class ApplicationHistory:
    """A single status change of an application."""

    user_id: str
    sk: str
    application_sk: str
    action: str
    changed_by: str
    changed_at: datetime
    previous_status: Optional[ApplicationStatus]
    new_status: ApplicationStatus
    reason: Optional[str] = None
    ttl: Optional[int] = None

    @classmethod
    def record(
        cls,
        before: Optional[EAApplication],
        after: EAApplication,
        action: str,
        changed_by: str,
        reason: Optional[str] = None,
    ) -> "ApplicationHistory":
        """
        Build the history record for a transition.

        Args:
            before: Application before the change (None on intake)
            after: Application after the change
            action: Action name, e.g. ``approve``
            changed_by: Actor that caused the change
            reason: Optional free-text reason

        Returns:
            ApplicationHistory carrying the application's ttl when terminal
        """
        changed_at = after.updated_at
        return cls(
            user_id=after.user_id,
            sk=f"{history_prefix_for(after.sk)}{to_iso(changed_at)}#{action}",
            application_sk=after.sk,
            action=action,
            changed_by=changed_by,
            changed_at=changed_at,
            previous_status=before.status if before else None,
            new_status=after.status,
            reason=reason,
            ttl=after.ttl,
        )
