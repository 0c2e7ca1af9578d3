"""
RetryNotificationCommand.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass
class RetryNotificationCommand:
    """Command to send a failed license notification again."""

    user_id: str
    application_id: str
    changed_by: str
    reason: Optional[str] = None
    force: bool = False
