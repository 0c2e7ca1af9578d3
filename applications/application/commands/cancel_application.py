"""
CancelApplicationCommand.

Command to withdraw an approval before the license mail is sent.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass
class CancelApplicationCommand:
    """Command to cancel an application awaiting notification."""

    user_id: str
    application_id: str
    changed_by: str
    reason: Optional[str] = None
