"""
RejectApplicationCommand.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass
class RejectApplicationCommand:
    """Command to reject a pending application."""

    user_id: str
    application_id: str
    changed_by: str
    reason: Optional[str] = None
