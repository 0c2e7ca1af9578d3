"""
ApproveApplicationCommand.

Command to approve a pending application and schedule its license mail.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class ApproveApplicationCommand:
    """Command to approve an application."""

    user_id: str
    application_id: str
    expiry: datetime
    changed_by: str
    ea_name: Optional[str] = None
    account_id: Optional[str] = None
    email: Optional[str] = None
    broker: Optional[str] = None
