"""
RevokeApplicationCommand.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass
class RevokeApplicationCommand:
    """Command to revoke an active license."""

    user_id: str
    application_id: str
    changed_by: str
    reason: Optional[str] = None
