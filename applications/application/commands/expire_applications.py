"""
ExpireApplicationsCommand.
"""
from dataclasses import dataclass


@dataclass
class ExpireApplicationsCommand:
    """Command to expire active licenses whose expiry date has passed."""

    limit: int = 100
    dry_run: bool = False
