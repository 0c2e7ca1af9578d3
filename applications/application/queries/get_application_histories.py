"""
GetApplicationHistoriesQuery.
"""
from dataclasses import dataclass


@dataclass
class GetApplicationHistoriesQuery:
    """Query to list the status history of one application."""

    user_id: str
    application_id: str
