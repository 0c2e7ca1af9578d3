"""
GetFailureStatusQuery.
"""
from dataclasses import dataclass


@dataclass
class GetFailureStatusQuery:
    """Query for a user's undelivered license notifications."""

    user_id: str
