"""
GetProfileQuery.
"""
from dataclasses import dataclass


@dataclass
class GetProfileQuery:
    """Query to read (and on first contact create) a developer profile."""

    user_id: str
