"""
GetIntegrationTestStatusQuery.
"""
from dataclasses import dataclass


@dataclass
class GetIntegrationTestStatusQuery:
    """Query to read the status of a user's current integration test."""

    user_id: str
