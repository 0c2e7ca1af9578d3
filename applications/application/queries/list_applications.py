"""
ListApplicationsQuery.

Query to list a user's applications, optionally filtered by status.
"""
from dataclasses import dataclass
from typing import Optional

from core.domain.value_objects import ApplicationStatus


@dataclass
class ListApplicationsQuery:
    """Query to list applications of one user."""

    user_id: str
    status: Optional[ApplicationStatus] = None
