"""
License notification commands.

Issued by the scheduler and the delivery worker, never by a user.
"""
from dataclasses import dataclass


@dataclass
class FireLicenseNotificationCommand:
    """Command to activate an application whose send time has arrived."""

    user_id: str
    sk: str


@dataclass
class DeliverLicenseNotificationCommand:
    """Command to deliver the license of an activated application."""

    user_id: str
    sk: str


@dataclass
class FireOverdueNotificationsCommand:
    """Command to fire notifications whose scheduled task never ran."""

    limit: int = 100
    grace_seconds: int = 60


@dataclass
class RecordDeliveryFailureCommand:
    """Command to mark a license whose delivery retries are exhausted."""

    user_id: str
    sk: str
    error: str
    channel: str = "email"
