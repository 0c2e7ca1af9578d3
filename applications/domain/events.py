"""
Application domain events.

Domain events represent something that happened to an EA application.
"""
from dataclasses import dataclass
from typing import Optional

from core.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class ApplicationSubmitted(DomainEvent):
    """Event raised when an application arrives from the external form."""

    user_id: str
    broker: str
    account_number: str
    integration_test_id: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class ApplicationStatusChanged(DomainEvent):
    """Event raised on every status transition of an application."""

    user_id: str
    action: str
    previous_status: str
    new_status: str
    changed_by: str
    reason: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class ApplicationApproved(ApplicationStatusChanged):
    """Event raised when an application is approved and its send is armed."""

    notification_scheduled_at: str


@dataclass(frozen=True, kw_only=True)
class ApplicationCancelled(ApplicationStatusChanged):
    """Event raised when an approved application is cancelled in time."""


@dataclass(frozen=True, kw_only=True)
class LicenseActivated(ApplicationStatusChanged):
    """Event raised when the deferred notification fires and the license goes live."""


@dataclass(frozen=True, kw_only=True)
class LicenseNotificationDelivered(DomainEvent):
    """Event raised once a license notification reached its channel."""

    user_id: str
    channel: str
