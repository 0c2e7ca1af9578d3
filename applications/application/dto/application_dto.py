"""
Application DTOs for API responses.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from applications.domain.application import EAApplication
from applications.domain.history import ApplicationHistory


@dataclass
class ApplicationDTO:
    """DTO for application information."""

    application_id: str
    user_id: str
    sk: str
    ea_name: str
    account_number: str
    broker: str
    email: str
    x_account: str
    status: str
    applied_at: datetime
    updated_at: datetime
    notification_scheduled_at: Optional[datetime]
    expiry_date: Optional[datetime]
    license_key: Optional[str]
    integration_test_id: Optional[str]
    delivery_failure_count: int = 0
    last_delivery_error: Optional[str] = None
    last_delivery_failed_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, application: EAApplication) -> "ApplicationDTO":
        """Build DTO from an application entity."""
        return cls(
            application_id=application.application_id,
            user_id=application.user_id,
            sk=application.sk,
            ea_name=application.ea_name,
            account_number=application.account_number,
            broker=application.broker,
            email=application.email,
            x_account=application.x_account,
            status=application.status.value,
            applied_at=application.applied_at,
            updated_at=application.updated_at,
            notification_scheduled_at=application.notification_scheduled_at,
            expiry_date=application.expiry_date,
            license_key=application.license_key,
            integration_test_id=application.integration_test_id,
            delivery_failure_count=application.delivery_failure_count,
            last_delivery_error=application.last_delivery_error,
            last_delivery_failed_at=application.last_delivery_failed_at,
        )


@dataclass
class ApplicationHistoryDTO:
    """DTO for one history record."""

    sk: str
    application_sk: str
    action: str
    changed_by: str
    changed_at: datetime
    previous_status: Optional[str]
    new_status: str
    reason: Optional[str]

    @classmethod
    def from_entity(cls, history: ApplicationHistory) -> "ApplicationHistoryDTO":
        """Build DTO from a history entity."""
        return cls(
            sk=history.sk,
            application_sk=history.application_sk,
            action=history.action,
            changed_by=history.changed_by,
            changed_at=history.changed_at,
            previous_status=history.previous_status.value if history.previous_status else None,
            new_status=history.new_status.value,
            reason=history.reason,
        )


@dataclass
class FailedNotificationDTO:
    """DTO for one application whose license notification could not be delivered."""

    id: str
    ea_name: str
    email: str
    failure_count: int
    last_failed_at: datetime
    last_error: Optional[str]
    is_retryable: bool
    status: str

    @classmethod
    def from_entity(cls, application: EAApplication, max_failures: int) -> "FailedNotificationDTO":
        """Build DTO from an application carrying a delivery failure."""
        return cls(
            id=application.sk,
            ea_name=application.ea_name,
            email=application.email,
            failure_count=application.delivery_failure_count,
            last_failed_at=application.last_delivery_failed_at,
            last_error=application.last_delivery_error,
            is_retryable=application.is_retryable(max_failures),
            status=application.status.value,
        )


@dataclass
class FailureStatusDTO:
    """DTO summarizing a user's undelivered license notifications."""

    total_failures: int
    retryable_failures: int
    max_retry_exceeded: int
    recent_failures: int
    max_retry_count: int
    applications: List[FailedNotificationDTO]
