"""
EAApplication domain entity.

This is the core domain entity representing one license request.
It contains business logic and is independent of infrastructure.
"""
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from applications.domain.state_machine import ApplicationAction, next_status
from core.domain.exceptions import InvalidTransitionError, ValidationError, WindowExpiredError
from core.domain.timestamps import calculate_ttl, to_iso, utcnow
from core.domain.value_objects import ApplicationStatus

APPLICATION_PREFIX = "APPLICATION#"


def build_application_sk(
    applied_at: datetime, broker: str, account_number: str, ea_name: str
) -> str:
    """Build the sort key ``APPLICATION#<appliedAt>#<broker>#<account>#<eaName>``."""
    return f"{APPLICATION_PREFIX}{to_iso(applied_at)}#{broker}#{account_number}#{ea_name}"


def normalize_application_sk(application_id: str) -> str:
    """Accept an application id with or without the ``APPLICATION#`` prefix."""
    if not application_id:
        raise ValidationError("applicationId is required")
    if application_id.startswith(APPLICATION_PREFIX):
        return application_id
    return f"{APPLICATION_PREFIX}{application_id}"


@dataclass(frozen=True)
class EAApplication:
    """
    EAApplication domain entity.

    Immutable: every transition returns a new instance. ``version`` is the
    optimistic concurrency token of the stored item (0 until first saved).
    """

    user_id: str
    sk: str
    account_number: str
    ea_name: str
    broker: str
    email: str
    x_account: str
    status: ApplicationStatus
    applied_at: datetime
    updated_at: datetime
    notification_scheduled_at: Optional[datetime] = None
    license_key: Optional[str] = None
    expiry_date: Optional[datetime] = None
    integration_test_id: Optional[str] = None
    notification_task_id: Optional[str] = None
    delivery_failure_count: int = 0
    last_delivery_error: Optional[str] = None
    last_delivery_failed_at: Optional[datetime] = None
    ttl: Optional[int] = None
    version: int = 0

    def __post_init__(self):
        """Validate application entity."""
        if not self.user_id:
            raise ValueError("User ID is required")
        if not self.sk.startswith(APPLICATION_PREFIX):
            raise ValueError(f"Invalid application sort key: {self.sk}")
        awaiting = self.status == ApplicationStatus.AWAITING_NOTIFICATION
        if awaiting != (self.notification_scheduled_at is not None):
            raise ValueError(
                "notification_scheduled_at must be set exactly while awaiting notification"
            )
        if self.ttl is not None and not self.status.is_terminal:
            raise ValueError("Only terminal applications carry a ttl")

    @classmethod
    def create(
        cls,
        user_id: str,
        ea_name: str,
        account_number: str,
        broker: str,
        email: str,
        x_account: str = "",
        integration_test_id: Optional[str] = None,
        applied_at: Optional[datetime] = None,
    ) -> "EAApplication":
        """
        Create a new Pending application.

        Args:
            user_id: Owner of the application
            ea_name: Name of the EA being licensed
            account_number: Trading account number
            broker: Broker name
            email: Delivery address for the license
            x_account: Optional social handle supplied on the form
            integration_test_id: Set when submitted by an integration test
            applied_at: Submission time (defaults to now)

        Returns:
            EAApplication entity in Pending status
        """
        for field_name, value in (
            ("eaName", ea_name),
            ("accountNumber", account_number),
            ("broker", broker),
            ("email", email),
        ):
            if not value or not str(value).strip():
                raise ValidationError(f"{field_name} is required")

        now = applied_at or utcnow()
        return cls(
            user_id=user_id,
            sk=build_application_sk(now, broker, account_number, ea_name),
            account_number=account_number,
            ea_name=ea_name,
            broker=broker,
            email=email,
            x_account=x_account or "",
            status=ApplicationStatus.PENDING,
            applied_at=now,
            updated_at=now,
            integration_test_id=integration_test_id,
        )

    @property
    def application_id(self) -> str:
        """Public identifier: the sort key without its prefix."""
        return self.sk[len(APPLICATION_PREFIX):]

    def is_expired(self, current_time: Optional[datetime] = None) -> bool:
        """
        Check whether an active license has passed its expiry date.

        Args:
            current_time: Current time (defaults to now)

        Returns:
            True if the application is Active and its expiry date has passed
        """
        if self.status != ApplicationStatus.ACTIVE or self.expiry_date is None:
            return False
        return self.expiry_date <= (current_time or utcnow())

    @property
    def delivery_failed(self) -> bool:
        """True while the last delivery of an active license gave up and awaits a retry."""
        return self.status == ApplicationStatus.ACTIVE and self.last_delivery_failed_at is not None

    def is_retryable(self, max_failures: int) -> bool:
        """Whether a failed delivery may be retried without forcing it."""
        return self.delivery_failed and self.delivery_failure_count < max_failures

    def record_delivery_failure(self, error: str, now: datetime) -> "EAApplication":
        """
        Mark the license notification as undeliverable.

        The application stays Active; the marker is what the failure
        report and the retry endpoint look at.

        Raises:
            InvalidTransitionError: If the application is not Active
        """
        self._require_active("recordDeliveryFailure")
        return replace(
            self,
            delivery_failure_count=self.delivery_failure_count + 1,
            last_delivery_error=error,
            last_delivery_failed_at=now,
            updated_at=now,
        )

    def clear_delivery_failure(self, now: datetime) -> "EAApplication":
        """
        Clear the failure marker ahead of a new delivery attempt.

        The failure count is kept so repeated retries stay bounded.

        Raises:
            InvalidTransitionError: If there is no failed delivery to retry
        """
        self._require_active("retryNotification")
        if self.last_delivery_failed_at is None:
            raise InvalidTransitionError(
                f"Application {self.sk} has no failed notification to retry",
                context={
                    "application_id": self.sk,
                    "action": "retryNotification",
                    "current_status": self.status.value,
                },
            )
        return replace(self, last_delivery_error=None, last_delivery_failed_at=None, updated_at=now)

    def _require_active(self, action: str) -> None:
        if self.status != ApplicationStatus.ACTIVE:
            raise InvalidTransitionError(
                f"Cannot {action} an application in status {self.status.value}",
                context={
                    "application_id": self.sk,
                    "action": action,
                    "current_status": self.status.value,
                },
            )

    def can_cancel(self, current_time: Optional[datetime] = None) -> bool:
        """True while the deferred notification has not reached its send time."""
        if self.status != ApplicationStatus.AWAITING_NOTIFICATION:
            return False
        return (current_time or utcnow()) < self.notification_scheduled_at

    def approve(
        self,
        license_key: str,
        expiry_date: datetime,
        notification_scheduled_at: datetime,
        notification_task_id: Optional[str],
        now: datetime,
        ea_name: Optional[str] = None,
        account_number: Optional[str] = None,
        email: Optional[str] = None,
        broker: Optional[str] = None,
    ) -> "EAApplication":
        """
        Approve a pending application.

        The operator may correct the EA name, account, email or broker while
        approving; the sort key keeps its original value.

        Raises:
            InvalidTransitionError: If the application is not Pending
        """
        return self._transition(
            ApplicationAction.APPROVE,
            now,
            retention_months=None,
            license_key=license_key,
            expiry_date=expiry_date,
            notification_scheduled_at=notification_scheduled_at,
            notification_task_id=notification_task_id,
            ea_name=ea_name or self.ea_name,
            account_number=account_number or self.account_number,
            email=email or self.email,
            broker=broker or self.broker,
        )

    def reject(self, now: datetime, retention_months: int) -> "EAApplication":
        """Reject a pending application."""
        return self._transition(ApplicationAction.REJECT, now, retention_months)

    def cancel(self, now: datetime, retention_months: int) -> "EAApplication":
        """
        Cancel an approved application before its notification is sent.

        Raises:
            InvalidTransitionError: If the application is not awaiting notification
            WindowExpiredError: If the scheduled send time has been reached
        """
        target = next_status(self.status, ApplicationAction.CANCEL, self.sk)
        if now >= self.notification_scheduled_at:
            raise WindowExpiredError(
                "Cancellation window closed at "
                f"{to_iso(self.notification_scheduled_at)}",
                context={
                    "application_id": self.sk,
                    "action": ApplicationAction.CANCEL.value,
                    "current_status": self.status.value,
                    "notification_scheduled_at": to_iso(self.notification_scheduled_at),
                },
            )
        return self._apply(target, now, retention_months)

    def mark_notification_sent(self, now: datetime) -> "EAApplication":
        """Activate the license once the deferred notification fires."""
        return self._transition(ApplicationAction.NOTIFICATION_SENT, now, retention_months=None)

    def revoke(self, now: datetime, retention_months: int) -> "EAApplication":
        """Revoke an active license."""
        return self._transition(ApplicationAction.REVOKE, now, retention_months)

    def mark_expired(self, now: datetime, retention_months: int) -> "EAApplication":
        """Expire an active license whose expiry date has passed."""
        return self._transition(ApplicationAction.EXPIRY_ELAPSED, now, retention_months)

    def _transition(
        self,
        action: ApplicationAction,
        now: datetime,
        retention_months: Optional[int],
        **changes,
    ) -> "EAApplication":
        target = next_status(self.status, action, self.sk)
        return self._apply(target, now, retention_months, **changes)

    def _apply(
        self,
        target: ApplicationStatus,
        now: datetime,
        retention_months: Optional[int],
        **changes,
    ) -> "EAApplication":
        if target != ApplicationStatus.AWAITING_NOTIFICATION:
            changes["notification_scheduled_at"] = None
        if target.is_terminal:
            changes["ttl"] = calculate_ttl(now, retention_months)
        else:
            changes["ttl"] = None
        return replace(self, status=target, updated_at=now, **changes)
