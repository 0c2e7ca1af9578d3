"""
Application state machine service.

Runs every status change as an optimistic read/compute/conditional-write
cycle, then performs the side effects of the transition: scheduler arming
or disarming, the history record and the domain event.
"""
import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from asgiref.sync import sync_to_async
from django.conf import settings

from applications.domain.application import EAApplication
from applications.domain.events import (
    ApplicationApproved,
    ApplicationCancelled,
    ApplicationStatusChanged,
    LicenseActivated,
)
from applications.domain.history import ApplicationHistory
from applications.domain.services import DuplicateAccountGuard, LicensePayloadFactory
from applications.domain.state_machine import ApplicationAction, next_status
from applications.ports.application_repository import ApplicationRepository
from applications.ports.license_codec import LicenseCodec
from applications.ports.notification_scheduler import NotificationScheduler
from core.domain.events import EventBus
from core.domain.exceptions import (
    ConflictError,
    DuplicateApplicationError,
    InvalidTransitionError,
    NotFoundError,
    NotificationSchedulingError,
    ValidationError,
    WindowExpiredError,
)
from core.domain.timestamps import to_iso, utcnow
from core.domain.value_objects import ApplicationStatus
from core.infrastructure.config import get_retention_months
from core.infrastructure.retry import retry_on_conflict
from core.metrics import (
    application_transition_failures_total,
    application_transitions_total,
    notification_arm_failures_total,
    notification_delivery_failures_total,
)

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"

# History actions that mark delivery problems without changing the status
EMAIL_FAILED_ACTION = "emailFailed"
RETRY_NOTIFICATION_ACTION = "retryNotification"

Transition = Tuple[EAApplication, EAApplication]


class ApplicationStateMachine:
    """
    Drives EAApplication status changes.

    Stateless apart from its collaborators, which are passed in by the
    caller: a repository, a notification scheduler and a license codec.
    """

    def __init__(
        self,
        repository: ApplicationRepository,
        scheduler: Optional[NotificationScheduler] = None,
        codec: Optional[LicenseCodec] = None,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = utcnow,
        retention_months: Optional[int] = None,
        notification_delay_seconds: Optional[int] = None,
        max_conflict_retries: Optional[int] = None,
    ):
        """Initialize the state machine with its collaborators."""
        if event_bus is None:
            from core.infrastructure.events import event_bus as default_bus

            event_bus = default_bus
        self.repository = repository
        self.scheduler = scheduler
        self.codec = codec
        self.event_bus = event_bus
        self.clock = clock
        self.retention_months = retention_months or get_retention_months()
        self.notification_delay_seconds = (
            notification_delay_seconds
            if notification_delay_seconds is not None
            else settings.NOTIFICATION_DELAY_SECONDS
        )
        self.max_conflict_retries = max_conflict_retries

    async def approve(
        self,
        user_id: str,
        sk: str,
        expiry: datetime,
        changed_by: str,
        ea_name: Optional[str] = None,
        account_id: Optional[str] = None,
        email: Optional[str] = None,
        broker: Optional[str] = None,
    ) -> EAApplication:
        """
        Approve a pending application and arm its deferred notification.

        Args:
            user_id: Application owner
            sk: Application sort key
            expiry: License expiry date (must be in the future)
            changed_by: Operator approving the application
            ea_name: EA name to license (defaults to the submitted one)
            account_id: Account to license (defaults to the submitted one)
            email: Delivery address (defaults to the submitted one)
            broker: Broker (defaults to the submitted one)

        Returns:
            The application, now AwaitingNotification

        Raises:
            ValidationError: If ``expiry`` is not in the future
            NotFoundError: If the application does not exist
            InvalidTransitionError: If the application is not Pending
            DuplicateApplicationError: If the broker account has another live application
            ConflictError: If the write kept losing races
        """
        if self.codec is None or self.scheduler is None:
            raise RuntimeError("approve requires a license codec and a notification scheduler")
        if expiry <= self.clock():
            raise ValidationError(
                "Expiry date must be in the future",
                context={"application_id": sk, "expiry": to_iso(expiry)},
            )

        async def attempt() -> Transition:
            current = await self._load(user_id, sk)
            next_status(current.status, ApplicationAction.APPROVE, current.sk)

            target_broker = broker or current.broker
            target_account = account_id or current.account_number
            candidates = await self.repository.query_by_broker_account(
                target_broker, target_account
            )
            conflict = DuplicateAccountGuard.find_conflict(
                replace(current, broker=target_broker, account_number=target_account),
                candidates,
            )
            if conflict is not None:
                raise DuplicateApplicationError(
                    f"Broker account {target_broker}/{target_account} already has "
                    f"an application in status {conflict.status.value}",
                    context={
                        "application_id": current.sk,
                        "action": ApplicationAction.APPROVE.value,
                        "current_status": current.status.value,
                        "conflicting_application_id": conflict.sk,
                    },
                )

            now = self.clock()
            payload = LicensePayloadFactory.build(
                user_id=current.user_id,
                ea_name=ea_name or current.ea_name,
                account_id=target_account,
                expiry=expiry,
                issued_at=now,
            )
            approved = current.approve(
                license_key=self.codec.encrypt(payload),
                expiry_date=expiry,
                notification_scheduled_at=now + timedelta(seconds=self.notification_delay_seconds),
                notification_task_id=self.scheduler.new_handle(),
                now=now,
                ea_name=ea_name,
                account_number=account_id,
                email=email,
                broker=broker,
            )
            stored = await self.repository.conditional_update(approved, current.status)
            return current, stored

        previous, stored = await self._run(ApplicationAction.APPROVE, sk, attempt)
        try:
            await sync_to_async(self.scheduler.arm)(
                stored, stored.notification_scheduled_at, stored.notification_task_id
            )
        except NotificationSchedulingError as e:
            # The overdue-notification sweep fires it once the send time passes
            notification_arm_failures_total.inc()
            logger.error(
                "Failed to arm notification for %s: %s",
                stored.sk,
                e.message,
                extra={"user_id": stored.user_id, "error_code": e.code, **e.context},
            )
        await self._record(
            previous,
            stored,
            ApplicationAction.APPROVE,
            changed_by,
            event=ApplicationApproved,
            notification_scheduled_at=to_iso(stored.notification_scheduled_at),
        )
        return stored

    async def reject(
        self, user_id: str, sk: str, changed_by: str, reason: Optional[str] = None
    ) -> EAApplication:
        """
        Reject a pending application.

        Raises:
            NotFoundError: If the application does not exist
            InvalidTransitionError: If the application is not Pending
        """

        async def attempt() -> Transition:
            current = await self._load(user_id, sk)
            rejected = current.reject(self.clock(), self.retention_months)
            return current, await self.repository.conditional_update(rejected, current.status)

        previous, stored = await self._run(ApplicationAction.REJECT, sk, attempt)
        await self._record(
            previous,
            stored,
            ApplicationAction.REJECT,
            changed_by,
            reason=reason or f"Application rejected by {changed_by}",
        )
        return stored

    async def cancel(
        self, user_id: str, sk: str, changed_by: str, reason: Optional[str] = None
    ) -> EAApplication:
        """
        Cancel an approved application before its notification fires.

        A cancel whose conditional write loses to the firing notification
        reports ``WindowExpiredError``.

        Raises:
            NotFoundError: If the application does not exist
            InvalidTransitionError: If the application is not AwaitingNotification
            WindowExpiredError: If the send time was reached or the send won the race
        """
        lost_race = False

        async def attempt() -> Transition:
            nonlocal lost_race
            current = await self._load(user_id, sk)
            if lost_race and current.status == ApplicationStatus.ACTIVE:
                raise WindowExpiredError(
                    "The license notification was sent before the cancellation landed",
                    context={
                        "application_id": current.sk,
                        "action": ApplicationAction.CANCEL.value,
                        "current_status": current.status.value,
                    },
                )
            cancelled = current.cancel(self.clock(), self.retention_months)
            try:
                stored = await self.repository.conditional_update(cancelled, current.status)
            except ConflictError:
                lost_race = True
                raise
            return current, stored

        previous, stored = await self._run(ApplicationAction.CANCEL, sk, attempt)
        if previous.notification_task_id:
            await sync_to_async(self.scheduler.disarm)(previous.notification_task_id)
        await self._record(
            previous,
            stored,
            ApplicationAction.CANCEL,
            changed_by,
            reason=reason,
            event=ApplicationCancelled,
        )
        return stored

    async def mark_notification_sent(self, user_id: str, sk: str) -> Optional[EAApplication]:
        """
        Activate an application when its deferred notification fires.

        Returns None when the application is no longer awaiting notification,
        which is how a cancel that won the race shows up on this side.
        """

        async def attempt() -> Optional[Transition]:
            current = await self._load(user_id, sk)
            if current.status != ApplicationStatus.AWAITING_NOTIFICATION:
                return None
            activated = current.mark_notification_sent(self.clock())
            return current, await self.repository.conditional_update(activated, current.status)

        result = await self._run(ApplicationAction.NOTIFICATION_SENT, sk, attempt)
        if result is None:
            logger.info(
                "Skipping notification for %s: no longer awaiting notification",
                sk,
                extra={"user_id": user_id},
            )
            return None

        previous, stored = result
        await self._record(
            previous,
            stored,
            ApplicationAction.NOTIFICATION_SENT,
            SYSTEM_ACTOR,
            reason="License generated and notification dispatched",
            event=LicenseActivated,
        )
        return stored

    async def revoke(
        self, user_id: str, sk: str, changed_by: str, reason: Optional[str] = None
    ) -> EAApplication:
        """
        Revoke an active license.

        Raises:
            NotFoundError: If the application does not exist
            InvalidTransitionError: If the application is not Active
        """

        async def attempt() -> Transition:
            current = await self._load(user_id, sk)
            revoked = current.revoke(self.clock(), self.retention_months)
            return current, await self.repository.conditional_update(revoked, current.status)

        previous, stored = await self._run(ApplicationAction.REVOKE, sk, attempt)
        await self._record(previous, stored, ApplicationAction.REVOKE, changed_by, reason=reason)
        return stored

    async def expire_if_elapsed(self, user_id: str, sk: str) -> Optional[EAApplication]:
        """
        Expire an active application whose expiry date has passed.

        Returns:
            The expired application, or None when nothing had to change
        """

        async def attempt() -> Optional[Transition]:
            current = await self._load(user_id, sk)
            now = self.clock()
            if not current.is_expired(now):
                return None
            expired = current.mark_expired(now, self.retention_months)
            return current, await self.repository.conditional_update(expired, current.status)

        result = await self._run(ApplicationAction.EXPIRY_ELAPSED, sk, attempt)
        if result is None:
            return None
        previous, stored = result
        await self._record(
            previous,
            stored,
            ApplicationAction.EXPIRY_ELAPSED,
            SYSTEM_ACTOR,
            reason="License expiry date elapsed",
        )
        return stored

    async def record_delivery_failure(
        self, user_id: str, sk: str, error: str, channel: str = "email"
    ) -> Optional[EAApplication]:
        """
        Mark an active license whose notification exhausted its delivery retries.

        Args:
            user_id: Application owner
            sk: Application sort key
            error: Last delivery error
            channel: Channel the delivery was attempted on

        Returns:
            The marked application, or None when it is no longer Active
        """

        async def attempt() -> Optional[Transition]:
            current = await self._load(user_id, sk)
            if current.status != ApplicationStatus.ACTIVE:
                return None
            failed = current.record_delivery_failure(error, self.clock())
            return current, await self.repository.conditional_update(failed, current.status)

        result = await self._run(EMAIL_FAILED_ACTION, sk, attempt)
        if result is None:
            return None

        previous, stored = result
        notification_delivery_failures_total.labels(channel=channel).inc()
        await self.repository.append_history(
            ApplicationHistory.record(
                previous,
                stored,
                EMAIL_FAILED_ACTION,
                SYSTEM_ACTOR,
                f"License notification failed after retries: {error}",
            )
        )
        logger.error(
            "License notification for %s failed (%s failures): %s",
            sk,
            stored.delivery_failure_count,
            error,
            extra={"user_id": user_id, "channel": channel},
        )
        return stored

    async def retry_delivery(
        self,
        user_id: str,
        sk: str,
        changed_by: str,
        reason: Optional[str] = None,
        force: bool = False,
        max_failures: Optional[int] = None,
    ) -> EAApplication:
        """
        Clear a delivery failure so the notification can be sent again.

        Args:
            user_id: Application owner
            sk: Application sort key
            changed_by: Operator requesting the retry
            reason: Optional free-text reason
            force: Retry even when the failure count reached ``max_failures``
            max_failures: Failure count after which a retry must be forced

        Returns:
            The application with its failure marker cleared

        Raises:
            NotFoundError: If the application does not exist
            InvalidTransitionError: If there is no failed delivery to retry
            ValidationError: If the failure count is exhausted and ``force`` is not set
        """
        limit = max_failures if max_failures is not None else settings.NOTIFICATION_MAX_FAILURE_COUNT

        async def attempt() -> Transition:
            current = await self._load(user_id, sk)
            cleared = current.clear_delivery_failure(self.clock())
            if not force and current.delivery_failure_count >= limit:
                raise ValidationError(
                    f"Maximum retry count ({limit}) exceeded. Use force=true to override.",
                    context={
                        "application_id": current.sk,
                        "currentFailureCount": current.delivery_failure_count,
                        "maxRetryCount": limit,
                        "lastFailureReason": current.last_delivery_error,
                    },
                )
            return current, await self.repository.conditional_update(cleared, current.status)

        previous, stored = await self._run(RETRY_NOTIFICATION_ACTION, sk, attempt)
        await self.repository.append_history(
            ApplicationHistory.record(
                previous,
                stored,
                RETRY_NOTIFICATION_ACTION,
                changed_by,
                reason or "Manual retry requested",
            )
        )
        logger.info(
            "Retrying license notification for %s after %s failures",
            sk,
            previous.delivery_failure_count,
            extra={"user_id": user_id, "changed_by": changed_by, "force": force},
        )
        return stored

    async def refresh(self, application: EAApplication) -> EAApplication:
        """
        Apply lazy expiry to an application that was just read.

        Returns:
            The application as it should be presented to the caller
        """
        if not application.is_expired(self.clock()):
            return application
        expired = await self.expire_if_elapsed(application.user_id, application.sk)
        if expired is not None:
            return expired
        return await self._load(application.user_id, application.sk)

    async def _load(self, user_id: str, sk: str) -> EAApplication:
        application = await self.repository.get(user_id, sk)
        if application is None:
            raise NotFoundError(
                f"Application {sk} not found",
                context={"user_id": user_id, "application_id": sk},
            )
        return application

    async def _run(self, action, sk: str, attempt):
        action = str(action)
        try:
            return await retry_on_conflict(
                attempt,
                max_attempts=self.max_conflict_retries,
                operation_name=f"application.{action}",
            )
        except (InvalidTransitionError, WindowExpiredError, ConflictError) as e:
            application_transition_failures_total.labels(action=action, reason=e.code).inc()
            logger.info(
                "Application %s rejected %s: %s",
                sk,
                action,
                e.message,
                extra={"error_code": e.code, **e.context},
            )
            raise

    async def _record(
        self,
        previous: EAApplication,
        stored: EAApplication,
        action: ApplicationAction,
        changed_by: str,
        reason: Optional[str] = None,
        event=ApplicationStatusChanged,
        **event_fields,
    ) -> None:
        history = ApplicationHistory.record(previous, stored, action.value, changed_by, reason)
        await self.repository.append_history(history)
        if stored.status.is_terminal:
            await self.repository.set_history_ttl(stored.user_id, stored.sk, stored.ttl)

        application_transitions_total.labels(
            action=action.value,
            from_status=previous.status.value,
            to_status=stored.status.value,
        ).inc()
        logger.info(
            "Application %s: %s -> %s (%s)",
            stored.sk,
            previous.status.value,
            stored.status.value,
            action.value,
            extra={"user_id": stored.user_id, "changed_by": changed_by},
        )

        await self.event_bus.publish(
            event(
                aggregate_id=stored.sk,
                user_id=stored.user_id,
                action=action.value,
                previous_status=previous.status.value,
                new_status=stored.status.value,
                changed_by=changed_by,
                reason=reason,
                **event_fields,
            )
        )
