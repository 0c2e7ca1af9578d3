"""
Django implementation of ApplicationRepository port.

This adapter converts between domain entities and items of the
single license table.
"""
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from asgiref.sync import sync_to_async
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from applications.domain.application import APPLICATION_PREFIX, EAApplication
from applications.domain.history import ApplicationHistory, history_prefix_for
from applications.ports.application_repository import ApplicationRepository
from core.domain.exceptions import ConflictError
from core.domain.timestamps import from_iso, to_iso
from core.domain.value_objects import ApplicationStatus
from core.infrastructure.models import ItemType, TableItem


def _iso_or_none(value: Optional[datetime]) -> Optional[str]:
    return to_iso(value) if value else None


def _datetime_or_none(value: Optional[str]) -> Optional[datetime]:
    return from_iso(value) if value else None


class DjangoApplicationRepository(ApplicationRepository):
    """
    Django ORM implementation of ApplicationRepository.

    This adapter:
    1. Converts table items to domain entities
    2. Converts domain entities to table items
    3. Turns lost conditional writes into ConflictError
    """

    def _to_domain(self, item: TableItem) -> EAApplication:
        """
        Convert a table item to a domain entity.

        Args:
            item: Application item

        Returns:
            EAApplication domain entity
        """
        attrs = item.attributes
        return EAApplication(
            user_id=item.user_id,
            sk=item.sk,
            account_number=item.account_number,
            ea_name=attrs["eaName"],
            broker=item.broker,
            email=attrs["email"],
            x_account=attrs.get("xAccount", ""),
            status=ApplicationStatus(item.status),
            applied_at=from_iso(attrs["appliedAt"]),
            updated_at=from_iso(attrs["updatedAt"]),
            notification_scheduled_at=_datetime_or_none(attrs.get("notificationScheduledAt")),
            license_key=attrs.get("licenseKey"),
            expiry_date=_datetime_or_none(attrs.get("expiryDate")),
            integration_test_id=attrs.get("integrationTestId"),
            notification_task_id=attrs.get("notificationTaskId"),
            delivery_failure_count=attrs.get("deliveryFailureCount", 0),
            last_delivery_error=attrs.get("lastDeliveryError"),
            last_delivery_failed_at=_datetime_or_none(attrs.get("lastDeliveryFailedAt")),
            ttl=item.ttl,
            version=item.version,
        )

    def _attributes(self, application: EAApplication) -> Dict[str, Any]:
        """Serialize the non-indexed part of an application."""
        attrs = {
            "eaName": application.ea_name,
            "email": application.email,
            "xAccount": application.x_account,
            "appliedAt": to_iso(application.applied_at),
            "updatedAt": to_iso(application.updated_at),
            "notificationScheduledAt": _iso_or_none(application.notification_scheduled_at),
            "licenseKey": application.license_key,
            "expiryDate": _iso_or_none(application.expiry_date),
            "integrationTestId": application.integration_test_id,
            "notificationTaskId": application.notification_task_id,
            "deliveryFailureCount": application.delivery_failure_count or None,
            "lastDeliveryError": application.last_delivery_error,
            "lastDeliveryFailedAt": _iso_or_none(application.last_delivery_failed_at),
        }
        return {key: value for key, value in attrs.items() if value is not None}

    def _history_to_domain(self, item: TableItem) -> ApplicationHistory:
        """Convert a history item to a domain entity."""
        attrs = item.attributes
        previous = attrs.get("previousStatus")
        return ApplicationHistory(
            user_id=item.user_id,
            sk=item.sk,
            application_sk=attrs["applicationSK"],
            action=attrs["action"],
            changed_by=attrs["changedBy"],
            changed_at=from_iso(attrs["changedAt"]),
            previous_status=ApplicationStatus(previous) if previous else None,
            new_status=ApplicationStatus(item.status),
            reason=attrs.get("reason"),
            ttl=item.ttl,
        )

    @sync_to_async
    def put(self, application: EAApplication) -> EAApplication:
        """
        Insert a new application.

        Args:
            application: Application entity to insert

        Returns:
            Stored application with version 1
        """
        try:
            with transaction.atomic():
                item = TableItem.objects.create(
                    user_id=application.user_id,
                    sk=application.sk,
                    item_type=ItemType.APPLICATION,
                    status=application.status.value,
                    broker=application.broker,
                    account_number=application.account_number,
                    version=1,
                    ttl=application.ttl,
                    attributes=self._attributes(application),
                )
        except IntegrityError as e:
            raise ConflictError(
                f"Application {application.sk} already exists",
                context={"user_id": application.user_id, "application_id": application.sk},
            ) from e
        return self._to_domain(item)

    @sync_to_async
    def get(self, user_id: str, sk: str) -> Optional[EAApplication]:
        """
        Find an application by its key.

        Args:
            user_id: Owner id
            sk: Application sort key

        Returns:
            EAApplication entity or None if not found
        """
        try:
            item = TableItem.objects.get(user_id=user_id, sk=sk, item_type=ItemType.APPLICATION)
        except TableItem.DoesNotExist:
            return None
        return self._to_domain(item)

    @sync_to_async
    def query_by_status(
        self, user_id: str, status: Optional[ApplicationStatus] = None
    ) -> List[EAApplication]:
        """
        List a user's applications through the user/status index.

        Args:
            user_id: Owner id
            status: Status filter (all statuses when None)

        Returns:
            Applications, most recently applied first
        """
        items = TableItem.objects.filter(user_id=user_id, item_type=ItemType.APPLICATION)
        if status is not None:
            items = items.filter(status=status.value)
        return [self._to_domain(item) for item in items.order_by("-sk")]

    @sync_to_async
    def query_by_broker_account(self, broker: str, account_number: str) -> List[EAApplication]:
        """
        List applications through the broker/account index.

        Args:
            broker: Broker name
            account_number: Trading account number

        Returns:
            List of EAApplication entities
        """
        items = TableItem.objects.filter(
            broker=broker,
            account_number=account_number,
            item_type=ItemType.APPLICATION,
        )
        return [self._to_domain(item) for item in items]

    @sync_to_async
    def conditional_update(
        self, application: EAApplication, expected_status: ApplicationStatus
    ) -> EAApplication:
        """
        Write a changed application if the stored item is unchanged.

        Args:
            application: New state of the application
            expected_status: Status observed when the change was computed

        Returns:
            Stored application with its bumped version

        Raises:
            ConflictError: If the version or status no longer match
        """
        updated = TableItem.objects.filter(
            user_id=application.user_id,
            sk=application.sk,
            item_type=ItemType.APPLICATION,
            version=application.version,
            status=expected_status.value,
        ).update(
            status=application.status.value,
            broker=application.broker,
            account_number=application.account_number,
            ttl=application.ttl,
            attributes=self._attributes(application),
            version=F("version") + 1,
            updated_at=timezone.now(),
        )
        if updated == 0:
            raise ConflictError(
                f"Application {application.sk} changed since it was read",
                context={
                    "user_id": application.user_id,
                    "application_id": application.sk,
                    "expected_status": expected_status.value,
                    "expected_version": application.version,
                },
            )
        return replace(application, version=application.version + 1)

    @sync_to_async
    def append_history(self, history: ApplicationHistory) -> ApplicationHistory:
        """
        Store a history record.

        Args:
            history: History record to store

        Returns:
            Stored history record
        """
        attributes = {
            "applicationSK": history.application_sk,
            "action": history.action,
            "changedBy": history.changed_by,
            "changedAt": to_iso(history.changed_at),
            "previousStatus": history.previous_status.value if history.previous_status else None,
            "newStatus": history.new_status.value,
            "reason": history.reason,
        }
        TableItem.objects.create(
            user_id=history.user_id,
            sk=history.sk,
            item_type=ItemType.HISTORY,
            status=history.new_status.value,
            ttl=history.ttl,
            attributes={key: value for key, value in attributes.items() if value is not None},
        )
        return history

    @sync_to_async
    def list_histories(self, user_id: str, application_sk: str) -> List[ApplicationHistory]:
        """
        List an application's history records.

        Args:
            user_id: Owner id
            application_sk: Application sort key

        Returns:
            History records, most recent first
        """
        items = TableItem.objects.filter(
            user_id=user_id,
            item_type=ItemType.HISTORY,
            sk__startswith=history_prefix_for(application_sk),
        ).order_by("-sk")
        return [self._history_to_domain(item) for item in items]

    @sync_to_async
    def set_history_ttl(self, user_id: str, application_sk: str, ttl: int) -> int:
        """
        Stamp every history record of an application with an expiry.

        Args:
            user_id: Owner id
            application_sk: Application sort key
            ttl: Epoch seconds after which the records may be purged

        Returns:
            Number of history records updated
        """
        return TableItem.objects.filter(
            user_id=user_id,
            item_type=ItemType.HISTORY,
            sk__startswith=history_prefix_for(application_sk),
        ).update(ttl=ttl, updated_at=timezone.now())

    @sync_to_async
    def find_overdue_notifications(self, now: datetime, limit: int = 100) -> List[EAApplication]:
        """
        Find AwaitingNotification applications whose send time has passed.

        Args:
            now: Reference time
            limit: Maximum number of applications to return

        Returns:
            List of EAApplication entities
        """
        overdue = []
        items = TableItem.objects.filter(
            item_type=ItemType.APPLICATION,
            status=ApplicationStatus.AWAITING_NOTIFICATION.value,
            sk__startswith=APPLICATION_PREFIX,
        ).order_by("user_id", "sk")
        for item in items.iterator():
            application = self._to_domain(item)
            if application.notification_scheduled_at <= now:
                overdue.append(application)
                if len(overdue) >= limit:
                    break
        return overdue

    @sync_to_async
    def find_expired_active(self, now: datetime, limit: int = 100) -> List[EAApplication]:
        """
        Find Active applications whose expiry date has passed.

        Args:
            now: Reference time
            limit: Maximum number of applications to return

        Returns:
            List of EAApplication entities
        """
        expired = []
        items = TableItem.objects.filter(
            item_type=ItemType.APPLICATION,
            status=ApplicationStatus.ACTIVE.value,
            sk__startswith=APPLICATION_PREFIX,
        ).order_by("user_id", "sk")
        for item in items.iterator():
            application = self._to_domain(item)
            if application.is_expired(now):
                expired.append(application)
                if len(expired) >= limit:
                    break
        return expired
