"""
Django implementation of UserProfileRepository port.

The profile is one ``PROFILE`` item per user. The last GAS connection check
is embedded under ``testResults.setupTest``. The current integration test
is embedded under ``testResults.integration`` and its id is copied to the
indexed ``test_id`` column so harness events can be routed by test id.
"""
from dataclasses import replace
from typing import Any, Dict, Optional

from asgiref.sync import sync_to_async
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from core.domain.exceptions import ConflictError
from core.domain.timestamps import from_iso, to_iso
from core.domain.value_objects import SetupPhase
from core.infrastructure.models import ItemType, TableItem
from integrations.domain.integration_test import (
    integration_test_from_dict,
    integration_test_to_dict,
)
from profiles.domain.user_profile import (
    PROFILE_SK,
    UserProfile,
    setup_test_from_dict,
    setup_test_to_dict,
)
from profiles.ports.user_profile_repository import UserProfileRepository


class DjangoUserProfileRepository(UserProfileRepository):
    """Django ORM implementation of UserProfileRepository."""

    def _to_domain(self, item: TableItem) -> UserProfile:
        """Convert a profile item to a domain entity."""
        attrs = item.attributes
        test_results = attrs.get("testResults") or {}
        integration = test_results.get("integration")
        setup_test = test_results.get("setupTest")
        return UserProfile(
            user_id=item.user_id,
            setup_phase=SetupPhase(attrs["setupPhase"]),
            notification_enabled=attrs["notificationEnabled"],
            created_at=from_iso(attrs["createdAt"]),
            updated_at=from_iso(attrs["updatedAt"]),
            integration_test=integration_test_from_dict(integration) if integration else None,
            setup_test=setup_test_from_dict(setup_test) if setup_test else None,
            version=item.version,
        )

    def _attributes(self, profile: UserProfile) -> Dict[str, Any]:
        """Serialize a profile."""
        attrs = {
            "setupPhase": profile.setup_phase.value,
            "notificationEnabled": profile.notification_enabled,
            "createdAt": to_iso(profile.created_at),
            "updatedAt": to_iso(profile.updated_at),
        }
        test_results = {}
        if profile.setup_test is not None:
            test_results["setupTest"] = setup_test_to_dict(profile.setup_test)
        if profile.integration_test is not None:
            test_results["integration"] = integration_test_to_dict(profile.integration_test)
        if test_results:
            attrs["testResults"] = test_results
        return attrs

    @staticmethod
    def _test_id(profile: UserProfile) -> Optional[str]:
        return profile.integration_test.test_id if profile.integration_test else None

    @sync_to_async
    def put(self, profile: UserProfile) -> UserProfile:
        """
        Insert a new profile.

        Raises:
            ConflictError: If the user already has a profile
        """
        try:
            with transaction.atomic():
                item = TableItem.objects.create(
                    user_id=profile.user_id,
                    sk=PROFILE_SK,
                    item_type=ItemType.PROFILE,
                    test_id=self._test_id(profile),
                    version=1,
                    attributes=self._attributes(profile),
                )
        except IntegrityError as e:
            raise ConflictError(
                f"Profile for {profile.user_id} already exists",
                context={"user_id": profile.user_id},
            ) from e
        return self._to_domain(item)

    @sync_to_async
    def get(self, user_id: str) -> Optional[UserProfile]:
        """Find a profile by owner."""
        item = TableItem.objects.filter(
            user_id=user_id, sk=PROFILE_SK, item_type=ItemType.PROFILE
        ).first()
        return self._to_domain(item) if item else None

    @sync_to_async
    def conditional_update(self, profile: UserProfile) -> UserProfile:
        """
        Write ``profile`` if its stored version is unchanged.

        Raises:
            ConflictError: If the profile changed since it was read
        """
        updated = TableItem.objects.filter(
            user_id=profile.user_id,
            sk=PROFILE_SK,
            item_type=ItemType.PROFILE,
            version=profile.version,
        ).update(
            test_id=self._test_id(profile),
            attributes=self._attributes(profile),
            version=F("version") + 1,
            updated_at=timezone.now(),
        )
        if updated == 0:
            raise ConflictError(
                f"Profile for {profile.user_id} changed since it was read",
                context={"user_id": profile.user_id, "expected_version": profile.version},
            )
        return replace(profile, version=profile.version + 1)

    @sync_to_async
    def find_by_test_id(self, test_id: str) -> Optional[UserProfile]:
        """Find the profile currently running ``test_id``."""
        item = TableItem.objects.filter(item_type=ItemType.PROFILE, test_id=test_id).first()
        return self._to_domain(item) if item else None
