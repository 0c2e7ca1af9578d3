"""
UserProfile domain entity.

One profile per developer account. It tracks the onboarding phase and
embeds the last GAS connection check and the most recent integration test.
"""
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Optional

from core.domain.exceptions import InvalidTransitionError
from core.domain.timestamps import from_iso, to_iso, utcnow
from core.domain.value_objects import SetupPhase
from integrations.domain.integration_test import IntegrationTest

PROFILE_SK = "PROFILE"

PHASE_ORDER = (SetupPhase.SETUP, SetupPhase.TEST, SetupPhase.PRODUCTION)


def can_progress_to_phase(current: SetupPhase, target: SetupPhase) -> bool:
    """
    Check whether a phase change is allowed.

    Only the adjacent forward moves SETUP -> TEST and TEST -> PRODUCTION are
    legal; staying put and moving backwards are not.
    """
    try:
        current_index = PHASE_ORDER.index(SetupPhase(str(current)))
        target_index = PHASE_ORDER.index(SetupPhase(str(target)))
    except ValueError:
        return False
    return target_index == current_index + 1


@dataclass(frozen=True)
class SetupTestResult:
    """Outcome of the GAS connection check run from a developer's WebApp."""

    success: bool
    timestamp: datetime
    details: str


def setup_test_to_dict(result: SetupTestResult) -> Dict[str, Any]:
    """Serialize a connection check to its stored (camelCase) form."""
    return {
        "success": result.success,
        "timestamp": to_iso(result.timestamp),
        "details": result.details,
    }


def setup_test_from_dict(data: Dict[str, Any]) -> SetupTestResult:
    """Inverse of ``setup_test_to_dict``."""
    return SetupTestResult(
        success=data["success"],
        timestamp=from_iso(data["timestamp"]),
        details=data.get("details", ""),
    )


@dataclass(frozen=True)
class UserProfile:
    """
    UserProfile domain entity.

    ``version`` is the optimistic concurrency token of the stored item
    (0 until first saved).
    """

    user_id: str
    setup_phase: SetupPhase
    notification_enabled: bool
    created_at: datetime
    updated_at: datetime
    integration_test: Optional[IntegrationTest] = None
    setup_test: Optional[SetupTestResult] = None
    version: int = 0

    def __post_init__(self):
        """Validate profile entity."""
        if not self.user_id:
            raise ValueError("User ID is required")

    @classmethod
    def create(cls, user_id: str, now: Optional[datetime] = None) -> "UserProfile":
        """
        Create a profile with default settings.

        Args:
            user_id: Owner of the profile
            now: Creation time (defaults to now)

        Returns:
            UserProfile in SETUP with notifications enabled
        """
        now = now or utcnow()
        return cls(
            user_id=user_id,
            setup_phase=SetupPhase.SETUP,
            notification_enabled=True,
            created_at=now,
            updated_at=now,
        )

    def progress_to(self, target: SetupPhase, now: Optional[datetime] = None) -> "UserProfile":
        """
        Move to the next setup phase.

        Raises:
            InvalidTransitionError: If ``target`` is not the next phase
        """
        if not can_progress_to_phase(self.setup_phase, target):
            raise InvalidTransitionError(
                f"Cannot progress setup phase from {self.setup_phase.value} to {target.value}",
                context={
                    "user_id": self.user_id,
                    "action": "progressSetupPhase",
                    "current_phase": self.setup_phase.value,
                    "target_phase": target.value,
                },
            )
        return replace(self, setup_phase=target, updated_at=now or utcnow())

    def with_notifications(self, enabled: bool, now: Optional[datetime] = None) -> "UserProfile":
        """Return a copy with notifications switched on or off."""
        return replace(self, notification_enabled=enabled, updated_at=now or utcnow())

    def with_integration_test(
        self, test: IntegrationTest, now: Optional[datetime] = None
    ) -> "UserProfile":
        """Return a copy embedding ``test`` as the current integration test."""
        return replace(self, integration_test=test, updated_at=now or utcnow())

    def record_setup_test(
        self, result: SetupTestResult, now: Optional[datetime] = None
    ) -> "UserProfile":
        """
        Store the result of a GAS connection check.

        A successful check moves a profile still in SETUP on to TEST; a
        failed one, or one for a profile past SETUP, leaves the phase alone.
        """
        phase = self.setup_phase
        if result.success and phase == SetupPhase.SETUP:
            phase = SetupPhase.TEST
        return replace(self, setup_test=result, setup_phase=phase, updated_at=now or utcnow())
