"""
Profile DTOs for API responses.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from integrations.domain.integration_test import integration_test_to_dict
from profiles.domain.user_profile import UserProfile, setup_test_to_dict


@dataclass
class UserProfileDTO:
    """DTO for profile information."""

    user_id: str
    setup_phase: str
    notification_enabled: bool
    created_at: datetime
    updated_at: datetime
    test_results: Optional[Dict[str, Any]]

    @classmethod
    def from_entity(cls, profile: UserProfile) -> "UserProfileDTO":
        """Build DTO from a profile entity."""
        test_results = {}
        if profile.setup_test is not None:
            test_results["setupTest"] = setup_test_to_dict(profile.setup_test)
        if profile.integration_test is not None:
            test_results["integration"] = integration_test_to_dict(profile.integration_test)
        return cls(
            user_id=profile.user_id,
            setup_phase=profile.setup_phase.value,
            notification_enabled=profile.notification_enabled,
            created_at=profile.created_at,
            updated_at=profile.updated_at,
            test_results=test_results or None,
        )


@dataclass
class GasConnectionTestDTO:
    """DTO for the outcome of a recorded GAS connection check."""

    user_id: str
    setup_phase: str
    test_result: Dict[str, Any]
    next_step: str
