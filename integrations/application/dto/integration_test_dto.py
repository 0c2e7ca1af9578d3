"""
Integration test DTOs for API responses.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from integrations.application.services.integration_test_service import IntegrationTestStatus
from integrations.domain.integration_test import (
    IntegrationTest,
    get_integration_test_progress,
    get_test_duration,
    integration_test_to_dict,
)


@dataclass
class StartIntegrationTestDTO:
    """DTO for a started integration test."""

    test_id: str
    status: str
    next_step: Optional[str]
    estimated_duration_seconds: int
    error: Optional[str] = None


@dataclass
class IntegrationTestStatusDTO:
    """DTO for integration test status."""

    active: bool
    test: Optional[Dict[str, Any]]
    can_retry: bool
    next_step: Optional[str]
    progress: int
    duration_ms: Optional[int] = None

    @classmethod
    def from_status(cls, status: IntegrationTestStatus) -> "IntegrationTestStatusDTO":
        """Build DTO from a status snapshot."""
        return cls(
            active=status.active,
            test=integration_test_to_dict(status.test) if status.test else None,
            can_retry=status.can_retry,
            next_step=status.next_step.value if status.next_step else None,
            progress=status.progress,
            duration_ms=get_test_duration(status.test),
        )


@dataclass
class IntegrationTestStepDTO:
    """DTO returned after a step report was applied."""

    test_id: str
    current_step: str
    current_step_status: str
    progress: int

    @classmethod
    def from_entity(cls, test: IntegrationTest) -> "IntegrationTestStepDTO":
        """Build DTO from an integration test."""
        return cls(
            test_id=test.test_id,
            current_step=test.current_step.value,
            current_step_status=test.current_step_status.value,
            progress=get_integration_test_progress(test),
        )
