"""
Integration test domain events.
"""
from dataclasses import dataclass
from typing import Optional

from core.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class IntegrationTestStarted(DomainEvent):
    """Event raised when a developer starts an integration test."""

    user_id: str
    gas_webapp_url: str


@dataclass(frozen=True, kw_only=True)
class IntegrationTestStepRecorded(DomainEvent):
    """Event raised for every step report applied to a test."""

    user_id: str
    step: str
    success: bool
    message: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class IntegrationTestCompleted(DomainEvent):
    """Event raised when a test reaches COMPLETED successfully."""

    user_id: str
    duration_ms: Optional[int] = None
