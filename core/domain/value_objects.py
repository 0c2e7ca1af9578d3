"""
Value objects for the domain.

Value objects are immutable objects that are defined by their attributes
rather than their identity. They have no identity and are compared by value.
"""
from enum import Enum


class ApplicationStatus(Enum):
    """Status of an EA license application."""

    PENDING = "Pending"
    AWAITING_NOTIFICATION = "AwaitingNotification"
    ACTIVE = "Active"
    EXPIRED = "Expired"
    REVOKED = "Revoked"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        """Terminal statuses accept no further transitions."""
        return self in TERMINAL_STATUSES

    def __str__(self) -> str:
        """Return status as string."""
        return self.value


TERMINAL_STATUSES = frozenset(
    {
        ApplicationStatus.EXPIRED,
        ApplicationStatus.REVOKED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.CANCELLED,
    }
)


class IntegrationTestStep(Enum):
    """Steps of the integration test, in execution order."""

    STARTED = "STARTED"
    GAS_WEBHOOK_RECEIVED = "GAS_WEBHOOK_RECEIVED"
    LICENSE_ISSUED = "LICENSE_ISSUED"
    COMPLETED = "COMPLETED"

    def __str__(self) -> str:
        """Return step as string."""
        return self.value


class StepStatus(Enum):
    """Outcome of the most recently reported integration test step."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

    def __str__(self) -> str:
        """Return status as string."""
        return self.value


class SetupPhase(Enum):
    """Developer onboarding phase."""

    SETUP = "SETUP"
    TEST = "TEST"
    PRODUCTION = "PRODUCTION"

    def __str__(self) -> str:
        """Return phase as string."""
        return self.value
