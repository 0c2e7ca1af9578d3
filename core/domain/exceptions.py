"""
Domain exceptions.

Domain exceptions represent business rule violations
and domain-specific error conditions.
"""
from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    default_code = "DOMAIN_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize domain exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code
            context: Diagnostic details (entity id, attempted action, current state)
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.context = context or {}


class InvalidTransitionError(DomainException):
    """Raised when a state change is not allowed from the current state."""

    default_code = "INVALID_TRANSITION"

    def __init__(
        self,
        message: str = "Invalid state transition",
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, context=context)


class DuplicateApplicationError(InvalidTransitionError):
    """Raised when a broker/account pair already has a live application."""

    default_code = "DUPLICATE_APPLICATION"


class IntegrationTestInProgressError(InvalidTransitionError):
    """Raised when a new integration test is started while one is running."""

    default_code = "INTEGRATION_TEST_IN_PROGRESS"


class ConflictError(DomainException):
    """Raised when a conditional write loses an optimistic concurrency race."""

    default_code = "CONFLICT"

    def __init__(
        self,
        message: str = "Concurrent modification detected",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)


class WindowExpiredError(DomainException):
    """Raised when a time-boxed action is attempted after its window closed."""

    default_code = "WINDOW_EXPIRED"

    def __init__(
        self,
        message: str = "The cancellation window has expired",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)


class DecodeError(DomainException):
    """Raised when a license payload cannot be decoded."""

    default_code = "DECODE_ERROR"

    def __init__(self, message: str = "Malformed license payload"):
        super().__init__(message)


class ValidationError(DomainException):
    """Raised when an inbound request or event is malformed."""

    default_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str = "Invalid request",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)


class NotFoundError(DomainException):
    """Raised when an application, profile or integration test does not exist."""

    default_code = "NOT_FOUND"

    def __init__(
        self,
        message: str = "Resource not found",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)


class InvalidSignatureError(DomainException):
    """Raised when an inbound webhook signature does not verify."""

    default_code = "INVALID_SIGNATURE"

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message)


class PollingTimeoutError(DomainException):
    """Raised when a client gives up polling an integration test."""

    default_code = "POLLING_TIMEOUT"

    def __init__(
        self,
        message: str = "Integration test did not finish in time",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)


class NotificationDeliveryError(DomainException):
    """Raised when a license notification could not be delivered."""

    default_code = "NOTIFICATION_DELIVERY_FAILED"

    def __init__(
        self,
        message: str = "License notification delivery failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)


class NotificationSchedulingError(DomainException):
    """Raised when the deferred license notification could not be armed."""

    default_code = "SCHEDULING_FAILED"

    def __init__(
        self,
        message: str = "License notification could not be scheduled",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)
