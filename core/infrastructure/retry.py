"""
Bounded retry for optimistic concurrency conflicts.

A state change is a read/compute/conditional-write cycle. When the
conditional write loses a race the whole cycle is re-run against the fresh
state, up to a small bound.
"""
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from django.conf import settings

from core.domain.exceptions import ConflictError
from core.metrics import optimistic_conflicts_total

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_on_conflict(
    operation: Callable[[], Awaitable[T]],
    max_attempts: Optional[int] = None,
    operation_name: str = "operation",
) -> T:
    """
    Run ``operation`` and re-run it when it raises ``ConflictError``.

    No delay is inserted between attempts: each attempt starts with a fresh
    read, so the next attempt observes the write that beat it.

    Args:
        operation: Coroutine factory performing one full read/compute/write cycle
        max_attempts: Total attempts (defaults to ``CONFLICT_RETRY_LIMIT``)
        operation_name: Name used in logs and metrics

    Returns:
        Result of the first attempt that does not conflict

    Raises:
        ConflictError: If every attempt conflicted
    """
    attempts = max_attempts if max_attempts is not None else settings.CONFLICT_RETRY_LIMIT
    attempts = max(1, attempts)
    last_error: Optional[ConflictError] = None

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except ConflictError as e:
            last_error = e
            optimistic_conflicts_total.labels(operation=operation_name).inc()
            logger.info(
                "Conflict on %s (attempt %s/%s)",
                operation_name,
                attempt,
                attempts,
                extra={"operation": operation_name, "attempt": attempt, **e.context},
            )

    logger.warning(
        "Giving up on %s after %s conflicting attempts",
        operation_name,
        attempts,
        extra={"operation": operation_name},
    )
    raise last_error
