"""
Client-side polling of a running integration test.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from django.conf import settings

from core.domain.exceptions import PollingTimeoutError
from integrations.application.services.integration_test_service import IntegrationTestStatus

logger = logging.getLogger(__name__)

StatusReader = Callable[[str], Awaitable[IntegrationTestStatus]]


class IntegrationTestPoller:
    """
    Waits for an integration test to finish.

    Reads the status at a fixed interval, at most ``max_attempts`` times.
    Running out of attempts raises ``PollingTimeoutError`` and leaves the
    test itself untouched.
    """

    def __init__(
        self,
        read_status: StatusReader,
        interval_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize poller.

        Args:
            read_status: Coroutine returning the status for a user id
            interval_seconds: Delay between reads (defaults to ``INTEGRATION_TEST_POLL_INTERVAL_SECONDS``)
            max_attempts: Maximum number of reads (defaults to ``INTEGRATION_TEST_POLL_MAX_ATTEMPTS``)
            sleep: Sleep coroutine
        """
        self.read_status = read_status
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else settings.INTEGRATION_TEST_POLL_INTERVAL_SECONDS
        )
        self.max_attempts = max_attempts or settings.INTEGRATION_TEST_POLL_MAX_ATTEMPTS
        self.sleep = sleep

    async def wait_for_completion(self, user_id: str) -> IntegrationTestStatus:
        """
        Poll until the user's test completes or fails.

        Returns:
            The first status that is no longer in progress

        Raises:
            PollingTimeoutError: If the test is still running after ``max_attempts`` reads
        """
        status = None
        for attempt in range(1, self.max_attempts + 1):
            status = await self.read_status(user_id)
            if status.test is not None and (not status.active or status.can_retry):
                return status

            logger.debug(
                "Integration test for %s at %s%% (poll %s/%s)",
                user_id,
                status.progress,
                attempt,
                self.max_attempts,
            )
            if attempt < self.max_attempts:
                await self.sleep(self.interval_seconds)

        raise PollingTimeoutError(
            f"Integration test did not finish after {self.max_attempts} polls",
            context={
                "user_id": user_id,
                "attempts": self.max_attempts,
                "progress": status.progress if status else 0,
                "test_id": status.test.test_id if status and status.test else None,
            },
        )
