"""
Application query handlers.

Read side of the applications module: listing by status, reading the
status history and summarizing undelivered notifications. Listing applies
lazy expiry so that an Active license past its expiry date is never
reported as Active.
"""
import logging
from datetime import timedelta
from typing import Callable, List, Optional

from django.conf import settings

from applications.application.dto.application_dto import (
    ApplicationDTO,
    ApplicationHistoryDTO,
    FailedNotificationDTO,
    FailureStatusDTO,
)
from applications.application.queries.get_application_histories import (
    GetApplicationHistoriesQuery,
)
from applications.application.queries.get_failure_status import GetFailureStatusQuery
from applications.application.queries.list_applications import ListApplicationsQuery
from applications.application.services.state_machine import ApplicationStateMachine
from applications.domain.application import normalize_application_sk
from applications.ports.application_repository import ApplicationRepository
from core.domain.exceptions import NotFoundError
from core.domain.timestamps import utcnow
from core.domain.value_objects import ApplicationStatus

RECENT_FAILURE_WINDOW = timedelta(hours=24)

logger = logging.getLogger(__name__)


class ListApplicationsHandler:
    """Handler for ListApplicationsQuery."""

    def __init__(self, state_machine: ApplicationStateMachine):
        """Initialize handler with the state machine."""
        self.state_machine = state_machine

    async def handle(self, query: ListApplicationsQuery) -> List[ApplicationDTO]:
        """
        Handle list applications query.

        Args:
            query: ListApplicationsQuery

        Returns:
            Applications, most recent first
        """
        applications = await self.state_machine.repository.query_by_status(
            query.user_id, query.status
        )

        results = []
        for application in applications:
            refreshed = await self.state_machine.refresh(application)
            if query.status is not None and refreshed.status != query.status:
                continue
            results.append(ApplicationDTO.from_entity(refreshed))
        return results


class GetApplicationHistoriesHandler:
    """Handler for GetApplicationHistoriesQuery."""

    def __init__(self, application_repository: ApplicationRepository):
        """Initialize handler with repository."""
        self.application_repository = application_repository

    async def handle(self, query: GetApplicationHistoriesQuery) -> List[ApplicationHistoryDTO]:
        """
        Handle get histories query.

        Returns:
            History records, most recent first

        Raises:
            NotFoundError: If the application does not exist and has no history
        """
        sk = normalize_application_sk(query.application_id)
        histories = await self.application_repository.list_histories(query.user_id, sk)
        if not histories and await self.application_repository.get(query.user_id, sk) is None:
            raise NotFoundError(
                f"Application {sk} not found",
                context={"user_id": query.user_id, "application_id": sk},
            )
        return [ApplicationHistoryDTO.from_entity(history) for history in histories]


class GetFailureStatusHandler:
    """Handler for GetFailureStatusQuery."""

    def __init__(
        self,
        application_repository: ApplicationRepository,
        max_failures: Optional[int] = None,
        clock: Callable = utcnow,
    ):
        """Initialize handler with repository and the retry budget."""
        self.application_repository = application_repository
        self.max_failures = (
            max_failures if max_failures is not None else settings.NOTIFICATION_MAX_FAILURE_COUNT
        )
        self.clock = clock

    async def handle(self, query: GetFailureStatusQuery) -> FailureStatusDTO:
        """
        Summarize the user's Active licenses whose notification failed.

        Returns:
            FailureStatusDTO, most recent failure first
        """
        active = await self.application_repository.query_by_status(
            query.user_id, ApplicationStatus.ACTIVE
        )
        failed = sorted(
            (application for application in active if application.delivery_failed),
            key=lambda application: application.last_delivery_failed_at,
            reverse=True,
        )
        retryable = [
            application for application in failed if application.is_retryable(self.max_failures)
        ]
        recent_since = self.clock() - RECENT_FAILURE_WINDOW

        return FailureStatusDTO(
            total_failures=len(failed),
            retryable_failures=len(retryable),
            max_retry_exceeded=len(failed) - len(retryable),
            recent_failures=sum(
                1 for application in failed if application.last_delivery_failed_at >= recent_since
            ),
            max_retry_count=self.max_failures,
            applications=[
                FailedNotificationDTO.from_entity(application, self.max_failures)
                for application in failed
            ],
        )
