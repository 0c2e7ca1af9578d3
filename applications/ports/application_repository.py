"""
Application repository port (interface).

This defines the contract for application persistence operations.
Implementations are in the infrastructure layer.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from applications.domain.application import EAApplication
from applications.domain.history import ApplicationHistory
from core.domain.value_objects import ApplicationStatus


class ApplicationRepository(ABC):
    """
    Abstract repository for EAApplication entities and their history.

    This is a port in hexagonal architecture - it defines
    what operations are available, not how they're implemented.
    """

    @abstractmethod
    async def put(self, application: EAApplication) -> EAApplication:
        """
        Insert a new application.

        Args:
            application: Application entity to insert

        Returns:
            Stored application with its initial version

        Raises:
            ConflictError: If an item with the same key already exists
        """

    @abstractmethod
    async def get(self, user_id: str, sk: str) -> Optional[EAApplication]:
        """
        Find an application by its key.

        Args:
            user_id: Owner id
            sk: Application sort key

        Returns:
            EAApplication entity or None if not found
        """

    @abstractmethod
    async def query_by_status(
        self, user_id: str, status: Optional[ApplicationStatus] = None
    ) -> List[EAApplication]:
        """
        List a user's applications, optionally filtered by status.

        Args:
            user_id: Owner id
            status: Status filter (all statuses when None)

        Returns:
            Applications, most recently applied first
        """

    @abstractmethod
    async def query_by_broker_account(
        self, broker: str, account_number: str
    ) -> List[EAApplication]:
        """
        List every application for a broker account, across users.

        Args:
            broker: Broker name
            account_number: Trading account number

        Returns:
            List of EAApplication entities
        """

    @abstractmethod
    async def conditional_update(
        self, application: EAApplication, expected_status: ApplicationStatus
    ) -> EAApplication:
        """
        Write a changed application if the stored item is still unchanged.

        The write succeeds only when the stored item still has
        ``application.version`` and ``expected_status``.

        Args:
            application: New state of the application
            expected_status: Status observed when the change was computed

        Returns:
            Stored application with its bumped version

        Raises:
            ConflictError: If the stored item changed in the meantime
        """

    @abstractmethod
    async def append_history(self, history: ApplicationHistory) -> ApplicationHistory:
        """
        Store a history record.

        Args:
            history: History record to store

        Returns:
            Stored history record
        """

    @abstractmethod
    async def list_histories(self, user_id: str, application_sk: str) -> List[ApplicationHistory]:
        """
        List an application's history records.

        Args:
            user_id: Owner id
            application_sk: Application sort key

        Returns:
            History records, most recent first
        """

    @abstractmethod
    async def set_history_ttl(self, user_id: str, application_sk: str, ttl: int) -> int:
        """
        Stamp every history record of an application with an expiry.

        Args:
            user_id: Owner id
            application_sk: Application sort key
            ttl: Epoch seconds after which the records may be purged

        Returns:
            Number of history records updated
        """

    @abstractmethod
    async def find_overdue_notifications(
        self, now: datetime, limit: int = 100
    ) -> List[EAApplication]:
        """
        Find AwaitingNotification applications whose send time has passed.

        Args:
            now: Reference time
            limit: Maximum number of applications to return

        Returns:
            List of EAApplication entities
        """

    @abstractmethod
    async def find_expired_active(self, now: datetime, limit: int = 100) -> List[EAApplication]:
        """
        Find Active applications whose expiry date has passed.

        Args:
            now: Reference time
            limit: Maximum number of applications to return

        Returns:
            List of EAApplication entities
        """
