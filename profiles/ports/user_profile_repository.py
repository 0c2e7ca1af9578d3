"""
UserProfileRepository port.

Abstract interface for user profile persistence. Profiles embed the current
integration test, so this port is also how integration tests are stored.
"""
from abc import ABC, abstractmethod
from typing import Optional

from profiles.domain.user_profile import UserProfile


class UserProfileRepository(ABC):
    """
    Abstract repository for UserProfile entities.

    Implementations must handle persistence details.
    """

    @abstractmethod
    async def put(self, profile: UserProfile) -> UserProfile:
        """
        Insert a new profile.

        Raises:
            ConflictError: If the user already has a profile
        """

    @abstractmethod
    async def get(self, user_id: str) -> Optional[UserProfile]:
        """Find a profile by owner, or None."""

    @abstractmethod
    async def conditional_update(self, profile: UserProfile) -> UserProfile:
        """
        Write ``profile`` if the stored version still equals ``profile.version``.

        Returns:
            The stored profile with its new version

        Raises:
            ConflictError: If the profile changed since it was read
        """

    @abstractmethod
    async def find_by_test_id(self, test_id: str) -> Optional[UserProfile]:
        """Find the profile whose current integration test is ``test_id``."""
