"""
Profile handlers.

Reads create the profile with defaults on first contact; writes go through
a version-checked update with bounded conflict retry.
"""
import logging
from typing import Callable, Optional

from core.domain.exceptions import ConflictError
from core.infrastructure.retry import retry_on_conflict
from profiles.application.commands.progress_setup_phase import ProgressSetupPhaseCommand
from profiles.application.commands.record_gas_connection_test import (
    RecordGasConnectionTestCommand,
)
from profiles.application.commands.update_notification_settings import (
    UpdateNotificationSettingsCommand,
)
from profiles.application.dto.profile_dto import GasConnectionTestDTO, UserProfileDTO
from profiles.application.queries.get_profile import GetProfileQuery
from profiles.domain.user_profile import SetupTestResult, UserProfile, setup_test_to_dict
from profiles.ports.user_profile_repository import UserProfileRepository

logger = logging.getLogger(__name__)


async def get_or_create_profile(repository: UserProfileRepository, user_id: str) -> UserProfile:
    """
    Load a profile, creating it with defaults if the user has none.

    Args:
        repository: Profile repository
        user_id: Owner id

    Returns:
        The stored profile
    """
    profile = await repository.get(user_id)
    if profile is not None:
        return profile
    try:
        profile = await repository.put(UserProfile.create(user_id))
        logger.info("Created profile for %s", user_id, extra={"user_id": user_id})
        return profile
    except ConflictError:
        # Created concurrently by another request
        return await repository.get(user_id)


async def update_profile(
    repository: UserProfileRepository,
    user_id: str,
    change: Callable[[UserProfile], UserProfile],
    operation_name: str,
    max_attempts: Optional[int] = None,
) -> UserProfile:
    """Apply ``change`` to the current profile under conflict retry."""

    async def attempt() -> UserProfile:
        current = await get_or_create_profile(repository, user_id)
        return await repository.conditional_update(change(current))

    return await retry_on_conflict(attempt, max_attempts=max_attempts, operation_name=operation_name)


class GetProfileHandler:
    """Handler for GetProfileQuery."""

    def __init__(self, profile_repository: UserProfileRepository):
        """Initialize handler with repository."""
        self.profile_repository = profile_repository

    async def handle(self, query: GetProfileQuery) -> UserProfileDTO:
        """Return the caller's profile, creating it on first contact."""
        profile = await get_or_create_profile(self.profile_repository, query.user_id)
        return UserProfileDTO.from_entity(profile)


class ProgressSetupPhaseHandler:
    """Handler for ProgressSetupPhaseCommand."""

    def __init__(self, profile_repository: UserProfileRepository):
        """Initialize handler with repository."""
        self.profile_repository = profile_repository

    async def handle(self, command: ProgressSetupPhaseCommand) -> UserProfileDTO:
        """
        Handle progress setup phase command.

        Raises:
            InvalidTransitionError: If the target is not the next phase
        """
        profile = await update_profile(
            self.profile_repository,
            command.user_id,
            lambda current: current.progress_to(command.target_phase),
            operation_name="profile.progress_setup_phase",
        )
        logger.info(
            "Setup phase for %s is now %s",
            command.user_id,
            profile.setup_phase.value,
            extra={"user_id": command.user_id},
        )
        return UserProfileDTO.from_entity(profile)


class UpdateNotificationSettingsHandler:
    """Handler for UpdateNotificationSettingsCommand."""

    def __init__(self, profile_repository: UserProfileRepository):
        """Initialize handler with repository."""
        self.profile_repository = profile_repository

    async def handle(self, command: UpdateNotificationSettingsCommand) -> UserProfileDTO:
        """Switch notifications on or off."""
        profile = await update_profile(
            self.profile_repository,
            command.user_id,
            lambda current: current.with_notifications(command.notification_enabled),
            operation_name="profile.update_notification_settings",
        )
        return UserProfileDTO.from_entity(profile)


class RecordGasConnectionTestHandler:
    """
    Handler for RecordGasConnectionTestCommand.

    The developer's WebApp reports its connection check here before any
    integration test is run.
    """

    def __init__(self, profile_repository: UserProfileRepository):
        """Initialize handler with repository."""
        self.profile_repository = profile_repository

    async def handle(self, command: RecordGasConnectionTestCommand) -> GasConnectionTestDTO:
        """
        Store the check on the profile, moving SETUP to TEST on success.

        Returns:
            GasConnectionTestDTO with the resulting phase and the next step
        """
        default_details = (
            "GAS connection test completed successfully"
            if command.success
            else "GAS connection test failed"
        )
        result = SetupTestResult(
            success=command.success,
            timestamp=command.timestamp,
            details=command.details or default_details,
        )
        profile = await update_profile(
            self.profile_repository,
            command.user_id,
            lambda current: current.record_setup_test(result),
            operation_name="profile.record_gas_connection_test",
        )

        if command.success:
            logger.info(
                "GAS connection test passed for %s, setup phase %s",
                command.user_id,
                profile.setup_phase.value,
                extra={"user_id": command.user_id},
            )
            next_step = "Ready for integration test"
        else:
            logger.warning(
                "GAS connection test failed for %s: %s",
                command.user_id,
                result.details,
                extra={"user_id": command.user_id},
            )
            next_step = "Please check GAS configuration and retry the test"

        return GasConnectionTestDTO(
            user_id=profile.user_id,
            setup_phase=profile.setup_phase.value,
            test_result=setup_test_to_dict(result),
            next_step=next_step,
        )
