"""
ExpireApplicationsHandler.

Periodic sweep complementing lazy expiry on read.
"""
import logging
from typing import List

from applications.application.commands.expire_applications import ExpireApplicationsCommand
from applications.application.services.state_machine import ApplicationStateMachine
from core.domain.exceptions import ConflictError, InvalidTransitionError

logger = logging.getLogger(__name__)


class ExpireApplicationsHandler:
    """Handler for ExpireApplicationsCommand."""

    def __init__(self, state_machine: ApplicationStateMachine):
        """Initialize handler with the state machine."""
        self.state_machine = state_machine

    async def handle(self, command: ExpireApplicationsCommand) -> List[str]:
        """
        Expire Active applications past their expiry date.

        Args:
            command: ExpireApplicationsCommand

        Returns:
            Sort keys of the applications that were (or, on a dry run, would be) expired
        """
        candidates = await self.state_machine.repository.find_expired_active(
            self.state_machine.clock(), command.limit
        )
        if command.dry_run:
            return [application.sk for application in candidates]

        expired = []
        for application in candidates:
            try:
                result = await self.state_machine.expire_if_elapsed(
                    application.user_id, application.sk
                )
            except (ConflictError, InvalidTransitionError) as e:
                logger.warning(
                    "Skipping expiry of %s: %s",
                    application.sk,
                    e.message,
                    extra={"user_id": application.user_id},
                )
                continue
            if result is not None:
                expired.append(result.sk)

        logger.info("Expired %s applications", len(expired), extra={"count": len(expired)})
        return expired
