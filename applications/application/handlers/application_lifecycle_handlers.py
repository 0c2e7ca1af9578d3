"""
Application lifecycle handlers.

Handlers for the operator actions: approve, reject, cancel and revoke.
Each one resolves the application id to its sort key and delegates the
transition to the ApplicationStateMachine.
"""
from applications.application.commands.approve_application import ApproveApplicationCommand
from applications.application.commands.cancel_application import CancelApplicationCommand
from applications.application.commands.reject_application import RejectApplicationCommand
from applications.application.commands.revoke_application import RevokeApplicationCommand
from applications.application.dto.application_dto import ApplicationDTO
from applications.application.services.state_machine import ApplicationStateMachine
from applications.domain.application import normalize_application_sk


class ApproveApplicationHandler:
    """Handler for ApproveApplicationCommand."""

    def __init__(self, state_machine: ApplicationStateMachine):
        """Initialize handler with the state machine."""
        self.state_machine = state_machine

    async def handle(self, command: ApproveApplicationCommand) -> ApplicationDTO:
        """
        Handle approve application command.

        Args:
            command: ApproveApplicationCommand

        Returns:
            ApplicationDTO in AwaitingNotification status

        Raises:
            NotFoundError: If application not found
            InvalidTransitionError: If application is not Pending
            DuplicateApplicationError: If the broker account already has a live application
            ValidationError: If the expiry is not in the future
        """
        approved = await self.state_machine.approve(
            user_id=command.user_id,
            sk=normalize_application_sk(command.application_id),
            expiry=command.expiry,
            changed_by=command.changed_by,
            ea_name=command.ea_name,
            account_id=command.account_id,
            email=command.email,
            broker=command.broker,
        )
        return ApplicationDTO.from_entity(approved)


class RejectApplicationHandler:
    """Handler for RejectApplicationCommand."""

    def __init__(self, state_machine: ApplicationStateMachine):
        """Initialize handler with the state machine."""
        self.state_machine = state_machine

    async def handle(self, command: RejectApplicationCommand) -> ApplicationDTO:
        """
        Handle reject application command.

        Raises:
            NotFoundError: If application not found
            InvalidTransitionError: If application is not Pending
        """
        rejected = await self.state_machine.reject(
            user_id=command.user_id,
            sk=normalize_application_sk(command.application_id),
            changed_by=command.changed_by,
            reason=command.reason,
        )
        return ApplicationDTO.from_entity(rejected)


class CancelApplicationHandler:
    """Handler for CancelApplicationCommand."""

    def __init__(self, state_machine: ApplicationStateMachine):
        """Initialize handler with the state machine."""
        self.state_machine = state_machine

    async def handle(self, command: CancelApplicationCommand) -> ApplicationDTO:
        """
        Handle cancel application command.

        Raises:
            NotFoundError: If application not found
            InvalidTransitionError: If application is not awaiting notification
            WindowExpiredError: If the notification send time was reached
        """
        cancelled = await self.state_machine.cancel(
            user_id=command.user_id,
            sk=normalize_application_sk(command.application_id),
            changed_by=command.changed_by,
            reason=command.reason,
        )
        return ApplicationDTO.from_entity(cancelled)


class RevokeApplicationHandler:
    """Handler for RevokeApplicationCommand."""

    def __init__(self, state_machine: ApplicationStateMachine):
        """Initialize handler with the state machine."""
        self.state_machine = state_machine

    async def handle(self, command: RevokeApplicationCommand) -> ApplicationDTO:
        """
        Handle revoke application command.

        Raises:
            NotFoundError: If application not found
            InvalidTransitionError: If application is not Active
        """
        revoked = await self.state_machine.revoke(
            user_id=command.user_id,
            sk=normalize_application_sk(command.application_id),
            changed_by=command.changed_by,
            reason=command.reason,
        )
        return ApplicationDTO.from_entity(revoked)
