"""
Profile API views.
"""

from asgiref.sync import async_to_sync
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from api.v1.common import require_user_id, validated
from api.v1.profile.serializers import (
    ProgressSetupPhaseRequestSerializer,
    UpdateProfileRequestSerializer,
    UserProfileDTOSerializer,
)
from core import container
from core.domain.value_objects import SetupPhase
from core.instrumentation import Status, StatusCode, get_tracer
from profiles.application.commands.progress_setup_phase import ProgressSetupPhaseCommand
from profiles.application.commands.update_notification_settings import (
    UpdateNotificationSettingsCommand,
)
from profiles.application.handlers.profile_handlers import (
    GetProfileHandler,
    ProgressSetupPhaseHandler,
    UpdateNotificationSettingsHandler,
)
from profiles.application.queries.get_profile import GetProfileQuery

tracer = get_tracer(__name__)


class ProfileView(APIView):
    """View for reading and updating the caller's profile."""

    @extend_schema(
        operation_id="get_profile",
        summary="Get Profile",
        description="Return the caller's profile, creating it with defaults on first contact.",
        tags=["Profile"],
        responses={
            200: UserProfileDTOSerializer,
            401: {"description": "Unauthorized - Missing X-User-Id header"},
        },
    )
    def get(self, request: Request) -> Response:
        """Get the caller's profile."""
        return async_to_sync(self._handle_get)(request)

    async def _handle_get(self, request: Request) -> Response:
        """Async handler for get profile."""
        with tracer.start_as_current_span("get_profile") as span:
            span.set_attribute("operation", "get_profile")
            user_id = require_user_id(request)

            handler = GetProfileHandler(container.profile_repository)
            result = await handler.handle(GetProfileQuery(user_id=user_id))

            span.set_attribute("setup_phase", result.setup_phase)
            span.set_status(Status(StatusCode.OK))
            return Response(UserProfileDTOSerializer(result).data, status=status.HTTP_200_OK)

    @extend_schema(
        operation_id="update_profile",
        summary="Update Notification Settings",
        description="Switch license notifications on or off.",
        tags=["Profile"],
        request=UpdateProfileRequestSerializer,
        responses={
            200: UserProfileDTOSerializer,
            400: {"description": "Bad Request"},
            401: {"description": "Unauthorized - Missing X-User-Id header"},
        },
    )
    def patch(self, request: Request) -> Response:
        """Update the caller's notification settings."""
        return async_to_sync(self._handle_patch)(request)

    async def _handle_patch(self, request: Request) -> Response:
        """Async handler for update profile."""
        with tracer.start_as_current_span("update_profile") as span:
            span.set_attribute("operation", "update_profile")
            user_id = require_user_id(request)
            data = validated(UpdateProfileRequestSerializer, request.data, span)
            span.set_attribute("notification_enabled", data["notificationEnabled"])

            handler = UpdateNotificationSettingsHandler(container.profile_repository)
            result = await handler.handle(
                UpdateNotificationSettingsCommand(
                    user_id=user_id, notification_enabled=data["notificationEnabled"]
                )
            )

            span.set_status(Status(StatusCode.OK))
            return Response(UserProfileDTOSerializer(result).data, status=status.HTTP_200_OK)


class ProgressSetupPhaseView(APIView):
    """View for moving the caller to the next setup phase."""

    @extend_schema(
        operation_id="progress_setup_phase",
        summary="Progress Setup Phase",
        description="Move from SETUP to TEST or from TEST to PRODUCTION.",
        tags=["Profile"],
        request=ProgressSetupPhaseRequestSerializer,
        responses={
            200: UserProfileDTOSerializer,
            400: {"description": "Bad Request"},
            401: {"description": "Unauthorized - Missing X-User-Id header"},
            409: {"description": "Conflict - Target is not the next phase"},
        },
    )
    def post(self, request: Request) -> Response:
        """Progress the caller's setup phase."""
        return async_to_sync(self._handle_progress)(request)

    async def _handle_progress(self, request: Request) -> Response:
        """Async handler for progress setup phase."""
        with tracer.start_as_current_span("progress_setup_phase") as span:
            span.set_attribute("operation", "progress_setup_phase")
            user_id = require_user_id(request)
            data = validated(ProgressSetupPhaseRequestSerializer, request.data, span)
            span.set_attribute("target_phase", data["targetPhase"])

            handler = ProgressSetupPhaseHandler(container.profile_repository)
            result = await handler.handle(
                ProgressSetupPhaseCommand(
                    user_id=user_id, target_phase=SetupPhase(data["targetPhase"])
                )
            )

            span.set_status(Status(StatusCode.OK))
            return Response(UserProfileDTOSerializer(result).data, status=status.HTTP_200_OK)
