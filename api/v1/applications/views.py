"""
Application API views.

These endpoints are used by EA developers to:
- Approve, reject, cancel and revoke license applications
- Inspect and retry license notifications that could not be delivered
- List applications by status
- Read the status history of an application
- Decrypt an issued license key
"""

from asgiref.sync import async_to_sync
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from api.v1.applications.serializers import (
    ApplicationActionRequestSerializer,
    ApplicationDTOSerializer,
    ApplicationHistoryDTOSerializer,
    ApproveApplicationRequestSerializer,
    DecryptLicenseRequestSerializer,
    FailureStatusDTOSerializer,
    ListApplicationsQuerySerializer,
    RetryNotificationRequestSerializer,
    RevokeApplicationRequestSerializer,
)
from api.v1.common import require_user_id, validated
from applications.application.commands.approve_application import ApproveApplicationCommand
from applications.application.commands.cancel_application import CancelApplicationCommand
from applications.application.commands.reject_application import RejectApplicationCommand
from applications.application.commands.retry_notification import RetryNotificationCommand
from applications.application.commands.revoke_application import RevokeApplicationCommand
from applications.application.handlers.application_lifecycle_handlers import (
    ApproveApplicationHandler,
    CancelApplicationHandler,
    RejectApplicationHandler,
    RevokeApplicationHandler,
)
from applications.application.handlers.application_query_handlers import (
    GetApplicationHistoriesHandler,
    ListApplicationsHandler,
)
from applications.application.handlers.decrypt_license_handler import DecryptLicenseHandler
from applications.application.queries.decrypt_license import DecryptLicenseQuery
from applications.application.queries.get_application_histories import (
    GetApplicationHistoriesQuery,
)
from applications.application.queries.get_failure_status import GetFailureStatusQuery
from applications.application.queries.list_applications import ListApplicationsQuery
from core import container
from core.domain.exceptions import ValidationError
from core.domain.value_objects import ApplicationStatus
from core.instrumentation import Status, StatusCode, get_tracer

tracer = get_tracer(__name__)

ERROR_RESPONSES = {
    400: {"description": "Bad Request"},
    401: {"description": "Unauthorized - Missing X-User-Id header"},
    404: {"description": "Application not found"},
    409: {"description": "Conflict - Transition not allowed in the current status"},
}


class ApproveApplicationView(APIView):
    """View for approving applications."""

    @extend_schema(
        operation_id="approve_application",
        summary="Approve Application",
        description=(
            "Approve a Pending application. The license key is generated now and "
            "delivered after the cancellation window unless the approval is cancelled."
        ),
        tags=["Applications"],
        request=ApproveApplicationRequestSerializer,
        responses={200: ApplicationDTOSerializer, **ERROR_RESPONSES},
    )
    def post(self, request: Request) -> Response:
        """Approve an application."""
        return async_to_sync(self._handle_approve)(request)

    async def _handle_approve(self, request: Request) -> Response:
        """Async handler for approve application."""
        with tracer.start_as_current_span("approve_application") as span:
            span.set_attribute("operation", "approve_application")
            user_id = require_user_id(request)
            data = validated(ApproveApplicationRequestSerializer, request.data, span)

            owner = data.get("userId", user_id)
            if owner != user_id:
                span.set_status(Status(StatusCode.ERROR, "Owner mismatch"))
                raise PermissionDenied("Applications can only be approved by their owner")

            span.set_attribute("user.id", user_id)
            span.set_attribute("application.id", data["applicationId"])

            handler = ApproveApplicationHandler(container.build_state_machine())
            result = await handler.handle(
                ApproveApplicationCommand(
                    user_id=user_id,
                    application_id=data["applicationId"],
                    expiry=data["expiry"],
                    changed_by=user_id,
                    ea_name=data["eaName"],
                    account_id=data["accountId"],
                    email=data["email"],
                    broker=data["broker"],
                )
            )

            span.set_attribute("notification_scheduled_at", str(result.notification_scheduled_at))
            span.set_status(Status(StatusCode.OK))
            return Response(ApplicationDTOSerializer(result).data, status=status.HTTP_200_OK)


class RejectApplicationView(APIView):
    """View for rejecting applications."""

    @extend_schema(
        operation_id="reject_application",
        summary="Reject Application",
        description="Reject a Pending application.",
        tags=["Applications"],
        request=ApplicationActionRequestSerializer,
        responses={200: ApplicationDTOSerializer, **ERROR_RESPONSES},
    )
    def post(self, request: Request) -> Response:
        """Reject an application."""
        return async_to_sync(self._handle_reject)(request)

    async def _handle_reject(self, request: Request) -> Response:
        """Async handler for reject application."""
        with tracer.start_as_current_span("reject_application") as span:
            span.set_attribute("operation", "reject_application")
            user_id = require_user_id(request)
            data = validated(ApplicationActionRequestSerializer, request.data, span)
            span.set_attribute("application.id", data["applicationId"])

            handler = RejectApplicationHandler(container.build_state_machine())
            result = await handler.handle(
                RejectApplicationCommand(
                    user_id=user_id,
                    application_id=data["applicationId"],
                    changed_by=user_id,
                    reason=data.get("reason") or None,
                )
            )

            span.set_status(Status(StatusCode.OK))
            return Response(ApplicationDTOSerializer(result).data, status=status.HTTP_200_OK)


class CancelApplicationView(APIView):
    """View for cancelling an approval inside its window."""

    @extend_schema(
        operation_id="cancel_application",
        summary="Cancel Approval",
        description=(
            "Cancel an approval whose license has not been sent yet. "
            "Fails with 409 WINDOW_EXPIRED once the notification has fired."
        ),
        tags=["Applications"],
        request=ApplicationActionRequestSerializer,
        responses={200: ApplicationDTOSerializer, **ERROR_RESPONSES},
    )
    def post(self, request: Request) -> Response:
        """Cancel an approval."""
        return async_to_sync(self._handle_cancel)(request)

    async def _handle_cancel(self, request: Request) -> Response:
        """Async handler for cancel approval."""
        with tracer.start_as_current_span("cancel_application") as span:
            span.set_attribute("operation", "cancel_application")
            user_id = require_user_id(request)
            data = validated(ApplicationActionRequestSerializer, request.data, span)
            span.set_attribute("application.id", data["applicationId"])

            handler = CancelApplicationHandler(container.build_state_machine())
            result = await handler.handle(
                CancelApplicationCommand(
                    user_id=user_id,
                    application_id=data["applicationId"],
                    changed_by=user_id,
                    reason=data.get("reason") or None,
                )
            )

            span.set_status(Status(StatusCode.OK))
            return Response(ApplicationDTOSerializer(result).data, status=status.HTTP_200_OK)


class RevokeApplicationView(APIView):
    """View for revoking active licenses."""

    @extend_schema(
        operation_id="revoke_application",
        summary="Revoke License",
        description="Revoke an Active license.",
        tags=["Applications"],
        request=RevokeApplicationRequestSerializer,
        responses={200: ApplicationDTOSerializer, **ERROR_RESPONSES},
    )
    def post(self, request: Request) -> Response:
        """Revoke a license."""
        return async_to_sync(self._handle_revoke)(request)

    async def _handle_revoke(self, request: Request) -> Response:
        """Async handler for revoke license."""
        with tracer.start_as_current_span("revoke_application") as span:
            span.set_attribute("operation", "revoke_application")
            user_id = require_user_id(request)
            data = validated(RevokeApplicationRequestSerializer, request.data, span)
            span.set_attribute("application.id", data["applicationId"])
            if data.get("reason"):
                span.set_attribute("reason", data["reason"])

            handler = RevokeApplicationHandler(container.build_state_machine())
            result = await handler.handle(
                RevokeApplicationCommand(
                    user_id=user_id,
                    application_id=data["applicationId"],
                    changed_by=user_id,
                    reason=data.get("reason") or None,
                )
            )

            span.set_status(Status(StatusCode.OK))
            return Response(ApplicationDTOSerializer(result).data, status=status.HTTP_200_OK)


class RetryNotificationView(APIView):
    """View for re-sending a license notification that could not be delivered."""

    @extend_schema(
        operation_id="retry_notification",
        summary="Retry Failed Notification",
        description=(
            "Queue a new delivery for an Active license whose notification failed. "
            "Once the failure count reaches the retry budget the retry must be forced."
        ),
        tags=["Applications"],
        request=RetryNotificationRequestSerializer,
        responses={200: ApplicationDTOSerializer, **ERROR_RESPONSES},
    )
    def post(self, request: Request) -> Response:
        """Retry a failed notification."""
        return async_to_sync(self._handle_retry)(request)

    async def _handle_retry(self, request: Request) -> Response:
        """Async handler for retry notification."""
        with tracer.start_as_current_span("retry_notification") as span:
            span.set_attribute("operation", "retry_notification")
            user_id = require_user_id(request)
            data = validated(RetryNotificationRequestSerializer, request.data, span)
            span.set_attribute("application.id", data["applicationId"])
            span.set_attribute("force", data["force"])

            handler = container.build_retry_notification_handler()
            result = await handler.handle(
                RetryNotificationCommand(
                    user_id=user_id,
                    application_id=data["applicationId"],
                    changed_by=user_id,
                    reason=data.get("reason") or None,
                    force=data["force"],
                )
            )

            span.set_status(Status(StatusCode.OK))
            return Response(ApplicationDTOSerializer(result).data, status=status.HTTP_200_OK)


class FailureStatusView(APIView):
    """View for the caller's undelivered license notifications."""

    @extend_schema(
        operation_id="get_failure_status",
        summary="Get Notification Failure Status",
        description=(
            "Active licenses whose notification could not be delivered, "
            "with their retry budgets."
        ),
        tags=["Applications"],
        responses={200: FailureStatusDTOSerializer, **ERROR_RESPONSES},
    )
    def get(self, request: Request) -> Response:
        """Get the failure status."""
        return async_to_sync(self._handle_failures)(request)

    async def _handle_failures(self, request: Request) -> Response:
        """Async handler for failure status."""
        with tracer.start_as_current_span("get_failure_status") as span:
            span.set_attribute("operation", "get_failure_status")
            user_id = require_user_id(request)

            handler = container.build_failure_status_handler()
            result = await handler.handle(GetFailureStatusQuery(user_id=user_id))

            span.set_attribute("failures.count", result.total_failures)
            span.set_status(Status(StatusCode.OK))
            return Response(FailureStatusDTOSerializer(result).data, status=status.HTTP_200_OK)


class ListApplicationsView(APIView):
    """View for listing the caller's applications."""

    @extend_schema(
        operation_id="list_applications",
        summary="List Applications",
        description=(
            "List the caller's applications, most recent first. "
            "Active licenses past their expiry date are reported as Expired."
        ),
        tags=["Applications"],
        parameters=[
            OpenApiParameter(
                name="status",
                type=str,
                location=OpenApiParameter.QUERY,
                required=False,
                enum=[s.value for s in ApplicationStatus],
                description="Only return applications in this status",
            ),
        ],
        responses={200: ApplicationDTOSerializer(many=True), **ERROR_RESPONSES},
    )
    def get(self, request: Request) -> Response:
        """List applications."""
        return async_to_sync(self._handle_list)(request)

    async def _handle_list(self, request: Request) -> Response:
        """Async handler for list applications."""
        with tracer.start_as_current_span("list_applications") as span:
            span.set_attribute("operation", "list_applications")
            user_id = require_user_id(request)
            data = validated(ListApplicationsQuerySerializer, request.query_params, span)
            requested = data.get("status")
            if requested:
                span.set_attribute("status", requested)

            handler = ListApplicationsHandler(container.build_state_machine())
            result = await handler.handle(
                ListApplicationsQuery(
                    user_id=user_id,
                    status=ApplicationStatus(requested) if requested else None,
                )
            )

            span.set_attribute("applications.count", len(result))
            span.set_status(Status(StatusCode.OK))
            return Response(
                ApplicationDTOSerializer(result, many=True).data, status=status.HTTP_200_OK
            )


class ApplicationHistoriesView(APIView):
    """View for reading an application's status history."""

    @extend_schema(
        operation_id="get_application_histories",
        summary="Get Application Histories",
        description="Status history of one application, most recent first.",
        tags=["Applications"],
        parameters=[
            OpenApiParameter(
                name="applicationId",
                type=str,
                location=OpenApiParameter.QUERY,
                required=True,
                description="Application id, with or without the APPLICATION# prefix",
            ),
        ],
        responses={200: ApplicationHistoryDTOSerializer(many=True), **ERROR_RESPONSES},
    )
    def get(self, request: Request) -> Response:
        """Get application histories."""
        return async_to_sync(self._handle_histories)(request)

    async def _handle_histories(self, request: Request) -> Response:
        """Async handler for application histories."""
        with tracer.start_as_current_span("get_application_histories") as span:
            span.set_attribute("operation", "get_application_histories")
            user_id = require_user_id(request)

            application_id = request.query_params.get("applicationId")
            if not application_id:
                span.set_attribute("error", "application_id_required")
                span.set_status(Status(StatusCode.ERROR, "applicationId required"))
                raise ValidationError("applicationId query parameter is required")
            span.set_attribute("application.id", application_id)

            handler = GetApplicationHistoriesHandler(container.application_repository)
            result = await handler.handle(
                GetApplicationHistoriesQuery(user_id=user_id, application_id=application_id)
            )

            span.set_attribute("histories.count", len(result))
            span.set_status(Status(StatusCode.OK))
            return Response(
                ApplicationHistoryDTOSerializer(result, many=True).data, status=status.HTTP_200_OK
            )


class DecryptLicenseView(APIView):
    """View for decrypting a license key."""

    @extend_schema(
        operation_id="decrypt_license",
        summary="Decrypt License",
        description="Return the payload sealed in a license key.",
        tags=["Applications"],
        request=DecryptLicenseRequestSerializer,
        responses={
            200: {"description": "License payload"},
            400: {"description": "Bad Request - Malformed license key"},
            401: {"description": "Unauthorized - Missing X-User-Id header"},
        },
    )
    def post(self, request: Request) -> Response:
        """Decrypt a license key."""
        return async_to_sync(self._handle_decrypt)(request)

    async def _handle_decrypt(self, request: Request) -> Response:
        """Async handler for decrypt license."""
        with tracer.start_as_current_span("decrypt_license") as span:
            span.set_attribute("operation", "decrypt_license")
            require_user_id(request)
            data = validated(DecryptLicenseRequestSerializer, request.data, span)

            handler = DecryptLicenseHandler(container.build_license_codec())
            payload = await handler.handle(DecryptLicenseQuery(license_key=data["licenseKey"]))

            span.set_status(Status(StatusCode.OK))
            return Response(payload, status=status.HTTP_200_OK)
