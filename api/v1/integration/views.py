"""
Integration test API views.

These endpoints let a developer exercise their GAS WebApp end to end:
start a test run and follow its progress.
"""

from asgiref.sync import async_to_sync
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from api.v1.common import require_user_id, validated
from api.v1.integration.serializers import (
    IntegrationTestStatusSerializer,
    StartIntegrationTestRequestSerializer,
    StartIntegrationTestResponseSerializer,
)
from core import container
from core.instrumentation import Status, StatusCode, get_tracer
from integrations.application.commands.start_integration_test import StartIntegrationTestCommand
from integrations.application.handlers.integration_test_handlers import (
    GetIntegrationTestStatusHandler,
    StartIntegrationTestHandler,
)
from integrations.application.queries.get_integration_test_status import (
    GetIntegrationTestStatusQuery,
)

tracer = get_tracer(__name__)


class StartIntegrationTestView(APIView):
    """View for starting an integration test."""

    @extend_schema(
        operation_id="start_integration_test",
        summary="Start Integration Test",
        description=(
            "Create a new integration test and trigger the GAS WebApp. "
            "A failed WebApp call is recorded on the test and reported in the response."
        ),
        tags=["Integration"],
        request=StartIntegrationTestRequestSerializer,
        responses={
            201: StartIntegrationTestResponseSerializer,
            400: {"description": "Bad Request"},
            401: {"description": "Unauthorized - Missing X-User-Id header"},
            409: {"description": "Conflict - A test is already running"},
        },
    )
    def post(self, request: Request) -> Response:
        """Start an integration test."""
        return async_to_sync(self._handle_start)(request)

    async def _handle_start(self, request: Request) -> Response:
        """Async handler for start integration test."""
        with tracer.start_as_current_span("start_integration_test") as span:
            span.set_attribute("operation", "start_integration_test")
            user_id = require_user_id(request)
            data = validated(StartIntegrationTestRequestSerializer, request.data, span)
            span.set_attribute("gas_webapp_url", data["gasWebappUrl"])

            handler = StartIntegrationTestHandler(container.build_integration_test_service())
            result = await handler.handle(
                StartIntegrationTestCommand(user_id=user_id, gas_webapp_url=data["gasWebappUrl"])
            )

            span.set_attribute("test.id", result.test_id)
            span.set_attribute("test.status", result.status)
            span.set_status(Status(StatusCode.OK))
            return Response(
                StartIntegrationTestResponseSerializer(result).data,
                status=status.HTTP_201_CREATED,
            )


class IntegrationTestStatusView(APIView):
    """View for reading the caller's integration test status."""

    @extend_schema(
        operation_id="get_integration_test_status",
        summary="Get Integration Test Status",
        description="Progress of the caller's current integration test.",
        tags=["Integration"],
        responses={
            200: IntegrationTestStatusSerializer,
            401: {"description": "Unauthorized - Missing X-User-Id header"},
        },
    )
    def get(self, request: Request) -> Response:
        """Get integration test status."""
        return async_to_sync(self._handle_status)(request)

    async def _handle_status(self, request: Request) -> Response:
        """Async handler for integration test status."""
        with tracer.start_as_current_span("get_integration_test_status") as span:
            span.set_attribute("operation", "get_integration_test_status")
            user_id = require_user_id(request)

            handler = GetIntegrationTestStatusHandler(container.build_integration_test_service())
            result = await handler.handle(GetIntegrationTestStatusQuery(user_id=user_id))

            span.set_attribute("test.active", result.active)
            span.set_attribute("test.progress", result.progress)
            span.set_status(Status(StatusCode.OK))
            return Response(IntegrationTestStatusSerializer(result).data, status=status.HTTP_200_OK)
