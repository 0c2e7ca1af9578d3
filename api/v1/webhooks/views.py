"""
Inbound webhook views.

One endpoint receives application form submissions, integration test step
reports and GAS connection checks; the ``action`` field selects the handler.
"""

from asgiref.sync import async_to_sync
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from api.v1.applications.serializers import ApplicationDTOSerializer
from core import container
from core.infrastructure.webhooks import SIGNATURE_HEADER
from core.instrumentation import Status, StatusCode, get_tracer

tracer = get_tracer(__name__)


class WebhookEventView(APIView):
    """View for inbound webhook events."""

    @extend_schema(
        operation_id="receive_webhook_event",
        summary="Receive Webhook Event",
        description=(
            "Receive a `form_submission`, `integration_test_step` or `gas_connection_test` event. "
            "When a signing secret is configured the raw body must carry a valid "
            "HMAC-SHA256 signature in the X-Webhook-Signature header."
        ),
        tags=["Webhooks"],
        request={"application/json": {"type": "object"}},
        responses={
            201: {"description": "Application created"},
            200: {"description": "Integration test step or GAS connection check recorded"},
            400: {"description": "Bad Request - Unknown action or malformed payload"},
            401: {"description": "Unauthorized - Invalid signature"},
            404: {"description": "Integration test not found"},
        },
    )
    def post(self, request: Request) -> Response:
        """Receive a webhook event."""
        return async_to_sync(self._handle_event)(request)

    async def _handle_event(self, request: Request) -> Response:
        """Async handler for webhook events."""
        with tracer.start_as_current_span("receive_webhook_event") as span:
            ingestor = container.build_webhook_ingestor()
            # request.body must be read before request.data consumes the stream
            ingestor.verify_signature(request.body, request.headers.get(SIGNATURE_HEADER))

            payload = request.data
            if isinstance(payload, dict):
                span.set_attribute("webhook.action", str(payload.get("action")))

            result = await ingestor.ingest(payload)

            span.set_status(Status(StatusCode.OK))
            if result.application is not None:
                span.set_attribute("application.id", result.application.sk)
                return Response(
                    {
                        "action": result.action,
                        "application": ApplicationDTOSerializer(result.application).data,
                    },
                    status=status.HTTP_201_CREATED,
                )

            if result.connection_test is not None:
                check = result.connection_test
                return Response(
                    {
                        "action": result.action,
                        "user_id": check.user_id,
                        "setup_phase": check.setup_phase,
                        "test_result": check.test_result,
                        "next_step": check.next_step,
                    },
                    status=status.HTTP_200_OK,
                )

            step = result.integration_test
            span.set_attribute("test.id", step.test_id)
            return Response(
                {
                    "action": result.action,
                    "test_id": step.test_id,
                    "current_step": step.current_step,
                    "current_step_status": step.current_step_status,
                    "progress": step.progress,
                },
                status=status.HTTP_200_OK,
            )
