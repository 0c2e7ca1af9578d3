"""
Inbound webhook ingestion.

Validates the ``action`` tagged union and dispatches each event to its
handler. Nothing reaches a state machine until the whole payload has
validated.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from applications.application.commands.submit_application import SubmitApplicationCommand
from applications.application.dto.application_dto import ApplicationDTO
from applications.application.handlers.submit_application_handler import SubmitApplicationHandler
from applications.domain.application import EAApplication
from core.domain.exceptions import DomainException, InvalidSignatureError, ValidationError
from core.domain.value_objects import IntegrationTestStep
from core.infrastructure.webhooks import WebhookSigner
from core.metrics import webhook_events_total, webhook_processing_seconds
from integrations.application.commands.report_integration_test_step import (
    ReportIntegrationTestStepCommand,
)
from integrations.application.dto.integration_test_dto import IntegrationTestStepDTO
from integrations.application.handlers.integration_test_handlers import (
    ReportIntegrationTestStepHandler,
)
from integrations.application.services.integration_test_service import IntegrationTestService
from profiles.application.commands.record_gas_connection_test import (
    RecordGasConnectionTestCommand,
)
from profiles.application.dto.profile_dto import GasConnectionTestDTO
from profiles.application.handlers.profile_handlers import RecordGasConnectionTestHandler
from webhooks.application.payloads import (
    FORM_SUBMISSION,
    GAS_CONNECTION_TEST,
    INTEGRATION_TEST_STEP,
    PAYLOAD_SERIALIZERS,
)

logger = logging.getLogger(__name__)


@dataclass
class WebhookResult:
    """Outcome of one ingested event."""

    action: str
    application: Optional[ApplicationDTO] = None
    integration_test: Optional[IntegrationTestStepDTO] = None
    connection_test: Optional[GasConnectionTestDTO] = None


class WebhookIngestor:
    """
    Entry point for form submissions, harness step reports and GAS
    connection checks.

    Args:
        submit_handler: Creates Pending applications
        integration_test_service: Records integration test progress
        signing_secret: HMAC secret; signatures are not checked when empty
        connection_test_handler: Records GAS connection checks (defaults to one
            over the integration test service's profile repository)
    """

    def __init__(
        self,
        submit_handler: SubmitApplicationHandler,
        integration_test_service: IntegrationTestService,
        signing_secret: Optional[str] = None,
        connection_test_handler: Optional[RecordGasConnectionTestHandler] = None,
    ):
        self.submit_handler = submit_handler
        self.integration_test_service = integration_test_service
        self.report_handler = ReportIntegrationTestStepHandler(integration_test_service)
        self.connection_test_handler = connection_test_handler or RecordGasConnectionTestHandler(
            integration_test_service.profile_repository
        )
        self.signing_secret = signing_secret

    def verify_signature(self, raw_body: bytes, signature: Optional[str]) -> None:
        """
        Check the HMAC-SHA256 signature of a raw request body.

        Raises:
            InvalidSignatureError: If a secret is configured and the signature does not match
        """
        if not self.signing_secret:
            return
        body = raw_body.decode("utf-8", errors="replace")
        if not WebhookSigner.verify_signature(body, signature or "", self.signing_secret):
            webhook_events_total.labels(action="unknown", result="invalid_signature").inc()
            logger.warning("Rejected webhook with invalid signature")
            raise InvalidSignatureError()

    async def ingest(self, payload: Any) -> WebhookResult:
        """
        Validate and process one inbound event.

        Args:
            payload: Decoded JSON body

        Returns:
            WebhookResult describing what was created or updated

        Raises:
            ValidationError: If the action is unknown or the payload is malformed
        """
        action, data = self._validate(payload)

        start_time = time.time()
        try:
            if action == FORM_SUBMISSION:
                result = await self._submit_form(data)
            elif action == GAS_CONNECTION_TEST:
                result = await self._record_connection_test(data)
            else:
                result = await self._report_step(data)
        except DomainException as e:
            webhook_events_total.labels(action=action, result=e.code.lower()).inc()
            raise
        finally:
            webhook_processing_seconds.labels(action=action).observe(time.time() - start_time)

        webhook_events_total.labels(action=action, result="success").inc()
        return result

    @staticmethod
    def _validate(payload: Any):
        if not isinstance(payload, Mapping):
            webhook_events_total.labels(action="unknown", result="invalid").inc()
            raise ValidationError("Webhook body must be a JSON object")

        action = payload.get("action")
        serializer_class = PAYLOAD_SERIALIZERS.get(action)
        if serializer_class is None:
            webhook_events_total.labels(action="unknown", result="invalid").inc()
            raise ValidationError(
                f"Unknown webhook action: {action!r}",
                context={"action": action, "supported": sorted(PAYLOAD_SERIALIZERS)},
            )

        serializer = serializer_class(data=payload)
        if not serializer.is_valid():
            webhook_events_total.labels(action=action, result="invalid").inc()
            raise ValidationError(
                f"Invalid {action} payload: {serializer.errors}",
                context={"action": action, "errors": serializer.errors},
            )
        return action, serializer.validated_data

    async def _submit_form(self, data: Dict[str, Any]) -> WebhookResult:
        fields = data["fields"]
        test_id = fields.get("integrationTestId")
        if test_id:
            # Only the owner of a test may submit on its behalf
            await self.integration_test_service.get_test(test_id, user_id=data["userId"])

        application = await self.submit_handler.handle(
            SubmitApplicationCommand(
                user_id=data["userId"],
                ea_name=fields["eaName"],
                account_number=fields["accountNumber"],
                broker=fields["broker"],
                email=fields["email"],
                x_account=fields.get("xAccount", ""),
                integration_test_id=test_id,
            )
        )
        await self._record_webhook_received(application)
        return WebhookResult(action=FORM_SUBMISSION, application=ApplicationDTO.from_entity(application))

    async def _record_webhook_received(self, application: EAApplication) -> None:
        if not application.integration_test_id:
            return
        try:
            await self.integration_test_service.record_step(
                application.integration_test_id,
                IntegrationTestStep.GAS_WEBHOOK_RECEIVED,
                True,
                {"applicationSK": application.sk},
                user_id=application.user_id,
            )
        except DomainException as e:
            logger.error(
                "Failed to record GAS_WEBHOOK_RECEIVED for %s: %s",
                application.integration_test_id,
                e.message,
                extra={"user_id": application.user_id, "application_id": application.sk},
            )
            raise

    async def _report_step(self, data: Dict[str, Any]) -> WebhookResult:
        step_dto = await self.report_handler.handle(
            ReportIntegrationTestStepCommand(
                test_id=data["testId"],
                step=IntegrationTestStep(data["step"]),
                success=data["success"],
                details=data.get("details") or {},
            )
        )
        return WebhookResult(action=INTEGRATION_TEST_STEP, integration_test=step_dto)

    async def _record_connection_test(self, data: Dict[str, Any]) -> WebhookResult:
        test_result = data["testResult"]
        dto = await self.connection_test_handler.handle(
            RecordGasConnectionTestCommand(
                user_id=data["userId"],
                success=test_result["success"],
                timestamp=test_result["timestamp"],
                details=test_result.get("details"),
            )
        )
        return WebhookResult(action=GAS_CONNECTION_TEST, connection_test=dto)
