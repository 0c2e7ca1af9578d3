"""
requests implementation of the GasWebAppClient port.
"""
import logging
from datetime import datetime
from typing import Optional

from django.conf import settings

from core.domain.timestamps import to_iso
from core.infrastructure.webhooks import post_json
from integrations.ports.gas_webapp_client import GasWebAppClient

logger = logging.getLogger(__name__)

INTEGRATION_TEST_ACTION = "integration_test"


class RequestsGasWebAppClient(GasWebAppClient):
    """POSTs the integration test trigger with ``requests``."""

    def __init__(self, timeout: Optional[float] = None, secret: Optional[str] = None):
        """Initialize client."""
        self.timeout = timeout or settings.GAS_WEBAPP_TIMEOUT_SECONDS
        self.secret = secret if secret is not None else (settings.WEBHOOK_SIGNING_SECRET or None)

    def trigger_test(self, gas_webapp_url: str, test_id: str, timestamp: datetime) -> None:
        """POST ``{action: "integration_test", testId, timestamp}`` to the WebApp."""
        post_json(
            gas_webapp_url,
            {
                "action": INTEGRATION_TEST_ACTION,
                "testId": test_id,
                "timestamp": to_iso(timestamp),
            },
            timeout=self.timeout,
            secret=self.secret,
        )
        logger.info("Triggered integration test %s", test_id, extra={"test_id": test_id})
