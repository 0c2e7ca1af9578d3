"""
Webhook signing and delivery helpers.

Outbound calls to a developer's GAS WebApp and inbound form/harness events
share the same HMAC-SHA256 signature scheme.
"""
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"
USER_AGENT = "EA-License-Service-Webhook/1.0"


class WebhookSigner:
    """HMAC signatures for webhook bodies."""

    @staticmethod
    def generate_signature(payload: str, secret: str) -> str:
        """
        Generate HMAC signature for webhook payload.

        Args:
            payload: JSON string payload
            secret: Webhook secret

        Returns:
            HMAC SHA-256 signature (hex)
        """
        return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()

    @staticmethod
    def verify_signature(payload: str, signature: str, secret: str) -> bool:
        """
        Verify webhook signature.

        Args:
            payload: Raw request body
            signature: Signature sent by the caller
            secret: Webhook secret

        Returns:
            True if signature is valid
        """
        if not signature:
            return False
        expected_signature = WebhookSigner.generate_signature(payload, secret)
        return hmac.compare_digest(expected_signature, signature)


def post_json(
    url: str,
    payload: Dict[str, Any],
    timeout: float,
    secret: Optional[str] = None,
) -> requests.Response:
    """
    POST a JSON payload, signing it when a secret is configured.

    Args:
        url: Target URL
        payload: JSON-serializable payload
        timeout: Request timeout in seconds
        secret: Optional signing secret

    Returns:
        The response (status already checked)

    Raises:
        requests.exceptions.RequestException: On transport errors or non-2xx responses
    """
    body = json.dumps(payload, sort_keys=True)
    headers = {
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }
    if secret:
        headers[SIGNATURE_HEADER] = WebhookSigner.generate_signature(body, secret)

    # GAS WebApps answer POSTs with a redirect to the script output
    response = requests.post(url, data=body, headers=headers, timeout=timeout, allow_redirects=True)
    response.raise_for_status()
    logger.debug("Webhook delivered to %s (%s)", url, response.status_code)
    return response
