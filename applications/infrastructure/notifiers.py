"""
Notifier implementations.

- EmailNotifier mails the license key to the applicant
- GasWebAppNotifier tells a developer's GAS WebApp that a license was issued
"""
import logging
import smtplib
from typing import Any, Dict, Optional

import requests
from django.conf import settings
from django.core.mail import send_mail

from applications.ports.notifier import NotificationResult, Notifier
from core.infrastructure.webhooks import post_json

logger = logging.getLogger(__name__)

EMAIL_TEMPLATE = """Your license for {eaName} is ready.

Account: {accountNumber}
Broker: {broker}
Valid until: {expiryDate}

License key:
{licenseKey}
"""


class EmailNotifier(Notifier):
    """Sends the license key by email through Django's mail backend."""

    channel = "email"

    def __init__(self, from_email: Optional[str] = None):
        """Initialize notifier."""
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL

    def send(self, payload: Dict[str, Any]) -> NotificationResult:
        """
        Mail the license to ``payload["email"]``.

        Args:
            payload: License notification payload

        Returns:
            NotificationResult
        """
        try:
            send_mail(
                subject=f"Your {payload['eaName']} license",
                message=EMAIL_TEMPLATE.format(**payload),
                from_email=self.from_email,
                recipient_list=[payload["email"]],
                fail_silently=False,
            )
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(
                "License email to %s failed: %s",
                payload["email"],
                e,
                extra={"application_id": payload.get("applicationId")},
            )
            return NotificationResult(success=False, error=str(e))

        logger.info(
            "License email sent",
            extra={"application_id": payload.get("applicationId"), "user_id": payload.get("userId")},
        )
        return NotificationResult(success=True)


class GasWebAppNotifier(Notifier):
    """Posts a ``LICENSE_ISSUED`` event to a developer's GAS WebApp."""

    channel = "gas_webapp"

    def __init__(self, webapp_url: str, timeout: Optional[float] = None):
        """
        Initialize notifier.

        Args:
            webapp_url: GAS WebApp URL under test
            timeout: Request timeout (defaults to ``GAS_WEBAPP_TIMEOUT_SECONDS``)
        """
        self.webapp_url = webapp_url
        self.timeout = timeout or settings.GAS_WEBAPP_TIMEOUT_SECONDS

    def send(self, payload: Dict[str, Any]) -> NotificationResult:
        """
        POST the license-issued event.

        Args:
            payload: License notification payload

        Returns:
            NotificationResult
        """
        body = {
            "type": "LICENSE_ISSUED",
            "userId": payload["userId"],
            "licenseId": payload["licenseId"],
            "applicationId": payload["applicationId"],
            "eaName": payload["eaName"],
            "accountNumber": payload["accountNumber"],
            "issuedAt": payload["issuedAt"],
        }
        if payload.get("testId"):
            body["testId"] = payload["testId"]

        try:
            post_json(
                self.webapp_url,
                body,
                timeout=self.timeout,
                secret=settings.WEBHOOK_SIGNING_SECRET or None,
            )
        except requests.exceptions.RequestException as e:
            logger.warning(
                "GAS notification to %s failed: %s",
                self.webapp_url,
                e,
                extra={"application_id": payload["applicationId"]},
            )
            return NotificationResult(success=False, error=str(e))

        logger.info(
            "GAS notification delivered",
            extra={"application_id": payload["applicationId"], "test_id": payload.get("testId")},
        )
        return NotificationResult(success=True)
