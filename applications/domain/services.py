"""
Application domain services.

Domain services contain business logic that doesn't naturally
fit within a single entity.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from applications.domain.application import EAApplication
from core.domain.timestamps import to_iso

INTEGRATION_TEST_ACCOUNT_NUMBER = "INTEGRATION_TEST_123456"
INTEGRATION_TEST_BROKER = "Test Broker"
INTEGRATION_TEST_EA_NAME = "Integration Test EA"

LICENSE_PAYLOAD_VERSION = "v1"


def is_integration_test_application(application: EAApplication) -> bool:
    """
    Check whether an application was submitted by an integration test run.

    Args:
        application: Application to inspect

    Returns:
        True for applications tied to a test id or using the test fixtures
    """
    return bool(
        application.integration_test_id
        or application.account_number == INTEGRATION_TEST_ACCOUNT_NUMBER
        or application.broker == INTEGRATION_TEST_BROKER
        or application.ea_name == INTEGRATION_TEST_EA_NAME
    )


class DuplicateAccountGuard:
    """Domain service enforcing one live application per broker account."""

    @staticmethod
    def find_conflict(
        application: EAApplication, candidates: Iterable[EAApplication]
    ) -> Optional[EAApplication]:
        """
        Find another non-terminal application for the same broker account.

        Args:
            application: Application about to be approved
            candidates: Applications sharing its ``(broker, account_number)``

        Returns:
            The first conflicting application, or None
        """
        for candidate in candidates:
            if candidate.user_id == application.user_id and candidate.sk == application.sk:
                continue
            if candidate.broker != application.broker:
                continue
            if candidate.account_number != application.account_number:
                continue
            if not candidate.status.is_terminal:
                return candidate
        return None


class LicensePayloadFactory:
    """Builds the plaintext payload sealed into a license key."""

    @staticmethod
    def build(
        user_id: str,
        ea_name: str,
        account_id: str,
        expiry: datetime,
        issued_at: datetime,
    ) -> Dict[str, Any]:
        """
        Build a version 1 license payload.

        Returns:
            Payload dict ``{version, eaName, accountId, expiry, userId, issuedAt}``
        """
        return {
            "version": LICENSE_PAYLOAD_VERSION,
            "eaName": ea_name,
            "accountId": account_id,
            "expiry": to_iso(expiry),
            "userId": user_id,
            "issuedAt": to_iso(issued_at),
        }
