"""
GasWebAppClient port.

Outbound interface to a developer's GAS WebApp.
"""
from abc import ABC, abstractmethod
from datetime import datetime


class GasWebAppClient(ABC):
    """Triggers the developer side of an integration test."""

    @abstractmethod
    def trigger_test(self, gas_webapp_url: str, test_id: str, timestamp: datetime) -> None:
        """
        Ask the WebApp to submit its integration test application.

        Raises:
            requests.exceptions.RequestException: If the WebApp cannot be reached
        """
