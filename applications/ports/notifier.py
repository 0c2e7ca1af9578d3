"""
Notifier port (interface).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class NotificationResult:
    """Outcome of one delivery attempt."""

    success: bool
    error: Optional[str] = None


class Notifier(ABC):
    """Delivers a license notification over one channel."""

    channel = "unknown"

    @abstractmethod
    def send(self, payload: Dict[str, Any]) -> NotificationResult:
        """
        Deliver a notification.

        Delivery failures are reported in the result, not raised.

        Args:
            payload: Notification payload

        Returns:
            NotificationResult
        """
