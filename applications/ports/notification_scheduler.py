"""
Notification scheduler port (interface).
"""
from abc import ABC, abstractmethod
from datetime import datetime

from applications.domain.application import EAApplication


class NotificationScheduler(ABC):
    """
    Arms and disarms the one-shot deferred license notification.

    The handle of an armed notification is chosen by the caller and stored
    on the application before arming, so a crash between the write and the
    arm never leaves an unknown timer behind.
    """

    @abstractmethod
    def new_handle(self) -> str:
        """Return a fresh handle for the next ``arm`` call."""

    @abstractmethod
    def arm(self, application: EAApplication, fire_at: datetime, handle: str) -> None:
        """
        Schedule the notification for ``application`` at ``fire_at``.

        Args:
            application: Application awaiting notification
            fire_at: Target fire time
            handle: Handle previously obtained from ``new_handle``
        """

    @abstractmethod
    def disarm(self, handle: str) -> None:
        """
        Cancel a scheduled notification.

        Disarming a handle that already fired is a no-op; the conditional
        write of the firing side decides the race.

        Args:
            handle: Handle passed to ``arm``
        """
