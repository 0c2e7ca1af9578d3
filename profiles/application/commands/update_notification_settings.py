"""
UpdateNotificationSettingsCommand.
"""
from dataclasses import dataclass


@dataclass
class UpdateNotificationSettingsCommand:
    """Command to switch a developer's notifications on or off."""

    user_id: str
    notification_enabled: bool
