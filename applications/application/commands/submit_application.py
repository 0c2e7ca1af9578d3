"""
SubmitApplicationCommand.

Command to record an application sent by the external form.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass
class SubmitApplicationCommand:
    """Command to create a Pending application."""

    user_id: str
    ea_name: str
    account_number: str
    broker: str
    email: str
    x_account: str = ""
    integration_test_id: Optional[str] = None
