"""
RecordGasConnectionTestCommand.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class RecordGasConnectionTestCommand:
    """Command to store the result of a developer's GAS connection check."""

    user_id: str
    success: bool
    timestamp: datetime
    details: Optional[str] = None
