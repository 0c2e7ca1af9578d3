"""
ReportIntegrationTestStepCommand.

Command carrying one harness report for a running integration test.
"""
from dataclasses import dataclass, field
from typing import Any, Dict

from core.domain.value_objects import IntegrationTestStep


@dataclass
class ReportIntegrationTestStepCommand:
    """Command to record the outcome of one integration test step."""

    test_id: str
    step: IntegrationTestStep
    success: bool
    details: Dict[str, Any] = field(default_factory=dict)
