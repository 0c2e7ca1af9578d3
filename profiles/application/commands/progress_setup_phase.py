"""
ProgressSetupPhaseCommand.
"""
from dataclasses import dataclass

from core.domain.value_objects import SetupPhase


@dataclass
class ProgressSetupPhaseCommand:
    """Command to move a developer to the next onboarding phase."""

    user_id: str
    target_phase: SetupPhase
