from __future__ import annotations

from ..contracts import HumanGateStep, StepContext, StepOutcome, StepWaitingGate
from .base import StepHandler


class HumanGateHandler(StepHandler):
    """Gates never complete themselves; a human response resumes the run."""

    step_type = HumanGateStep

    async def execute(self, step: HumanGateStep, context: StepContext) -> StepOutcome:
        return StepWaitingGate()
