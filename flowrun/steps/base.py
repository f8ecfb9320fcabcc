"""Common contract for step handlers."""

from __future__ import annotations

import abc
from typing import Any, ClassVar, Type

from ..contracts import StepContext, StepOutcome


class StepHandler(metaclass=abc.ABCMeta):
    """Executes one kind of workflow step."""

    step_type: ClassVar[Type[Any]]

    @abc.abstractmethod
    async def execute(self, step: Any, context: StepContext) -> StepOutcome:
        """Run ``step`` with the accumulated upstream ``context``."""
        raise NotImplementedError
