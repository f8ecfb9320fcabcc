"""Step executor registry."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Type, get_args

from ..contracts import StepContext, StepDef, StepFailed, StepOutcome
from ..executors.base import TaskExecutor
from ..registry import REGISTRY, AgentRegistry
from .agent_task import AgentTaskHandler
from .base import StepHandler
from .document_output import DocumentOutputHandler
from .human_gate import HumanGateHandler

logger = logging.getLogger(__name__)

# Every variant of the StepDef union; the registry must cover all of them.
STEP_VARIANTS: tuple[Type[Any], ...] = get_args(get_args(StepDef)[0])


class StepExecutorRegistry:
    """Maps each step variant to exactly one handler."""

    def __init__(self, handlers: Iterable[StepHandler]) -> None:
        self._handlers: Dict[Type[Any], StepHandler] = {}
        for handler in handlers:
            if handler.step_type in self._handlers:
                raise ValueError(f"Duplicate handler for {handler.step_type.__name__}")
            self._handlers[handler.step_type] = handler

        missing = [v.__name__ for v in STEP_VARIANTS if v not in self._handlers]
        if missing:
            raise ValueError(f"No handler registered for step types: {', '.join(missing)}")

    def handler_for(self, step: Any) -> StepHandler:
        try:
            return self._handlers[type(step)]
        except KeyError:
            raise TypeError(f"Unsupported step type: {type(step).__name__}") from None

    async def execute(self, step: Any, context: StepContext) -> StepOutcome:
        """Dispatch ``step`` to its handler.

        Unexpected handler exceptions are reported as a failed outcome so the
        run is failed instead of being left mid-step.
        """
        handler = self.handler_for(step)
        logger.debug(f"Dispatching step {step.id} ({step.type}) of run {context.run_id}")
        try:
            return await handler.execute(step, context)
        except Exception as e:
            logger.exception(f"Handler for step {step.id} raised")
            return StepFailed(error=f"{type(e).__name__}: {e}")


def build_registry(
    executor: TaskExecutor, agents: Optional[AgentRegistry] = None
) -> StepExecutorRegistry:
    """Registry with the standard handler for every step type."""
    return StepExecutorRegistry(
        [
            AgentTaskHandler(executor, agents if agents is not None else REGISTRY),
            HumanGateHandler(),
            DocumentOutputHandler(),
        ]
    )


__all__ = [
    "STEP_VARIANTS",
    "StepHandler",
    "StepExecutorRegistry",
    "AgentTaskHandler",
    "HumanGateHandler",
    "DocumentOutputHandler",
    "build_registry",
]
