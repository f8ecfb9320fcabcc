"""Interface to the external subsystem that runs agent steps."""

from __future__ import annotations

import abc
from typing import Optional

from ..contracts import StepContext, TaskResult


class TaskExecutor(metaclass=abc.ABCMeta):
    """Runs one agent step on behalf of the engine.

    From the engine's point of view the call blocks until the agent finishes;
    implementations that queue work elsewhere are expected to poll until a
    result is available. Timeouts are the implementation's concern.
    """

    @abc.abstractmethod
    async def run(
        self,
        agent_id: str,
        skill_id: Optional[str],
        prompt: str,
        context: StepContext,
    ) -> TaskResult:
        """Execute ``prompt`` as ``agent_id`` and report its output or error."""
        raise NotImplementedError
