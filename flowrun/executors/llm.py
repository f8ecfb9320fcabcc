"""Task executor backed by pydantic-ai agents."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel
from pydantic_ai import Agent, RunContext

from ..contracts import StepContext, TaskResult
from .base import TaskExecutor

logger = logging.getLogger(__name__)


async def _upstream_context(ctx: RunContext[StepContext]) -> str:
    """Expose upstream step outputs and gate responses to the model."""
    deps = ctx.deps
    if not deps.outputs and not deps.inputs:
        return ""
    parts = [
        f"You are step {deps.step_index + 1} of {deps.total_steps} "
        f"in the workflow '{deps.workflow_title}'."
    ]
    if deps.outputs:
        parts.append(
            "Outputs of earlier steps, keyed by step id: "
            + json.dumps(deps.outputs, default=str)
        )
    if deps.inputs:
        parts.append("Inputs for this step: " + json.dumps(deps.inputs, default=str))
    return "\n".join(parts)


class PydanticAIExecutor(TaskExecutor):
    """Run agent steps with a pydantic-ai ``Agent`` per agent id.

    Agents are created lazily from ``model`` unless supplied up front in
    ``agents``.
    """

    def __init__(
        self,
        model: Any = None,
        instructions: Optional[str] = None,
        agents: Optional[Dict[str, Agent]] = None,
    ) -> None:
        self._model = model
        self._instructions = instructions
        self._agents: Dict[str, Agent] = dict(agents or {})

    def _agent_for(self, agent_id: str) -> Agent:
        agent = self._agents.get(agent_id)
        if agent is None:
            if self._model is None:
                raise ValueError(
                    f"No agent registered for {agent_id} and no default model configured"
                )
            agent = Agent(
                self._model,
                deps_type=StepContext,
                instructions=self._instructions,
                name=agent_id,
            )
            agent.instructions(_upstream_context)
            self._agents[agent_id] = agent
        return agent

    async def run(
        self,
        agent_id: str,
        skill_id: Optional[str],
        prompt: str,
        context: StepContext,
    ) -> TaskResult:
        agent = self._agent_for(agent_id)
        if skill_id:
            prompt = f"[skill: {skill_id}]\n{prompt}"
        try:
            result = await agent.run(prompt, deps=context)
        except Exception as e:
            logger.error(f"Agent {agent_id} failed for run {context.run_id}: {e}")
            return TaskResult(error=str(e))

        output = result.output
        if isinstance(output, BaseModel):
            output = output.model_dump(mode="json")
        logger.info(f"Agent {agent_id} completed step for run {context.run_id}")
        return TaskResult(output=output)
