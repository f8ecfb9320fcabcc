"""Handler for steps delegated to an autonomous agent."""

from __future__ import annotations

import logging

from ..contracts import AgentTaskStep, StepCompleted, StepContext, StepFailed, StepOutcome
from ..errors import NoEligibleAgent, StepExecutionFailed
from ..executors.base import TaskExecutor
from ..registry import AgentRegistry
from .base import StepHandler

logger = logging.getLogger(__name__)


class AgentTaskHandler(StepHandler):
    step_type = AgentTaskStep

    def __init__(self, executor: TaskExecutor, agents: AgentRegistry) -> None:
        self._executor = executor
        self._agents = agents

    def resolve_agent_id(self, step: AgentTaskStep, account_id: str) -> str:
        """Explicit assignment wins; otherwise auto-assign from the registry."""
        if step.agent_id:
            return step.agent_id
        agent = self._agents.pick_agent(account_id, step.skill_id)
        if agent is None:
            raise NoEligibleAgent(
                f"No eligible agent for step {step.id}"
                + (f" (skill {step.skill_id})" if step.skill_id else "")
            )
        logger.debug(f"Auto-assigned agent {agent.id} to step {step.id}")
        return agent.id

    @staticmethod
    def build_prompt(step: AgentTaskStep) -> str:
        if step.prompt:
            return step.prompt
        return "\n\n".join(part for part in (step.title, step.description) if part)

    async def execute(self, step: AgentTaskStep, context: StepContext) -> StepOutcome:
        try:
            agent_id = self.resolve_agent_id(step, context.account_id)
            try:
                result = await self._executor.run(
                    agent_id, step.skill_id, self.build_prompt(step), context
                )
            except Exception as e:
                raise StepExecutionFailed(step.id, str(e), cause=e) from e
            if not result.ok:
                raise StepExecutionFailed(step.id, result.error or "unknown error")
        except (NoEligibleAgent, StepExecutionFailed) as e:
            logger.warning(f"Agent step {step.id} of run {context.run_id} failed: {e}")
            return StepFailed(error=str(e))

        return StepCompleted(output=result.output)
