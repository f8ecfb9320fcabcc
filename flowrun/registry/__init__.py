"""Agent registry used to assign agent steps."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .models import AgentProfile


class AgentRegistry:
    """In-memory directory of agents keyed by id.

    Agents are registered at startup (from configuration or by the host
    application); the engine only reads from it.
    """

    def __init__(self, agents: Iterable[AgentProfile] = ()) -> None:
        self._agents: Dict[str, AgentProfile] = {}
        for agent in agents:
            self.register(agent)

    def register(self, agent: AgentProfile) -> None:
        self._agents[agent.id] = agent

    def get(self, agent_id: str) -> Optional[AgentProfile]:
        return self._agents.get(agent_id)

    def list_agents(self, account_id: Optional[str] = None) -> List[AgentProfile]:
        """Agents visible to ``account_id``; agents without an account are shared."""
        return [
            a
            for a in self._agents.values()
            if account_id is None or a.account_id in (None, account_id)
        ]

    def pick_agent(
        self, account_id: Optional[str], skill_id: Optional[str] = None
    ) -> Optional[AgentProfile]:
        """Choose the healthiest eligible agent able to run ``skill_id``.

        Ties on failure count are broken by name so the choice is stable.
        """
        candidates = [
            a
            for a in self.list_agents(account_id)
            if a.is_eligible and a.can_handle(skill_id)
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda a: (a.consecutive_failures, a.name))


# Process-wide registry used when no explicit registry is supplied.
REGISTRY = AgentRegistry()


def register_agent(agent: AgentProfile) -> None:
    """Add ``agent`` to ``REGISTRY``, replacing any agent with the same id."""
    REGISTRY.register(agent)


__all__ = [
    "AgentProfile",
    "AgentRegistry",
    "REGISTRY",
    "register_agent",
]
