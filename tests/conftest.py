"""Shared fixtures: an in-memory store, a recording executor and an engine."""

from typing import Any, Dict, List, Optional

import pytest

from flowrun import AgentProfile, AgentRegistry, RunEngine, TaskResult
from flowrun.contracts import HumanGateStep, StepContext, WorkflowRun
from flowrun.executors import TaskExecutor
from flowrun.notifications import NotificationSink
from flowrun.persistence import InMemoryWorkflowStore

ACCOUNT = "acct-1"


class RecordingExecutor(TaskExecutor):
    """Returns canned output per agent and remembers every call."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.outputs: Dict[str, Any] = {}
        self.errors: Dict[str, str] = {}
        self.raises: Dict[str, Exception] = {}
        self.before_return = None

    async def run(
        self,
        agent_id: str,
        skill_id: Optional[str],
        prompt: str,
        context: StepContext,
    ) -> TaskResult:
        self.calls.append(
            {"agent_id": agent_id, "skill_id": skill_id, "prompt": prompt, "context": context}
        )
        if self.before_return is not None:
            await self.before_return(context)
        if agent_id in self.raises:
            raise self.raises[agent_id]
        if agent_id in self.errors:
            return TaskResult(error=self.errors[agent_id])
        return TaskResult(output=self.outputs.get(agent_id, {"content": f"output of {agent_id}"}))


class RecordingSink(NotificationSink):
    def __init__(self) -> None:
        self.opened: List[tuple[str, str]] = []
        self.fail = False

    async def on_gate_opened(self, run: WorkflowRun, step: HumanGateStep) -> None:
        if self.fail:
            raise ConnectionError("webhook unreachable")
        self.opened.append((run.id, step.id))


@pytest.fixture
def store() -> InMemoryWorkflowStore:
    return InMemoryWorkflowStore()


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def agents() -> AgentRegistry:
    return AgentRegistry(
        [
            AgentProfile(id="writer", name="Writer", skills=["write-post"]),
            AgentProfile(id="researcher", name="Researcher", capabilities=["web-research"]),
        ]
    )


@pytest.fixture
def engine(store, executor, agents, sink) -> RunEngine:
    return RunEngine(store, executor, agents=agents, notifications=sink)
