"""Facade other subsystems use to drive workflow runs."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .config import FlowrunConfig, load_config
from .constants import SCHEDULER_TRIGGER
from .contracts import (
    ACTIVE_RUN_STATUSES,
    GateResponse,
    WorkflowRun,
    WorkflowTemplate,
    utc_now,
)
from .errors import RunNotFound
from .executors import TaskExecutor, get_executor
from .gates import GateResolver
from .notifications import NotificationSink, TransportNotificationSink
from .persistence import WorkflowStore, get_repository
from .registry import REGISTRY, AgentRegistry
from .state_machine import RunStateMachine
from .steps import StepExecutorRegistry, build_registry
from .transports import get_transport

logger = logging.getLogger(__name__)


def format_trigger(triggered_by: str, triggered_by_type: str = "user") -> str:
    """``scheduler`` for scheduled runs, ``<type>:<id>`` for everything else."""
    if triggered_by_type == SCHEDULER_TRIGGER:
        return SCHEDULER_TRIGGER
    return f"{triggered_by_type}:{triggered_by}"


class RunEngine:
    """Starts, resumes, cancels and lists workflow runs."""

    def __init__(
        self,
        store: WorkflowStore,
        executor: TaskExecutor,
        agents: Optional[AgentRegistry] = None,
        notifications: Optional[NotificationSink] = None,
        steps: Optional[StepExecutorRegistry] = None,
    ) -> None:
        self.store = store
        self.machine = RunStateMachine(
            store, steps or build_registry(executor, agents), notifications
        )
        self.gates = GateResolver(store, self.machine)

    @classmethod
    def from_config(
        cls,
        config: Optional[FlowrunConfig] = None,
        store: Optional[WorkflowStore] = None,
        executor: Optional[TaskExecutor] = None,
    ) -> "RunEngine":
        """Wire store, executor, agents and gate notifications from configuration."""
        config = config or load_config()
        agents = AgentRegistry(config.agents) if config.agents else REGISTRY
        return cls(
            store=store or get_repository(database_url=config.database_url),
            executor=executor or get_executor(config),
            agents=agents,
            notifications=TransportNotificationSink(get_transport(config=config)),
        )

    # ------------------------------------------------------------------
    # Runs
    async def start_run(
        self,
        template_id: str,
        account_id: str,
        triggered_by: str,
        triggered_by_type: str = "user",
    ) -> WorkflowRun:
        """Start a run and execute it until it pauses or finishes."""
        return await self.machine.start(
            template_id, account_id, format_trigger(triggered_by, triggered_by_type)
        )

    async def resolve_gate(
        self,
        run_id: str,
        step_id: str,
        task_id: Optional[str],
        response: GateResponse,
    ) -> WorkflowRun:
        """Submit a human response for the gate ``run_id`` is paused on."""
        return await self.gates.resolve(run_id, step_id, response, task_id=task_id)

    async def cancel_run(self, run_id: str) -> WorkflowRun:
        return await self.machine.cancel(run_id)

    async def list_active_runs(self, account_id: str) -> list[WorkflowRun]:
        """Runs of ``account_id`` that are running or paused on a gate."""
        return await self.store.list_runs(
            account_id=account_id, statuses=ACTIVE_RUN_STATUSES
        )

    async def list_runs(
        self,
        account_id: Optional[str] = None,
        template_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> list[WorkflowRun]:
        return await self.store.list_runs(
            account_id=account_id, template_id=template_id, statuses=statuses
        )

    async def get_run(self, run_id: str) -> WorkflowRun:
        run = await self.store.get_run(run_id)
        if run is None:
            raise RunNotFound(run_id)
        return run

    # ------------------------------------------------------------------
    # Templates
    async def save_template(self, template: WorkflowTemplate) -> WorkflowTemplate:
        """Create or edit a template. Runs already started keep their snapshot."""
        template.updated_at = utc_now()
        await self.store.save_template(template)
        logger.info(f"Saved template '{template.name}' ({template.id})")
        return template

    async def delete_template(self, template_id: str) -> bool:
        deleted = await self.store.delete_template(template_id)
        if deleted:
            logger.info(f"Soft-deleted template {template_id}")
        return deleted
