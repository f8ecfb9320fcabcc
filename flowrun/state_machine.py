"""Lifecycle of a single workflow run."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .contracts import (
    ACTIVE_RUN_STATUSES,
    GateResponse,
    HumanGateStep,
    RunError,
    StepCompleted,
    StepFailed,
    StepOutcome,
    StepWaitingGate,
    WorkflowRun,
    utc_now,
)
from .errors import (
    ConcurrentModification,
    EmptyTemplate,
    InvalidRunTransition,
    RunNotFound,
    TemplateNotFound,
)
from .mapping import build_step_context
from .notifications import NotificationSink, NullNotificationSink
from .persistence import WorkflowStore
from .steps import StepExecutorRegistry

logger = logging.getLogger(__name__)


class RunStateMachine:
    """Owns every ``status`` and ``current_step_index`` transition of a run.

    Runs move ``running -> paused -> running`` around human gates and end in
    ``completed``, ``failed`` or ``cancelled``. Each transition is written with
    the version it was based on, so a racing writer (a cancel, a duplicate gate
    submission) makes the later write fail instead of overwriting.
    """

    def __init__(
        self,
        store: WorkflowStore,
        steps: StepExecutorRegistry,
        notifications: Optional[NotificationSink] = None,
    ) -> None:
        self._store = store
        self._steps = steps
        self._notifications = notifications or NullNotificationSink()

    # ------------------------------------------------------------------
    # Entry points
    async def start(
        self, template_id: str, account_id: str, triggered_by: str
    ) -> WorkflowRun:
        """Snapshot the template's steps into a new run and execute it.

        Raises:
            TemplateNotFound: missing, soft-deleted or owned by another account.
            EmptyTemplate: the template has no steps.
        """
        template = await self._store.get_template(template_id)
        if template is None or template.is_deleted or template.account_id != account_id:
            raise TemplateNotFound(template_id)
        if not template.steps:
            raise EmptyTemplate(template_id)

        run = WorkflowRun(
            template_id=template.id,
            account_id=account_id,
            steps_snapshot=[step.model_copy(deep=True) for step in template.steps],
            triggered_by=triggered_by,
        )
        await self._store.create_run(run)
        logger.info(
            f"Started run {run.id} for template '{template.name}' "
            f"({len(run.steps_snapshot)} steps, triggered by {triggered_by})"
        )
        return await self.drive(run)

    async def drive(self, run: WorkflowRun) -> WorkflowRun:
        """Execute steps in snapshot order until the run pauses or terminates."""
        while run.status == "running":
            step = run.current_step
            result = run.result_for(step.id)
            result.status = "running"
            result.started_at = utc_now()
            run, ok = await self._persist_progress(run)
            if not ok:
                return run

            outcome = await self._steps.execute(step, build_step_context(run))
            self._apply_outcome(run, step, outcome)

            run, ok = await self._persist_progress(run)
            if not ok:
                return run

            if run.status == "paused":
                await self._notify_gate_opened(run, step)
        return run

    async def record_gate_response(
        self,
        run: WorkflowRun,
        step: HumanGateStep,
        response: GateResponse,
        task_id: Optional[str] = None,
    ) -> WorkflowRun:
        """Store an already validated gate response on a paused run.

        A rejection fails the run; any other response completes the gate step
        and leaves the run ``running`` for ``drive`` to continue, exactly as if
        an automatic step had completed.
        """
        result = run.result_for(step.id)
        result.gate_response = response
        if task_id:
            result.task_id = task_id

        if response.action == "reject":
            self._fail(run, step, f"Gate rejected by {response.responded_by}")
            run = await self._store.save_run(run, run.version)
            logger.info(f"Run {run.id} failed: gate {step.id} rejected")
            return run

        run.status = "running"
        self.advance(run, step, response.model_dump(mode="json"))
        run = await self._store.save_run(run, run.version)
        logger.info(f"Gate {step.id} of run {run.id} resolved with '{response.action}'")
        return run

    async def cancel(self, run_id: str) -> WorkflowRun:
        """Stop further advancement. Side effects of finished steps stay in place."""
        run = await self._store.get_run(run_id)
        if run is None:
            raise RunNotFound(run_id)
        if run.status not in ACTIVE_RUN_STATUSES:
            raise InvalidRunTransition(
                f"Run {run_id} is {run.status} and cannot be cancelled"
            )
        run.status = "cancelled"
        run.completed_at = utc_now()
        run = await self._store.save_run(run, run.version)
        logger.info(f"Cancelled run {run_id} at step {run.current_step_index}")
        return run

    # ------------------------------------------------------------------
    # Transitions
    def advance(self, run: WorkflowRun, step: Any, output: Any) -> None:
        """Complete the current step and move to the next one or finish."""
        result = run.result_for(step.id)
        result.status = "completed"
        result.output = output
        result.completed_at = utc_now()

        if run.current_step_index + 1 == len(run.steps_snapshot):
            run.status = "completed"
            run.current_step_index = len(run.steps_snapshot)
            run.completed_at = utc_now()
            logger.info(f"Run {run.id} completed (all {len(run.steps_snapshot)} steps done)")
        else:
            run.current_step_index += 1
            logger.info(
                f"Advanced run {run.id} to step "
                f"{run.current_step_index + 1}/{len(run.steps_snapshot)}: "
                f"'{run.current_step.title}'"
            )

    def _fail(self, run: WorkflowRun, step: Any, message: str) -> None:
        result = run.result_for(step.id)
        result.status = "failed"
        result.error = message
        result.completed_at = utc_now()
        run.status = "failed"
        run.error = RunError(step_id=step.id, message=message)
        run.completed_at = utc_now()

    def _apply_outcome(self, run: WorkflowRun, step: Any, outcome: StepOutcome) -> None:
        if isinstance(outcome, StepCompleted):
            self.advance(run, step, outcome.output)
        elif isinstance(outcome, StepWaitingGate):
            run.result_for(step.id).status = "waiting_gate"
            run.status = "paused"
            logger.info(f"Run {run.id} paused at gate '{step.title}'")
        elif isinstance(outcome, StepFailed):
            self._fail(run, step, outcome.error)
            logger.error(f"Run {run.id} failed at step '{step.title}': {outcome.error}")
        else:
            raise TypeError(f"Unknown step outcome: {outcome!r}")

    # ------------------------------------------------------------------
    # Persistence helpers
    async def _persist_progress(self, run: WorkflowRun) -> tuple[WorkflowRun, bool]:
        """Save a transition made while driving.

        If another writer moved the run out of ``running`` meanwhile (a cancel
        racing a step), the stored run wins and driving stops.
        """
        try:
            return await self._store.save_run(run, run.version), True
        except ConcurrentModification:
            fresh = await self._store.get_run(run.id)
            if fresh is not None and fresh.status != "running":
                logger.info(
                    f"Run {run.id} became {fresh.status} while a step was executing; "
                    "discarding the stale transition"
                )
                return fresh, False
            raise

    async def _notify_gate_opened(self, run: WorkflowRun, step: HumanGateStep) -> None:
        try:
            await self._notifications.on_gate_opened(run, step)
        except Exception as e:
            logger.warning(f"Gate notification for run {run.id} step {step.id} failed: {e}")
