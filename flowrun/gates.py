"""Feeds asynchronous human gate responses back into paused runs."""

from __future__ import annotations

import logging
from typing import Optional

from .contracts import GateResponse, HumanGateStep, WorkflowRun
from .errors import GateMismatch, InvalidGateResponse, RunNotFound
from .persistence import WorkflowStore
from .state_machine import RunStateMachine
from .utils.retry import retry_on_conflict

logger = logging.getLogger(__name__)


def validate_gate_response(step: HumanGateStep, response: GateResponse) -> None:
    """Check ``response`` against the gate's type and options.

    Raises:
        InvalidGateResponse: if the response does not fit the gate.
    """
    if step.gate_type == "approve":
        if response.action not in ("approve", "reject"):
            raise InvalidGateResponse(
                f"Approval gate {step.id} expects 'approve' or 'reject', got '{response.action}'"
            )
    elif step.gate_type == "select":
        if response.action != "select":
            raise InvalidGateResponse(
                f"Selection gate {step.id} expects 'select', got '{response.action}'"
            )
        if not response.selected_options:
            raise InvalidGateResponse(f"Selection gate {step.id} needs at least one option")
        # Without configured options the choices come from upstream output.
        if step.gate_options:
            unknown = [o for o in response.selected_options if o not in step.gate_options]
            if unknown:
                raise InvalidGateResponse(
                    f"Options {unknown} are not offered by gate {step.id}"
                )
    elif step.gate_type == "input":
        if response.action != "input":
            raise InvalidGateResponse(
                f"Input gate {step.id} expects 'input', got '{response.action}'"
            )
        if not (response.input_text or "").strip():
            raise InvalidGateResponse(f"Input gate {step.id} needs non-empty text")


class GateResolver:
    """Validates gate submissions and asks the state machine to resume.

    Only a submission for the gate the run is currently paused on is
    accepted, so a stale or duplicate submission is rejected with
    ``GateMismatch`` without touching the run.
    """

    def __init__(self, store: WorkflowStore, machine: RunStateMachine) -> None:
        self._store = store
        self._machine = machine

    async def resolve(
        self,
        run_id: str,
        step_id: str,
        response: GateResponse,
        task_id: Optional[str] = None,
    ) -> WorkflowRun:
        """Record the response, then continue the run past the gate.

        Only the gate write is retried on a version conflict. Once it is
        stored, later steps run outside the retry so an accepted gate is never
        submitted twice.
        """
        run = await retry_on_conflict(
            lambda: self._record(run_id, step_id, response, task_id)
        )
        if run.status != "running":
            return run
        return await self._machine.drive(run)

    async def _record(
        self,
        run_id: str,
        step_id: str,
        response: GateResponse,
        task_id: Optional[str],
    ) -> WorkflowRun:
        run = await self._store.get_run(run_id)
        if run is None:
            raise RunNotFound(run_id)
        step = self._waiting_gate(run, step_id)
        validate_gate_response(step, response)
        logger.debug(f"Accepted '{response.action}' for gate {step_id} of run {run_id}")
        return await self._machine.record_gate_response(run, step, response, task_id)

    @staticmethod
    def _waiting_gate(run: WorkflowRun, step_id: str) -> HumanGateStep:
        if run.status != "paused":
            raise GateMismatch(f"Run {run.id} is {run.status}, not waiting on a gate")
        step = run.current_step
        if step is None or step.id != step_id:
            raise GateMismatch(
                f"Run {run.id} is not waiting on step {step_id}"
            )
        if not isinstance(step, HumanGateStep):
            raise GateMismatch(f"Step {step_id} of run {run.id} is not a human gate")
        result = run.step_results.get(step_id)
        if result is None or result.status != "waiting_gate":
            raise GateMismatch(f"Gate {step_id} of run {run.id} is not open")
        return step
