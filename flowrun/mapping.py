"""Build the upstream context handed to each step."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from .contracts import StepContext, StepResult, WorkflowRun

logger = logging.getLogger(__name__)

STEP_REFERENCE_PREFIX = "step:"


def get_nested_value(obj: Any, path: str) -> Any:
    """Walk ``path`` (dot separated) through dicts and model attributes."""
    current = obj
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        elif hasattr(current, part):
            current = getattr(current, part)
        else:
            return None
    return current


def resolve_input_mapping(
    mapping: Mapping[str, str], step_results: Mapping[str, StepResult]
) -> Dict[str, Any]:
    """Resolve ``step:<step_id>:<dot.path>`` references against step results.

    Values that do not start with ``step:`` are passed through as literals.
    References to unknown steps are skipped.
    """
    resolved: Dict[str, Any] = {}
    for name, reference in mapping.items():
        if not reference.startswith(STEP_REFERENCE_PREFIX):
            resolved[name] = reference
            continue

        parts = reference.split(":")
        if len(parts) < 3:
            logger.warning(f"Malformed input mapping for '{name}': {reference}")
            continue

        step_id = parts[1]
        path = ":".join(parts[2:])
        result = step_results.get(step_id)
        if result is None:
            logger.warning(
                f"Input mapping for '{name}' references step {step_id} with no result"
            )
            continue
        value = get_nested_value(result, path)
        if value is None:
            logger.warning(f"Input mapping for '{name}' found nothing at {reference}")
        resolved[name] = value
    return resolved


def build_step_context(run: WorkflowRun) -> StepContext:
    """Collect every completed upstream output and gate response for the current step."""
    step = run.current_step
    if step is None:
        raise ValueError(f"Run {run.id} has no current step")

    outputs: Dict[str, Any] = {}
    gate_responses = {}
    for upstream in run.steps_snapshot[: run.current_step_index]:
        result = run.step_results.get(upstream.id)
        if result is None or result.status != "completed":
            continue
        outputs[upstream.id] = result.output
        if result.gate_response is not None:
            gate_responses[upstream.id] = result.gate_response

    return StepContext(
        run_id=run.id,
        template_id=run.template_id,
        account_id=run.account_id,
        step_index=run.current_step_index,
        total_steps=len(run.steps_snapshot),
        workflow_title=run.steps_snapshot[0].title,
        outputs=outputs,
        gate_responses=gate_responses,
        inputs=resolve_input_mapping(step.input_mapping, run.step_results),
    )
