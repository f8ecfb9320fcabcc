"""Error taxonomy for the workflow run engine."""

from __future__ import annotations


class FlowrunError(Exception):
    """Base class for all engine errors."""


class TemplateNotFound(FlowrunError):
    """The template does not exist, is soft-deleted or belongs to another account."""

    def __init__(self, template_id: str) -> None:
        super().__init__(f"Workflow template {template_id} not found")
        self.template_id = template_id


class EmptyTemplate(FlowrunError):
    """The template has no steps and cannot be run."""

    def __init__(self, template_id: str) -> None:
        super().__init__(f"Workflow template {template_id} has no steps")
        self.template_id = template_id


class RunNotFound(FlowrunError):
    def __init__(self, run_id: str) -> None:
        super().__init__(f"Workflow run {run_id} not found")
        self.run_id = run_id


class NoEligibleAgent(FlowrunError):
    """No active, unpaused, healthy agent can take the step."""


class GateMismatch(FlowrunError):
    """A gate response does not target the gate the run is waiting on."""


class InvalidGateResponse(FlowrunError):
    """A gate response is not valid for the gate's type or options."""


class InvalidRunTransition(FlowrunError):
    """The requested transition is not allowed from the run's current status."""


class ConcurrentModification(FlowrunError):
    """A write was based on a stale version of the run.

    Always safe to retry with freshly loaded state.
    """

    def __init__(self, run_id: str, expected_version: int) -> None:
        super().__init__(
            f"Workflow run {run_id} changed since version {expected_version}"
        )
        self.run_id = run_id
        self.expected_version = expected_version


class StepExecutionFailed(FlowrunError):
    """Wraps an error reported or raised by the external task executor."""

    def __init__(self, step_id: str, message: str, cause: Exception | None = None) -> None:
        super().__init__(f"Step {step_id} failed: {message}")
        self.step_id = step_id
        self.message = message
        self.cause = cause


__all__ = [
    "FlowrunError",
    "TemplateNotFound",
    "EmptyTemplate",
    "RunNotFound",
    "NoEligibleAgent",
    "GateMismatch",
    "InvalidGateResponse",
    "InvalidRunTransition",
    "ConcurrentModification",
    "StepExecutionFailed",
]
