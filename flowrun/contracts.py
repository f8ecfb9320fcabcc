"""Core record contracts for the flowrun workflow engine."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

RunStatus = Literal["running", "paused", "completed", "failed", "cancelled"]
StepStatus = Literal["pending", "running", "waiting_gate", "completed", "failed"]
GateType = Literal["approve", "select", "input"]
GateAction = Literal["approve", "reject", "select", "input"]
ScheduleType = Literal["none", "daily", "weekly", "monthly", "once"]

ACTIVE_RUN_STATUSES: tuple[str, ...] = ("running", "paused")
TERMINAL_RUN_STATUSES: tuple[str, ...] = ("completed", "failed", "cancelled")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Step definitions


class _StepBase(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    description: Optional[str] = None
    input_mapping: Dict[str, str] = Field(
        default_factory=dict,
        description="Parameter name -> literal or 'step:<step_id>:<dot.path>'",
    )


class AgentTaskStep(_StepBase):
    """Step executed by an autonomous agent."""

    type: Literal["agent_task"] = "agent_task"
    agent_id: Optional[str] = None
    skill_id: Optional[str] = None
    prompt: Optional[str] = None


class HumanGateStep(_StepBase):
    """Step that suspends the run until a person responds."""

    type: Literal["human_gate"] = "human_gate"
    gate_type: GateType = "approve"
    gate_prompt: Optional[str] = None
    gate_options: List[str] = Field(default_factory=list)


class DocumentOutputStep(_StepBase):
    """Step that turns upstream output into a document artifact."""

    type: Literal["document_output"] = "document_output"
    document_title: Optional[str] = None
    document_folder_id: Optional[str] = None


StepDef = Annotated[
    Union[AgentTaskStep, HumanGateStep, DocumentOutputStep],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Templates


class Schedule(BaseModel):
    """Recurrence rule for a template. Days of week run Sunday=0..Saturday=6."""

    type: ScheduleType = "none"
    hour: int = Field(default=0, ge=0, le=23)
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    run_date: Optional[date] = None
    end_date: Optional[date] = None


class WorkflowTemplate(BaseModel):
    """A named, reusable process definition."""

    id: str = Field(default_factory=new_id)
    account_id: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    project_id: Optional[str] = None
    steps: List[StepDef] = Field(default_factory=list)
    schedule: Optional[Schedule] = None
    is_schedule_active: bool = False
    last_run_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime] = None

    @field_validator("steps")
    @classmethod
    def _unique_step_ids(cls, steps: List[Any]) -> List[Any]:
        seen: set[str] = set()
        for step in steps:
            if step.id in seen:
                raise ValueError(f"duplicate step id: {step.id}")
            seen.add(step.id)
        return steps

    @field_validator("last_run_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Timestamps without an offset are taken as UTC."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def has_active_schedule(self) -> bool:
        return (
            self.is_schedule_active
            and self.schedule is not None
            and self.schedule.type != "none"
        )


# ---------------------------------------------------------------------------
# Runs


class GateResponse(BaseModel):
    """A human's answer to a gate."""

    action: GateAction
    selected_options: List[str] = Field(default_factory=list)
    input_text: Optional[str] = None
    responded_by: str
    responded_at: datetime = Field(default_factory=utc_now)


class StepResult(BaseModel):
    status: StepStatus = "pending"
    output: Any = None
    gate_response: Optional[GateResponse] = None
    error: Optional[str] = None
    task_id: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class RunError(BaseModel):
    """Failure record kept on a run for display."""

    step_id: str
    message: str


class WorkflowRun(BaseModel):
    """One execution instance of a template."""

    id: str = Field(default_factory=new_id)
    template_id: str
    account_id: str
    steps_snapshot: List[StepDef]
    status: RunStatus = "running"
    current_step_index: int = 0
    step_results: Dict[str, StepResult] = Field(default_factory=dict)
    triggered_by: str
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    updated_at: datetime = Field(default_factory=utc_now)
    error: Optional[RunError] = None
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RUN_STATUSES

    @property
    def current_step(self) -> Optional[Any]:
        """Snapshot step at ``current_step_index`` or ``None`` once past the end."""
        if 0 <= self.current_step_index < len(self.steps_snapshot):
            return self.steps_snapshot[self.current_step_index]
        return None

    def result_for(self, step_id: str) -> StepResult:
        """Return the step's result, creating a pending one if absent."""
        result = self.step_results.get(step_id)
        if result is None:
            result = StepResult()
            self.step_results[step_id] = result
        return result

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "WorkflowRun":
        return cls.model_validate_json(data)


# ---------------------------------------------------------------------------
# Step execution


class StepContext(BaseModel):
    """Everything upstream of a step, handed to its handler."""

    run_id: str
    template_id: str
    account_id: str
    step_index: int
    total_steps: int
    workflow_title: str
    outputs: Dict[str, Any] = Field(default_factory=dict)
    gate_responses: Dict[str, GateResponse] = Field(default_factory=dict)
    inputs: Dict[str, Any] = Field(default_factory=dict)


class StepCompleted(BaseModel):
    kind: Literal["completed"] = "completed"
    output: Any = None


class StepWaitingGate(BaseModel):
    kind: Literal["waiting_gate"] = "waiting_gate"


class StepFailed(BaseModel):
    kind: Literal["failed"] = "failed"
    error: str


StepOutcome = Union[StepCompleted, StepWaitingGate, StepFailed]


class TaskResult(BaseModel):
    """What the external task executor reports for one agent step."""

    output: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Events


class GateOpenedEvent(BaseModel):
    """Envelope published when a run pauses on a human gate."""

    event_id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=utc_now)
    run_id: str
    template_id: str
    account_id: str
    step_id: str
    title: str
    gate_type: GateType
    gate_prompt: Optional[str] = None
    gate_options: List[str] = Field(default_factory=list)

    @classmethod
    def for_step(cls, run: WorkflowRun, step: HumanGateStep) -> "GateOpenedEvent":
        return cls(
            run_id=run.id,
            template_id=run.template_id,
            account_id=run.account_id,
            step_id=step.id,
            title=step.title,
            gate_type=step.gate_type,
            gate_prompt=step.gate_prompt or step.description,
            gate_options=list(step.gate_options),
        )

    def to_json(self) -> str:
        """Serialize event to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "GateOpenedEvent":
        """Deserialize event from JSON."""
        return cls.model_validate_json(data)
