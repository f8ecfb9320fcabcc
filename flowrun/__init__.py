"""flowrun: durable, resumable workflow runs for agent task templates."""

from .contracts import (
    AgentTaskStep,
    DocumentOutputStep,
    GateResponse,
    HumanGateStep,
    Schedule,
    StepContext,
    StepResult,
    TaskResult,
    WorkflowRun,
    WorkflowTemplate,
)
from .engine import RunEngine
from .executors import TaskExecutor
from .persistence import get_repository
from .registry import REGISTRY, AgentProfile, AgentRegistry
from .scheduler import Scheduler
from .transports import get_transport

__version__ = "0.1.0"
__all__ = [
    "AgentTaskStep",
    "HumanGateStep",
    "DocumentOutputStep",
    "Schedule",
    "WorkflowTemplate",
    "WorkflowRun",
    "StepResult",
    "StepContext",
    "GateResponse",
    "TaskResult",
    "TaskExecutor",
    "RunEngine",
    "Scheduler",
    "AgentProfile",
    "AgentRegistry",
    "REGISTRY",
    "get_repository",
    "get_transport",
]
