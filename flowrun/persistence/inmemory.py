"""In-memory implementation of the workflow store."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, Optional

from ..contracts import WorkflowRun, WorkflowTemplate, utc_now
from ..errors import ConcurrentModification, RunNotFound
from ..scheduling import is_due
from .repository import WorkflowStore


class InMemoryWorkflowStore(WorkflowStore):
    """Store templates and runs in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Records are copied on the way in and
    out so callers never share state with the store.
    """

    def __init__(self) -> None:
        self._templates: Dict[str, WorkflowTemplate] = {}
        self._runs: Dict[str, WorkflowRun] = {}

    # ------------------------------------------------------------------
    async def get_template(self, template_id: str) -> WorkflowTemplate | None:
        template = self._templates.get(template_id)
        return template.model_copy(deep=True) if template else None

    async def save_template(self, template: WorkflowTemplate) -> None:
        self._templates[template.id] = template.model_copy(deep=True)

    async def delete_template(self, template_id: str) -> bool:
        template = self._templates.get(template_id)
        if template is None:
            return False
        if template.deleted_at is None:
            template.deleted_at = utc_now()
            template.is_schedule_active = False
        return True

    async def list_templates(
        self, account_id: Optional[str] = None, include_deleted: bool = False
    ) -> list[WorkflowTemplate]:
        return [
            t.model_copy(deep=True)
            for t in self._templates.values()
            if (account_id is None or t.account_id == account_id)
            and (include_deleted or not t.is_deleted)
        ]

    async def list_due_templates(self, now: datetime) -> list[WorkflowTemplate]:
        return [
            t.model_copy(deep=True)
            for t in self._templates.values()
            if is_due(t, now)
        ]

    # ------------------------------------------------------------------
    async def create_run(self, run: WorkflowRun) -> None:
        if run.id in self._runs:
            raise ValueError(f"Run {run.id} already exists")
        self._runs[run.id] = run.model_copy(deep=True)

    async def get_run(self, run_id: str) -> WorkflowRun | None:
        run = self._runs.get(run_id)
        return run.model_copy(deep=True) if run else None

    async def save_run(self, run: WorkflowRun, expected_version: int) -> WorkflowRun:
        stored = self._runs.get(run.id)
        if stored is None:
            raise RunNotFound(run.id)
        if stored.version != expected_version:
            raise ConcurrentModification(run.id, expected_version)
        updated = run.model_copy(
            deep=True, update={"version": expected_version + 1, "updated_at": utc_now()}
        )
        self._runs[run.id] = updated
        return updated.model_copy(deep=True)

    async def list_runs(
        self,
        account_id: Optional[str] = None,
        template_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> list[WorkflowRun]:
        wanted = set(statuses) if statuses is not None else None
        runs = [
            r
            for r in self._runs.values()
            if (account_id is None or r.account_id == account_id)
            and (template_id is None or r.template_id == template_id)
            and (wanted is None or r.status in wanted)
        ]
        runs.sort(key=lambda r: r.started_at)
        return [r.model_copy(deep=True) for r in runs]
