"""Repository abstraction for templates and run state."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Protocol

from ..contracts import WorkflowRun, WorkflowTemplate


class WorkflowStore(Protocol):
    """Protocol for template and run persistence backends."""

    async def get_template(self, template_id: str) -> WorkflowTemplate | None:
        """Retrieve a template by id, including soft-deleted ones."""

    async def save_template(self, template: WorkflowTemplate) -> None:
        """Insert or replace a template."""

    async def delete_template(self, template_id: str) -> bool:
        """Soft-delete a template. Returns ``False`` if it does not exist."""

    async def list_templates(
        self, account_id: Optional[str] = None, include_deleted: bool = False
    ) -> list[WorkflowTemplate]:
        """Return templates, optionally scoped to an account."""

    async def list_due_templates(self, now: datetime) -> list[WorkflowTemplate]:
        """Return templates whose active schedule fires at ``now``."""

    async def create_run(self, run: WorkflowRun) -> None:
        """Persist a new run."""

    async def get_run(self, run_id: str) -> WorkflowRun | None:
        """Retrieve a run by id."""

    async def save_run(self, run: WorkflowRun, expected_version: int) -> WorkflowRun:
        """Persist ``run`` if the stored version still equals ``expected_version``.

        Returns the run with its version bumped. Raises
        ``ConcurrentModification`` when another writer got there first.
        """

    async def list_runs(
        self,
        account_id: Optional[str] = None,
        template_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> list[WorkflowRun]:
        """Return runs matching every given filter, oldest first."""
