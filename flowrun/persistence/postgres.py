"""PostgreSQL implementation of the workflow store."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Iterable, Optional

import asyncpg

from ..contracts import WorkflowRun, WorkflowTemplate, utc_now
from ..errors import ConcurrentModification, RunNotFound
from ..scheduling import is_due
from .repository import WorkflowStore

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS workflow_templates (
        id TEXT PRIMARY KEY,
        account_id TEXT NOT NULL,
        is_schedule_active BOOLEAN NOT NULL DEFAULT false,
        deleted_at TIMESTAMPTZ,
        data JSONB NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS workflow_runs (
        id TEXT PRIMARY KEY,
        account_id TEXT NOT NULL,
        template_id TEXT NOT NULL,
        status TEXT NOT NULL,
        version INTEGER NOT NULL,
        started_at TIMESTAMPTZ NOT NULL,
        data JSONB NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_wf_runs_template ON workflow_runs(template_id)",
)


class _Filters:
    """Accumulates ``AND`` clauses with numbered ``$n`` placeholders."""

    def __init__(self) -> None:
        self.clauses: list[str] = []
        self.params: list[Any] = []

    def add(self, clause: str, value: Any) -> None:
        self.params.append(value)
        self.clauses.append(clause.format(f"${len(self.params)}"))

    def where(self) -> str:
        return " WHERE " + " AND ".join(self.clauses) if self.clauses else ""


class PostgresWorkflowStore(WorkflowStore):
    """Persist templates and runs as JSONB documents in PostgreSQL.

    A connection is opened per call; the schema is created on first use.
    """

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._schema_ready = False

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        conn = await asyncpg.connect(self._dsn)
        try:
            if not self._schema_ready:
                for statement in SCHEMA:
                    await conn.execute(statement)
                self._schema_ready = True
            yield conn
        finally:
            await conn.close()

    # ------------------------------------------------------------------
    # Templates
    async def get_template(self, template_id: str) -> WorkflowTemplate | None:
        async with self._connection() as conn:
            data = await conn.fetchval(
                "SELECT data::text FROM workflow_templates WHERE id = $1", template_id
            )
        return WorkflowTemplate.model_validate_json(data) if data else None

    async def save_template(self, template: WorkflowTemplate) -> None:
        async with self._connection() as conn:
            await conn.execute(
                """
                INSERT INTO workflow_templates (id, account_id, is_schedule_active, deleted_at, data)
                VALUES ($1, $2, $3, $4, $5::jsonb)
                ON CONFLICT (id) DO UPDATE SET
                    account_id = EXCLUDED.account_id,
                    is_schedule_active = EXCLUDED.is_schedule_active,
                    deleted_at = EXCLUDED.deleted_at,
                    data = EXCLUDED.data
                """,
                template.id,
                template.account_id,
                template.has_active_schedule,
                template.deleted_at,
                template.model_dump_json(),
            )

    async def delete_template(self, template_id: str) -> bool:
        template = await self.get_template(template_id)
        if template is None:
            return False
        if template.deleted_at is None:
            template.deleted_at = utc_now()
            template.is_schedule_active = False
            await self.save_template(template)
        return True

    async def list_templates(
        self, account_id: Optional[str] = None, include_deleted: bool = False
    ) -> list[WorkflowTemplate]:
        filters = _Filters()
        if account_id is not None:
            filters.add("account_id = {}", account_id)
        query = "SELECT data::text AS data FROM workflow_templates" + filters.where()
        if not include_deleted:
            query += (" AND" if filters.clauses else " WHERE") + " deleted_at IS NULL"
        async with self._connection() as conn:
            rows = await conn.fetch(query, *filters.params)
        return [WorkflowTemplate.model_validate_json(r["data"]) for r in rows]

    async def list_due_templates(self, now: datetime) -> list[WorkflowTemplate]:
        async with self._connection() as conn:
            rows = await conn.fetch(
                "SELECT data::text AS data FROM workflow_templates "
                "WHERE is_schedule_active AND deleted_at IS NULL"
            )
        templates = [WorkflowTemplate.model_validate_json(r["data"]) for r in rows]
        return [t for t in templates if is_due(t, now)]

    # ------------------------------------------------------------------
    # Runs
    async def create_run(self, run: WorkflowRun) -> None:
        async with self._connection() as conn:
            await conn.execute(
                """
                INSERT INTO workflow_runs (id, account_id, template_id, status, version, started_at, data)
                VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb)
                """,
                run.id,
                run.account_id,
                run.template_id,
                run.status,
                run.version,
                run.started_at,
                run.to_json(),
            )

    async def get_run(self, run_id: str) -> WorkflowRun | None:
        async with self._connection() as conn:
            data = await conn.fetchval(
                "SELECT data::text FROM workflow_runs WHERE id = $1", run_id
            )
        return WorkflowRun.from_json(data) if data else None

    async def save_run(self, run: WorkflowRun, expected_version: int) -> WorkflowRun:
        updated = run.model_copy(
            deep=True, update={"version": expected_version + 1, "updated_at": utc_now()}
        )
        async with self._connection() as conn:
            status = await conn.execute(
                """
                UPDATE workflow_runs SET status = $1, version = $2, data = $3::jsonb
                WHERE id = $4 AND version = $5
                """,
                updated.status,
                updated.version,
                updated.to_json(),
                run.id,
                expected_version,
            )
            if status == "UPDATE 0":
                exists = await conn.fetchval(
                    "SELECT 1 FROM workflow_runs WHERE id = $1", run.id
                )
                if not exists:
                    raise RunNotFound(run.id)
                raise ConcurrentModification(run.id, expected_version)
        return updated

    async def list_runs(
        self,
        account_id: Optional[str] = None,
        template_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> list[WorkflowRun]:
        filters = _Filters()
        if account_id is not None:
            filters.add("account_id = {}", account_id)
        if template_id is not None:
            filters.add("template_id = {}", template_id)
        if statuses is not None:
            filters.add("status = ANY({}::text[])", list(statuses))
        query = (
            "SELECT data::text AS data FROM workflow_runs"
            + filters.where()
            + " ORDER BY started_at"
        )
        async with self._connection() as conn:
            rows = await conn.fetch(query, *filters.params)
        return [WorkflowRun.from_json(r["data"]) for r in rows]
