"""SQLite implementation of the workflow store."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

from ..contracts import WorkflowRun, WorkflowTemplate, utc_now
from ..errors import ConcurrentModification, RunNotFound
from ..scheduling import is_due
from .repository import WorkflowStore


class SQLiteWorkflowStore(WorkflowStore):
    """Persist templates and runs using SQLite.

    Records are stored as JSON documents next to the columns needed for
    filtering. Run writes are guarded by the ``version`` column.
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_templates (
                id TEXT PRIMARY KEY,
                account_id TEXT NOT NULL,
                is_schedule_active INTEGER NOT NULL DEFAULT 0,
                deleted_at TEXT,
                data TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_runs (
                id TEXT PRIMARY KEY,
                account_id TEXT NOT NULL,
                template_id TEXT NOT NULL,
                status TEXT NOT NULL,
                version INTEGER NOT NULL,
                started_at TEXT NOT NULL,
                data TEXT NOT NULL
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_wf_runs_template ON workflow_runs(template_id)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()
        return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    # ------------------------------------------------------------------
    # Templates
    async def get_template(self, template_id: str) -> WorkflowTemplate | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT data FROM workflow_templates WHERE id = ?",
            template_id,
        )
        return WorkflowTemplate.model_validate_json(row["data"]) if row else None

    async def save_template(self, template: WorkflowTemplate) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO workflow_templates (id, account_id, is_schedule_active, deleted_at, data)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                account_id = excluded.account_id,
                is_schedule_active = excluded.is_schedule_active,
                deleted_at = excluded.deleted_at,
                data = excluded.data
            """,
            template.id,
            template.account_id,
            int(template.has_active_schedule),
            template.deleted_at.isoformat() if template.deleted_at else None,
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
        query = "SELECT data FROM workflow_templates WHERE 1 = 1"
        params: list[Any] = []
        if account_id is not None:
            query += " AND account_id = ?"
            params.append(account_id)
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        rows = await asyncio.to_thread(self._fetchall, query, *params)
        return [WorkflowTemplate.model_validate_json(r["data"]) for r in rows]

    async def list_due_templates(self, now: datetime) -> list[WorkflowTemplate]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT data FROM workflow_templates WHERE is_schedule_active = 1 AND deleted_at IS NULL",
        )
        templates = [WorkflowTemplate.model_validate_json(r["data"]) for r in rows]
        return [t for t in templates if is_due(t, now)]

    # ------------------------------------------------------------------
    # Runs
    async def create_run(self, run: WorkflowRun) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO workflow_runs (id, account_id, template_id, status, version, started_at, data)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            run.id,
            run.account_id,
            run.template_id,
            run.status,
            run.version,
            run.started_at.isoformat(),
            run.to_json(),
        )

    async def get_run(self, run_id: str) -> WorkflowRun | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT data FROM workflow_runs WHERE id = ?", run_id
        )
        return WorkflowRun.from_json(row["data"]) if row else None

    async def save_run(self, run: WorkflowRun, expected_version: int) -> WorkflowRun:
        updated = run.model_copy(
            deep=True, update={"version": expected_version + 1, "updated_at": utc_now()}
        )
        changed = await asyncio.to_thread(
            self._execute,
            "UPDATE workflow_runs SET status = ?, version = ?, data = ? WHERE id = ? AND version = ?",
            updated.status,
            updated.version,
            updated.to_json(),
            run.id,
            expected_version,
        )
        if changed == 0:
            if await self.get_run(run.id) is None:
                raise RunNotFound(run.id)
            raise ConcurrentModification(run.id, expected_version)
        return updated

    async def list_runs(
        self,
        account_id: Optional[str] = None,
        template_id: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> list[WorkflowRun]:
        query = "SELECT data FROM workflow_runs WHERE 1 = 1"
        params: list[Any] = []
        if account_id is not None:
            query += " AND account_id = ?"
            params.append(account_id)
        if template_id is not None:
            query += " AND template_id = ?"
            params.append(template_id)
        if statuses is not None:
            wanted = list(statuses)
            if not wanted:
                return []
            query += f" AND status IN ({', '.join('?' for _ in wanted)})"
            params.extend(wanted)
        query += " ORDER BY started_at"
        rows = await asyncio.to_thread(self._fetchall, query, *params)
        return [WorkflowRun.from_json(r["data"]) for r in rows]
