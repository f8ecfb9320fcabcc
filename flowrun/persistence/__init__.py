"""Persistence layer for workflow templates and runs."""

from __future__ import annotations

import os
from typing import Optional

from ..config import FlowrunConfig, load_config
from .inmemory import InMemoryWorkflowStore
from .repository import WorkflowStore
from .sqlite import SQLiteWorkflowStore

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresWorkflowStore
except ImportError:  # pragma: no cover - optional dependency
    PostgresWorkflowStore = None  # type: ignore

_repository_instance: WorkflowStore | None = None


def store_for_url(database_url: Optional[str]) -> WorkflowStore:
    """Build the store named by a ``sqlite://`` or ``postgresql://`` URL.

    No URL means an in-memory store.
    """
    if not database_url:
        return InMemoryWorkflowStore()

    scheme, _, rest = database_url.partition("://")
    if scheme == "sqlite":
        return SQLiteWorkflowStore(rest)
    if scheme in ("postgres", "postgresql"):
        if PostgresWorkflowStore is None:
            raise RuntimeError("asyncpg is required for PostgreSQL storage")
        return PostgresWorkflowStore(database_url)
    raise ValueError(f"Unsupported database backend: {database_url}")


def get_repository(
    database_url: Optional[str] = None, config: Optional[FlowrunConfig] = None
) -> WorkflowStore:
    """Return the process-wide workflow store, creating it on first use.

    ``database_url`` wins over ``FLOWRUN_DATABASE_URL``/``DATABASE_URL`` and the
    configured ``database_url``. Passing either argument always builds a new
    store.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    url = (
        database_url
        or os.getenv("FLOWRUN_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )
    _repository_instance = store_for_url(url)
    return _repository_instance


__all__ = [
    "WorkflowStore",
    "InMemoryWorkflowStore",
    "SQLiteWorkflowStore",
    "PostgresWorkflowStore",
    "get_repository",
    "store_for_url",
]
