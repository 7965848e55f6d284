"""Persistence layer for hookit workflows and execution records."""

from __future__ import annotations

import os
from typing import Optional

from ..config import HookitConfig, load_config
from ..db import HookitDB, normalize_database_url
from .inmemory import InMemoryExecutionLedger, InMemoryWorkflowRepository
from .repository import ExecutionLedger, WorkflowRepository, schedule_of
from .sql import SQLExecutionLedger, SQLWorkflowRepository

_repository_instance: WorkflowRepository | None = None
_ledger_instance: ExecutionLedger | None = None
_db_instance: HookitDB | None = None


def _resolve_url(database_url: Optional[str], config: HookitConfig) -> Optional[str]:
    return (
        database_url
        or os.getenv("HOOKIT_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )


def _check_backend(database_url: str) -> None:
    if not database_url.startswith(("sqlite", "postgres")):
        raise ValueError(f"Unsupported database backend: {database_url}")


def get_database(
    database_url: Optional[str] = None, config: Optional[HookitConfig] = None
) -> Optional[HookitDB]:
    """Return the shared :class:`HookitDB`, or ``None`` when none is configured."""

    global _db_instance
    config = config or load_config()
    database_url = _resolve_url(database_url, config)
    if not database_url:
        return None
    _check_backend(database_url)
    if _db_instance is None or _db_instance.database_url != normalize_database_url(database_url):
        _db_instance = HookitDB(database_url)
    return _db_instance


def get_repository(
    database_url: Optional[str] = None, config: Optional[HookitConfig] = None
) -> WorkflowRepository:
    """Factory function to obtain a workflow repository.

    The backend is selected from ``database_url``, which can be provided
    explicitly, via ``HOOKIT_DATABASE_URL`` or ``DATABASE_URL``, or from the
    loaded configuration. Without a database an in-memory repository is
    returned.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    db = get_database(database_url, config)
    if db is None:
        _repository_instance = InMemoryWorkflowRepository()
    else:
        _repository_instance = SQLWorkflowRepository(db)
    return _repository_instance


def get_ledger(
    database_url: Optional[str] = None, config: Optional[HookitConfig] = None
) -> ExecutionLedger:
    """Factory function to obtain the execution ledger (same backend rules)."""

    global _ledger_instance
    if _ledger_instance is not None and database_url is None and config is None:
        return _ledger_instance

    config = config or load_config()
    db = get_database(database_url, config)
    if db is None:
        _ledger_instance = InMemoryExecutionLedger(page_size=config.ledger.page_size)
    else:
        _ledger_instance = SQLExecutionLedger(db, page_size=config.ledger.page_size)
    return _ledger_instance


__all__ = [
    "WorkflowRepository",
    "ExecutionLedger",
    "InMemoryWorkflowRepository",
    "InMemoryExecutionLedger",
    "SQLWorkflowRepository",
    "SQLExecutionLedger",
    "get_database",
    "get_repository",
    "get_ledger",
    "schedule_of",
]
