"""Persistence layer for workflows and execution history."""

from __future__ import annotations

from typing import Optional

from ..config import HireflowConfig, load_config
from .inmemory import InMemoryExecutionStore
from .models import Execution, ExecutionReport, ExecutionStatus, ExecutionStep, StepStatus
from .postgres import PostgresExecutionStore
from .repository import ExecutionStore
from .sqlite import SQLiteExecutionStore

_store_instance: ExecutionStore | None = None


def get_store(
    database_url: Optional[str] = None, config: Optional[HireflowConfig] = None
) -> ExecutionStore:
    """Factory function to obtain an execution store.

    The backend is selected from ``database_url``, which can be given
    explicitly or come from the loaded configuration (``database_url`` in the
    YAML file, ``HIREFLOW_DATABASE_URL`` or ``DATABASE_URL``). When no database
    is configured, an in-memory store is returned.
    """

    global _store_instance
    if _store_instance is not None and database_url is None and config is None:
        return _store_instance

    config = config or load_config()
    database_url = database_url or config.database_url

    if not database_url or database_url == "memory://":
        _store_instance = InMemoryExecutionStore()
        return _store_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _store_instance = SQLiteExecutionStore(path)
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        _store_instance = PostgresExecutionStore(database_url)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _store_instance


def reset_store() -> None:
    """Forget the cached store so the next :func:`get_store` builds a new one."""
    global _store_instance
    _store_instance = None


__all__ = [
    "Execution",
    "ExecutionReport",
    "ExecutionStatus",
    "ExecutionStep",
    "ExecutionStore",
    "InMemoryExecutionStore",
    "PostgresExecutionStore",
    "SQLiteExecutionStore",
    "StepStatus",
    "get_store",
    "reset_store",
]
