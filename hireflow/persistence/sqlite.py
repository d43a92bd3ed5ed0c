"""SQLite implementation of the execution store."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from ..constants import DEFAULT_EXECUTION_LIST_LIMIT, TriggerKind
from ..contracts import Workflow
from ..errors import PersistenceError, WorkflowNotFoundError
from ..utils.clock import utcnow
from .models import Execution, ExecutionStatus, ExecutionStep
from .repository import (
    ExecutionStore,
    apply_execution_patch,
    apply_step_patch,
    apply_workflow_patch,
)


class SQLiteExecutionStore(ExecutionStore):
    """Persist workflows and execution history using SQLite.

    Records are stored as JSON documents next to the columns used for
    lookups. Blocking calls run in a worker thread.
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
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                tenant_id TEXT NOT NULL,
                trigger_kind TEXT NOT NULL,
                is_active INTEGER NOT NULL,
                data TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS executions (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT UNIQUE NOT NULL,
                tenant_id TEXT NOT NULL,
                workflow_id TEXT NOT NULL,
                status TEXT NOT NULL,
                resume_at TEXT,
                data TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS execution_steps (
                id TEXT PRIMARY KEY,
                execution_id TEXT NOT NULL,
                step_index INTEGER NOT NULL,
                data TEXT NOT NULL,
                UNIQUE (execution_id, step_index)
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        try:
            cur = self._conn.cursor()
            cur.execute(query, params)
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise PersistenceError(f"SQLite write failed: {exc}") from exc

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        try:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"SQLite read failed: {exc}") from exc

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        try:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"SQLite read failed: {exc}") from exc

    @staticmethod
    def _timestamp(value: datetime | None) -> str | None:
        return value.isoformat() if value is not None else None

    async def _put_workflow(self, wf: Workflow, insert: bool) -> None:
        if insert:
            query = "INSERT INTO workflows (tenant_id, trigger_kind, is_active, data, id) VALUES (?, ?, ?, ?, ?)"
        else:
            query = "UPDATE workflows SET tenant_id = ?, trigger_kind = ?, is_active = ?, data = ? WHERE id = ?"
        await asyncio.to_thread(
            self._execute,
            query,
            wf.tenant_id,
            wf.trigger_kind.value,
            int(wf.is_active),
            wf.model_dump_json(),
            wf.id,
        )

    # ------------------------------------------------------------------
    # Store API
    async def create_workflow(self, workflow: Workflow) -> Workflow:
        await self._put_workflow(workflow, insert=True)
        return workflow

    async def get_workflow(self, workflow_id: str, tenant_id: str) -> Workflow | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT data FROM workflows WHERE id = ? AND tenant_id = ?",
            workflow_id,
            tenant_id,
        )
        return Workflow.model_validate_json(row["data"]) if row else None

    async def list_workflows(self, tenant_id: str) -> list[Workflow]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT data FROM workflows WHERE tenant_id = ? ORDER BY rowid",
            tenant_id,
        )
        return [Workflow.model_validate_json(r["data"]) for r in rows]

    async def list_active_workflows(
        self, tenant_id: str, trigger_kind: TriggerKind
    ) -> list[Workflow]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT data FROM workflows WHERE tenant_id = ? AND trigger_kind = ? AND is_active = 1 ORDER BY rowid",
            tenant_id,
            TriggerKind(trigger_kind).value,
        )
        return [Workflow.model_validate_json(r["data"]) for r in rows]

    async def update_workflow(
        self, workflow_id: str, tenant_id: str, patch: dict[str, Any]
    ) -> Workflow:
        wf = await self.get_workflow(workflow_id, tenant_id)
        if wf is None:
            raise WorkflowNotFoundError(f"Workflow {workflow_id} not found")
        updated = apply_workflow_patch(wf, patch)
        await self._put_workflow(updated, insert=False)
        return updated

    async def increment_execution_count(self, workflow_id: str, tenant_id: str) -> None:
        wf = await self.get_workflow(workflow_id, tenant_id)
        if wf is None:
            return
        updated = wf.model_copy(
            update={"execution_count": wf.execution_count + 1, "last_executed_at": utcnow()}
        )
        await self._put_workflow(updated, insert=False)

    # ------------------------------------------------------------------
    async def _put_execution(self, execution: Execution, insert: bool) -> None:
        if insert:
            query = "INSERT INTO executions (tenant_id, workflow_id, status, resume_at, data, id) VALUES (?, ?, ?, ?, ?, ?)"
        else:
            query = "UPDATE executions SET tenant_id = ?, workflow_id = ?, status = ?, resume_at = ?, data = ? WHERE id = ?"
        await asyncio.to_thread(
            self._execute,
            query,
            execution.tenant_id,
            execution.workflow_id,
            execution.status.value,
            self._timestamp(execution.resume_at),
            execution.model_dump_json(),
            execution.id,
        )

    async def create_execution(self, execution: Execution) -> Execution:
        await self._put_execution(execution, insert=True)
        return execution

    async def update_execution(
        self, execution_id: str, tenant_id: str, patch: dict[str, Any]
    ) -> Execution:
        execution = await self.get_execution(execution_id, tenant_id)
        if execution is None:
            raise WorkflowNotFoundError(f"Execution {execution_id} not found")
        updated = apply_execution_patch(execution, patch)
        await self._put_execution(updated, insert=False)
        return updated

    async def get_execution(
        self, execution_id: str, tenant_id: str | None = None
    ) -> Execution | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT tenant_id, data FROM executions WHERE id = ?", execution_id
        )
        if not row or (tenant_id is not None and row["tenant_id"] != tenant_id):
            return None
        return Execution.model_validate_json(row["data"])

    async def list_executions(
        self, workflow_id: str, tenant_id: str, limit: int = DEFAULT_EXECUTION_LIST_LIMIT
    ) -> list[Execution]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT data FROM executions WHERE workflow_id = ? AND tenant_id = ? ORDER BY seq DESC LIMIT ?",
            workflow_id,
            tenant_id,
            limit,
        )
        return [Execution.model_validate_json(r["data"]) for r in rows]

    async def list_due_executions(self, now: datetime) -> list[Execution]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT data FROM executions WHERE status = ? AND resume_at IS NOT NULL ORDER BY seq",
            ExecutionStatus.WAITING.value,
        )
        executions = [Execution.model_validate_json(r["data"]) for r in rows]
        return [e for e in executions if e.resume_at is not None and e.resume_at <= now]

    # ------------------------------------------------------------------
    async def create_execution_step(self, step: ExecutionStep) -> ExecutionStep:
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO execution_steps (id, execution_id, step_index, data) VALUES (?, ?, ?, ?)",
            step.id,
            step.execution_id,
            step.step_index,
            step.model_dump_json(),
        )
        return step

    async def update_execution_step(
        self, step_id: str, patch: dict[str, Any]
    ) -> ExecutionStep:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT data FROM execution_steps WHERE id = ?", step_id
        )
        if not row:
            raise WorkflowNotFoundError(f"Execution step {step_id} not found")
        updated = apply_step_patch(ExecutionStep.model_validate_json(row["data"]), patch)
        await asyncio.to_thread(
            self._execute,
            "UPDATE execution_steps SET data = ? WHERE id = ?",
            updated.model_dump_json(),
            step_id,
        )
        return updated

    async def list_execution_steps(self, execution_id: str) -> list[ExecutionStep]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT data FROM execution_steps WHERE execution_id = ? ORDER BY step_index",
            execution_id,
        )
        return [ExecutionStep.model_validate_json(r["data"]) for r in rows]

    def close(self) -> None:
        self._conn.close()
