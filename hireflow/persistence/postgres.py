"""PostgreSQL implementation of the execution store."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

import asyncpg

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


def _load(value: Any) -> Any:
    # asyncpg returns JSONB columns as text unless a codec is registered.
    return json.loads(value) if isinstance(value, str) else value


class PostgresExecutionStore(ExecutionStore):
    """Persist workflows and execution history using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        try:
            conn = await asyncpg.connect(self._dsn)
            if not self._initialized:
                await self._ensure_schema(conn)
                self._initialized = True
        except (asyncpg.PostgresError, OSError) as exc:
            raise PersistenceError(f"Cannot connect to Postgres: {exc}") from exc
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                seq BIGSERIAL,
                id TEXT PRIMARY KEY,
                tenant_id TEXT NOT NULL,
                trigger_kind TEXT NOT NULL,
                is_active BOOLEAN NOT NULL,
                data JSONB NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS executions (
                seq BIGSERIAL,
                id TEXT PRIMARY KEY,
                tenant_id TEXT NOT NULL,
                workflow_id TEXT NOT NULL,
                status TEXT NOT NULL,
                resume_at TIMESTAMPTZ,
                data JSONB NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS execution_steps (
                id TEXT PRIMARY KEY,
                execution_id TEXT NOT NULL,
                step_index INTEGER NOT NULL,
                data JSONB NOT NULL,
                UNIQUE (execution_id, step_index)
            )
            """
        )

    async def _execute(self, query: str, *params: Any) -> None:
        conn = await self._connect()
        try:
            await conn.execute(query, *params)
        except asyncpg.PostgresError as exc:
            raise PersistenceError(f"Postgres write failed: {exc}") from exc
        finally:
            await conn.close()

    async def _fetch(self, query: str, *params: Any) -> list[asyncpg.Record]:
        conn = await self._connect()
        try:
            return await conn.fetch(query, *params)
        except asyncpg.PostgresError as exc:
            raise PersistenceError(f"Postgres read failed: {exc}") from exc
        finally:
            await conn.close()

    async def _fetchrow(self, query: str, *params: Any) -> asyncpg.Record | None:
        rows = await self._fetch(query, *params)
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    async def _put_workflow(self, wf: Workflow) -> None:
        await self._execute(
            """
            INSERT INTO workflows (id, tenant_id, trigger_kind, is_active, data)
            VALUES ($1, $2, $3, $4, $5::jsonb)
            ON CONFLICT (id) DO UPDATE SET
                tenant_id = EXCLUDED.tenant_id,
                trigger_kind = EXCLUDED.trigger_kind,
                is_active = EXCLUDED.is_active,
                data = EXCLUDED.data
            """,
            wf.id,
            wf.tenant_id,
            wf.trigger_kind.value,
            wf.is_active,
            wf.model_dump_json(),
        )

    async def create_workflow(self, workflow: Workflow) -> Workflow:
        await self._execute(
            "INSERT INTO workflows (id, tenant_id, trigger_kind, is_active, data) VALUES ($1, $2, $3, $4, $5::jsonb)",
            workflow.id,
            workflow.tenant_id,
            workflow.trigger_kind.value,
            workflow.is_active,
            workflow.model_dump_json(),
        )
        return workflow

    async def get_workflow(self, workflow_id: str, tenant_id: str) -> Workflow | None:
        row = await self._fetchrow(
            "SELECT data FROM workflows WHERE id = $1 AND tenant_id = $2",
            workflow_id,
            tenant_id,
        )
        return Workflow.model_validate(_load(row["data"])) if row else None

    async def list_workflows(self, tenant_id: str) -> list[Workflow]:
        rows = await self._fetch(
            "SELECT data FROM workflows WHERE tenant_id = $1 ORDER BY seq", tenant_id
        )
        return [Workflow.model_validate(_load(r["data"])) for r in rows]

    async def list_active_workflows(
        self, tenant_id: str, trigger_kind: TriggerKind
    ) -> list[Workflow]:
        rows = await self._fetch(
            "SELECT data FROM workflows WHERE tenant_id = $1 AND trigger_kind = $2 AND is_active ORDER BY seq",
            tenant_id,
            TriggerKind(trigger_kind).value,
        )
        return [Workflow.model_validate(_load(r["data"])) for r in rows]

    async def update_workflow(
        self, workflow_id: str, tenant_id: str, patch: dict[str, Any]
    ) -> Workflow:
        wf = await self.get_workflow(workflow_id, tenant_id)
        if wf is None:
            raise WorkflowNotFoundError(f"Workflow {workflow_id} not found")
        updated = apply_workflow_patch(wf, patch)
        await self._put_workflow(updated)
        return updated

    async def increment_execution_count(self, workflow_id: str, tenant_id: str) -> None:
        # Done in one statement so concurrent executions do not lose updates.
        await self._execute(
            """
            UPDATE workflows
            SET data = jsonb_set(
                jsonb_set(data, '{execution_count}', to_jsonb(COALESCE((data->>'execution_count')::int, 0) + 1)),
                '{last_executed_at}', to_jsonb($3::text)
            )
            WHERE id = $1 AND tenant_id = $2
            """,
            workflow_id,
            tenant_id,
            utcnow().isoformat(),
        )

    # ------------------------------------------------------------------
    async def create_execution(self, execution: Execution) -> Execution:
        await self._execute(
            """
            INSERT INTO executions (id, tenant_id, workflow_id, status, resume_at, data)
            VALUES ($1, $2, $3, $4, $5, $6::jsonb)
            """,
            execution.id,
            execution.tenant_id,
            execution.workflow_id,
            execution.status.value,
            execution.resume_at,
            execution.model_dump_json(),
        )
        return execution

    async def update_execution(
        self, execution_id: str, tenant_id: str, patch: dict[str, Any]
    ) -> Execution:
        execution = await self.get_execution(execution_id, tenant_id)
        if execution is None:
            raise WorkflowNotFoundError(f"Execution {execution_id} not found")
        updated = apply_execution_patch(execution, patch)
        await self._execute(
            "UPDATE executions SET status = $1, resume_at = $2, data = $3::jsonb WHERE id = $4",
            updated.status.value,
            updated.resume_at,
            updated.model_dump_json(),
            execution_id,
        )
        return updated

    async def get_execution(
        self, execution_id: str, tenant_id: str | None = None
    ) -> Execution | None:
        row = await self._fetchrow(
            "SELECT tenant_id, data FROM executions WHERE id = $1", execution_id
        )
        if not row or (tenant_id is not None and row["tenant_id"] != tenant_id):
            return None
        return Execution.model_validate(_load(row["data"]))

    async def list_executions(
        self, workflow_id: str, tenant_id: str, limit: int = DEFAULT_EXECUTION_LIST_LIMIT
    ) -> list[Execution]:
        rows = await self._fetch(
            "SELECT data FROM executions WHERE workflow_id = $1 AND tenant_id = $2 ORDER BY seq DESC LIMIT $3",
            workflow_id,
            tenant_id,
            limit,
        )
        return [Execution.model_validate(_load(r["data"])) for r in rows]

    async def list_due_executions(self, now: datetime) -> list[Execution]:
        rows = await self._fetch(
            "SELECT data FROM executions WHERE status = $1 AND resume_at <= $2 ORDER BY seq",
            ExecutionStatus.WAITING.value,
            now,
        )
        return [Execution.model_validate(_load(r["data"])) for r in rows]

    # ------------------------------------------------------------------
    async def create_execution_step(self, step: ExecutionStep) -> ExecutionStep:
        await self._execute(
            "INSERT INTO execution_steps (id, execution_id, step_index, data) VALUES ($1, $2, $3, $4::jsonb)",
            step.id,
            step.execution_id,
            step.step_index,
            step.model_dump_json(),
        )
        return step

    async def update_execution_step(
        self, step_id: str, patch: dict[str, Any]
    ) -> ExecutionStep:
        row = await self._fetchrow("SELECT data FROM execution_steps WHERE id = $1", step_id)
        if not row:
            raise WorkflowNotFoundError(f"Execution step {step_id} not found")
        updated = apply_step_patch(ExecutionStep.model_validate(_load(row["data"])), patch)
        await self._execute(
            "UPDATE execution_steps SET data = $1::jsonb WHERE id = $2",
            updated.model_dump_json(),
            step_id,
        )
        return updated

    async def list_execution_steps(self, execution_id: str) -> list[ExecutionStep]:
        rows = await self._fetch(
            "SELECT data FROM execution_steps WHERE execution_id = $1 ORDER BY step_index",
            execution_id,
        )
        return [ExecutionStep.model_validate(_load(r["data"])) for r in rows]
