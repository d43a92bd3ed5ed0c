"""In-memory implementation of the execution store."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

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


class InMemoryExecutionStore(ExecutionStore):
    """Store workflows and execution history in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts, so suspended executions are lost.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, Workflow] = {}
        self._executions: Dict[str, Execution] = {}
        self._execution_order: List[str] = []
        self._steps: Dict[str, ExecutionStep] = {}

    # ------------------------------------------------------------------
    async def create_workflow(self, workflow: Workflow) -> Workflow:
        self._workflows[workflow.id] = workflow
        return workflow

    async def get_workflow(self, workflow_id: str, tenant_id: str) -> Workflow | None:
        wf = self._workflows.get(workflow_id)
        if wf is None or wf.tenant_id != tenant_id:
            return None
        return wf

    async def list_workflows(self, tenant_id: str) -> list[Workflow]:
        return [wf for wf in self._workflows.values() if wf.tenant_id == tenant_id]

    async def list_active_workflows(
        self, tenant_id: str, trigger_kind: TriggerKind
    ) -> list[Workflow]:
        return [
            wf
            for wf in self._workflows.values()
            if wf.tenant_id == tenant_id and wf.is_active and wf.trigger_kind == trigger_kind
        ]

    async def update_workflow(
        self, workflow_id: str, tenant_id: str, patch: dict[str, Any]
    ) -> Workflow:
        wf = await self.get_workflow(workflow_id, tenant_id)
        if wf is None:
            raise WorkflowNotFoundError(f"Workflow {workflow_id} not found")
        updated = apply_workflow_patch(wf, patch)
        self._workflows[workflow_id] = updated
        return updated

    async def increment_execution_count(self, workflow_id: str, tenant_id: str) -> None:
        wf = await self.get_workflow(workflow_id, tenant_id)
        if wf is None:
            return
        self._workflows[workflow_id] = wf.model_copy(
            update={"execution_count": wf.execution_count + 1, "last_executed_at": utcnow()}
        )

    # ------------------------------------------------------------------
    async def create_execution(self, execution: Execution) -> Execution:
        self._executions[execution.id] = execution
        self._execution_order.append(execution.id)
        return execution

    async def update_execution(
        self, execution_id: str, tenant_id: str, patch: dict[str, Any]
    ) -> Execution:
        execution = await self.get_execution(execution_id, tenant_id)
        if execution is None:
            raise WorkflowNotFoundError(f"Execution {execution_id} not found")
        updated = apply_execution_patch(execution, patch)
        self._executions[execution_id] = updated
        return updated

    async def get_execution(
        self, execution_id: str, tenant_id: str | None = None
    ) -> Execution | None:
        execution = self._executions.get(execution_id)
        if execution is None or (tenant_id is not None and execution.tenant_id != tenant_id):
            return None
        return execution

    async def list_executions(
        self, workflow_id: str, tenant_id: str, limit: int = DEFAULT_EXECUTION_LIST_LIMIT
    ) -> list[Execution]:
        matches = [
            self._executions[eid]
            for eid in reversed(self._execution_order)
            if self._executions[eid].workflow_id == workflow_id
            and self._executions[eid].tenant_id == tenant_id
        ]
        return matches[:limit]

    async def list_due_executions(self, now: datetime) -> list[Execution]:
        return [
            self._executions[eid]
            for eid in self._execution_order
            if self._executions[eid].status == ExecutionStatus.WAITING
            and self._executions[eid].resume_at is not None
            and self._executions[eid].resume_at <= now
        ]

    # ------------------------------------------------------------------
    async def create_execution_step(self, step: ExecutionStep) -> ExecutionStep:
        for existing in self._steps.values():
            if (
                existing.execution_id == step.execution_id
                and existing.step_index == step.step_index
            ):
                raise PersistenceError(
                    f"Step {step.step_index} already recorded for execution {step.execution_id}"
                )
        self._steps[step.id] = step
        return step

    async def update_execution_step(
        self, step_id: str, patch: dict[str, Any]
    ) -> ExecutionStep:
        step = self._steps.get(step_id)
        if step is None:
            raise WorkflowNotFoundError(f"Execution step {step_id} not found")
        updated = apply_step_patch(step, patch)
        self._steps[step_id] = updated
        return updated

    async def list_execution_steps(self, execution_id: str) -> list[ExecutionStep]:
        steps = [s for s in self._steps.values() if s.execution_id == execution_id]
        return sorted(steps, key=lambda s: s.step_index)
