"""Store abstraction for workflows and their execution history."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from ..constants import DEFAULT_EXECUTION_LIST_LIMIT, TriggerKind
from ..contracts import Workflow
from ..errors import PersistenceError
from ..utils.clock import utcnow
from .models import Execution, ExecutionStep, StepStatus

# Fields of a workflow that ``update_workflow`` may replace.
WORKFLOW_MUTABLE_FIELDS = frozenset(
    {"name", "description", "is_active", "trigger_kind", "trigger_filter", "steps"}
)


class ExecutionStore(Protocol):
    """Protocol for workflow and execution persistence backends.

    Every method is a single atomic write or read. Backend failures are
    raised as :class:`~hireflow.errors.PersistenceError`.
    """

    async def create_workflow(self, workflow: Workflow) -> Workflow:
        """Persist a new workflow definition."""

    async def get_workflow(self, workflow_id: str, tenant_id: str) -> Workflow | None:
        """Return the workflow if it exists for ``tenant_id``."""

    async def list_workflows(self, tenant_id: str) -> list[Workflow]:
        """Return every workflow owned by ``tenant_id``."""

    async def list_active_workflows(
        self, tenant_id: str, trigger_kind: TriggerKind
    ) -> list[Workflow]:
        """Return active workflows of ``tenant_id`` for ``trigger_kind``."""

    async def update_workflow(
        self, workflow_id: str, tenant_id: str, patch: dict[str, Any]
    ) -> Workflow:
        """Apply ``patch``; a ``steps`` entry replaces the step list wholesale."""

    async def increment_execution_count(self, workflow_id: str, tenant_id: str) -> None:
        """Bump the execution counter and last-executed timestamp."""

    async def create_execution(self, execution: Execution) -> Execution:
        """Persist a new execution record."""

    async def update_execution(
        self, execution_id: str, tenant_id: str, patch: dict[str, Any]
    ) -> Execution:
        """Apply ``patch`` to a non-terminal execution."""

    async def get_execution(
        self, execution_id: str, tenant_id: str | None = None
    ) -> Execution | None:
        """Retrieve an execution, optionally scoped to ``tenant_id``."""

    async def list_executions(
        self, workflow_id: str, tenant_id: str, limit: int = DEFAULT_EXECUTION_LIST_LIMIT
    ) -> list[Execution]:
        """Return the newest executions of a workflow first."""

    async def list_due_executions(self, now: datetime) -> list[Execution]:
        """Return waiting executions whose resume time is at or before ``now``."""

    async def create_execution_step(self, step: ExecutionStep) -> ExecutionStep:
        """Record the start of a step."""

    async def update_execution_step(
        self, step_id: str, patch: dict[str, Any]
    ) -> ExecutionStep:
        """Record the outcome of a running step."""

    async def list_execution_steps(self, execution_id: str) -> list[ExecutionStep]:
        """Return the steps of an execution ordered by index."""


def apply_workflow_patch(workflow: Workflow, patch: dict[str, Any]) -> Workflow:
    """Return ``workflow`` with ``patch`` applied and re-validated."""
    unknown = set(patch) - WORKFLOW_MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update workflow fields: {', '.join(sorted(unknown))}")
    data = workflow.model_dump()
    data.update(patch)
    data["updated_at"] = utcnow()
    return Workflow.model_validate(data)


def apply_execution_patch(execution: Execution, patch: dict[str, Any]) -> Execution:
    """Return ``execution`` with ``patch`` applied; terminal executions are frozen."""
    if execution.status.is_terminal:
        raise PersistenceError(
            f"Execution {execution.id} is already {execution.status.value}"
        )
    return Execution.model_validate({**execution.model_dump(), **patch})


def apply_step_patch(step: ExecutionStep, patch: dict[str, Any]) -> ExecutionStep:
    """Return ``step`` with its single outcome update applied."""
    if step.status != StepStatus.RUNNING:
        raise PersistenceError(
            f"Execution step {step.id} was already recorded as {step.status.value}"
        )
    return ExecutionStep.model_validate({**step.model_dump(), **patch})
