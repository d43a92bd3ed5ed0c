"""Sequential workflow executor with per-step failure isolation."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from pydantic_core import to_jsonable_python

from .actions import ActionRegistry, get_registry
from .constants import ActionKind
from .context import restore_context, snapshot_context, trigger_entity
from .contracts import Step, Workflow
from .errors import HireflowError, PersistenceError, WorkflowNotFoundError
from .persistence import ExecutionStore, get_store
from .persistence.models import (
    Execution,
    ExecutionReport,
    ExecutionStatus,
    ExecutionStep,
    StepStatus,
)
from .utils.clock import utcnow

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    return to_jsonable_python(value, fallback=str)


class WorkflowExecutor:
    """Run a workflow's steps in order, recording every outcome.

    A step that fails (unknown kind, invalid config, collaborator failure,
    bad condition) is recorded as failed and the next step still runs. Only
    an error escaping that boundary, in practice a store failure, aborts the
    execution: it is marked failed where possible and re-raised.
    """

    def __init__(
        self,
        store: ExecutionStore | None = None,
        registry: ActionRegistry | None = None,
    ) -> None:
        self._store = store or get_store()
        self._registry = registry or get_registry()

    @property
    def store(self) -> ExecutionStore:
        return self._store

    async def run(
        self,
        workflow: Workflow,
        tenant_id: str,
        initial_context: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionReport:
        """Execute ``workflow`` from its first step."""
        context: Dict[str, Any] = dict(initial_context or {})
        entity_type, entity_id = trigger_entity(context)
        snapshot, context_types = snapshot_context(context)
        execution = await self._store.create_execution(
            Execution(
                tenant_id=tenant_id,
                workflow_id=workflow.id,
                trigger_entity_type=entity_type,
                trigger_entity_id=entity_id,
                context=snapshot,
                context_types=context_types,
            )
        )
        logger.info(
            f"Starting execution {execution.id} of workflow {workflow.id} ({workflow.name})"
        )
        return await self._drive(workflow, execution, context, start=0)

    async def resume(
        self, execution_id: str, tenant_id: Optional[str] = None
    ) -> ExecutionReport:
        """Continue a waiting execution after its ``resume_at`` passed."""
        execution = await self._store.get_execution(execution_id, tenant_id)
        if execution is None:
            raise WorkflowNotFoundError(f"Execution {execution_id} not found")
        if execution.status != ExecutionStatus.WAITING:
            logger.info(
                f"Execution {execution_id} is {execution.status.value}, nothing to resume"
            )
            return await self._report(execution)

        workflow = await self._store.get_workflow(execution.workflow_id, execution.tenant_id)
        if workflow is None:
            error = WorkflowNotFoundError(f"Workflow {execution.workflow_id} not found")
            await self._mark_failed(execution, error)
            raise error

        execution = await self._store.update_execution(
            execution.id,
            execution.tenant_id,
            {"status": ExecutionStatus.RUNNING, "resume_at": None},
        )
        start = execution.next_step_index or 0
        logger.info(f"Resuming execution {execution.id} at step {start}")
        context = restore_context(execution.context, execution.context_types)
        return await self._drive(workflow, execution, context, start=start)

    # ------------------------------------------------------------------
    async def _drive(
        self,
        workflow: Workflow,
        execution: Execution,
        context: Dict[str, Any],
        start: int,
    ) -> ExecutionReport:
        tenant_id = execution.tenant_id
        try:
            for index in range(start, len(workflow.steps)):
                resume_at = await self._run_step(
                    workflow, execution, index, workflow.steps[index], context
                )
                if resume_at is not None:
                    execution = await self._store.update_execution(
                        execution.id,
                        tenant_id,
                        {
                            "status": ExecutionStatus.WAITING,
                            "resume_at": resume_at,
                            "next_step_index": index + 1,
                        },
                    )
                    logger.info(
                        f"Execution {execution.id} waiting until {resume_at.isoformat()}"
                    )
                    return await self._report(execution)

            execution = await self._store.update_execution(
                execution.id,
                tenant_id,
                {
                    "status": ExecutionStatus.COMPLETED,
                    "completed_at": utcnow(),
                    "next_step_index": None,
                },
            )
            await self._store.increment_execution_count(workflow.id, tenant_id)
        except Exception as exc:
            logger.exception(f"Execution {execution.id} of workflow {workflow.id} aborted")
            await self._mark_failed(execution, exc)
            raise

        logger.info(f"Execution {execution.id} completed")
        return await self._report(execution)

    async def _run_step(
        self,
        workflow: Workflow,
        execution: Execution,
        index: int,
        step: Step,
        context: Dict[str, Any],
    ) -> Optional[datetime]:
        """Run one top-level step; return the resume time if it suspends."""
        config = self._registry.materialize(step, context)
        record = await self._store.create_execution_step(
            ExecutionStep(
                execution_id=execution.id,
                step_index=index,
                action_kind=step.kind,
                action_config=_jsonable(config),
            )
        )
        try:
            result = await self._registry.dispatch_step(
                step, context, execution.tenant_id, materialized=config
            )
        except PersistenceError:
            raise
        except Exception as exc:
            logger.warning(
                f"[Workflow {workflow.id}] Step {index} ({step.kind}) failed: {exc}"
            )
            await self._store.update_execution_step(
                record.id,
                {
                    "status": StepStatus.FAILED,
                    "error_message": str(exc),
                    "completed_at": utcnow(),
                },
            )
            return None

        await self._store.update_execution_step(
            record.id,
            {
                "status": StepStatus.COMPLETED,
                "result": _jsonable(result),
                "completed_at": utcnow(),
            },
        )
        if step.kind != ActionKind.WAIT.value:
            return None
        resume_at = result.get("resume_at")
        return resume_at if isinstance(resume_at, datetime) else None

    async def _mark_failed(self, execution: Execution, exc: BaseException) -> None:
        try:
            await self._store.update_execution(
                execution.id,
                execution.tenant_id,
                {
                    "status": ExecutionStatus.FAILED,
                    "error_message": str(exc),
                    "completed_at": utcnow(),
                },
            )
        except HireflowError as store_exc:
            logger.error(
                f"Could not record failure of execution {execution.id}: {store_exc}"
            )

    async def _report(self, execution: Execution) -> ExecutionReport:
        steps = await self._store.list_execution_steps(execution.id)
        return ExecutionReport(execution=execution, steps=steps)
