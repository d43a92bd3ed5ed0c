"""Match pipeline events to workflows and queue their executions."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from .collaborators import EntityStore
from .constants import DEFAULT_EXECUTION_TOPIC, TriggerKind
from .context import build_context
from .contracts import ExecutionRequest, Workflow
from .executor import WorkflowExecutor
from .persistence import ExecutionStore
from .persistence.models import ExecutionReport
from .transports import BaseTransport

logger = logging.getLogger(__name__)


class TriggerDispatcher:
    """Service responsible for turning events into queued executions."""

    def __init__(
        self,
        store: ExecutionStore,
        transport: BaseTransport,
        topic: str = DEFAULT_EXECUTION_TOPIC,
        executor: Optional[WorkflowExecutor] = None,
        entities: Optional[EntityStore] = None,
    ) -> None:
        self._store = store
        self._transport = transport
        self._topic = topic
        self._executor = executor or WorkflowExecutor(store)
        self._entities = entities

    async def find_matching_workflows(
        self, event_kind: TriggerKind, payload: Mapping[str, Any], tenant_id: str
    ) -> List[Workflow]:
        """Return the tenant's active workflows that ``event_kind`` should start."""
        candidates = await self._store.list_active_workflows(tenant_id, event_kind)
        return [wf for wf in candidates if wf.matches_event(event_kind, payload)]

    async def trigger_workflows(
        self,
        event_kind: TriggerKind | str,
        payload: Optional[Mapping[str, Any]],
        tenant_id: str,
    ) -> List[str]:
        """Queue one execution request per matching workflow.

        Returns the ids of the published requests. Never raises: lookup and
        publish failures are logged and the affected requests are skipped.
        """
        payload = dict(payload or {})
        try:
            kind = TriggerKind(event_kind)
        except ValueError:
            logger.error(f"Ignoring event with unknown trigger kind {event_kind!r}")
            return []

        try:
            workflows = await self.find_matching_workflows(kind, payload, tenant_id)
        except Exception:
            logger.exception(
                f"Failed to look up workflows for {kind.value} (tenant {tenant_id})"
            )
            return []

        request_ids: List[str] = []
        for workflow in workflows:
            request = ExecutionRequest(
                workflow_id=workflow.id,
                tenant_id=tenant_id,
                event_kind=kind,
                payload=payload,
            )
            try:
                await self._transport.publish(self._topic, request)
            except Exception:
                logger.exception(
                    f"Failed to queue workflow {workflow.id} for {kind.value} "
                    f"(request {request.request_id})"
                )
                continue
            logger.info(
                f"Queued workflow {workflow.id} ({workflow.name}) for {kind.value}, "
                f"request {request.request_id}"
            )
            request_ids.append(request.request_id)
        return request_ids

    async def run_workflow(
        self,
        workflow: Workflow,
        tenant_id: str,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionReport:
        """Build the context for ``payload`` and execute ``workflow`` right away.

        This is the manual/test entry point: unlike :meth:`trigger_workflows`
        it waits for the execution and propagates store errors.
        """
        context = await build_context(payload or {}, tenant_id, self._entities)
        return await self._executor.run(workflow, tenant_id, context)
