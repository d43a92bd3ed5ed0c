"""Queue consumers that run triggered executions."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .collaborators import EntityStore
from .constants import DEFAULT_EXECUTION_TOPIC
from .context import build_context
from .contracts import ExecutionRequest, Workflow
from .executor import WorkflowExecutor
from .persistence import ExecutionStore
from .persistence.models import ExecutionReport
from .transports import BaseTransport
from .utils.retry import schedule_retry

logger = logging.getLogger(__name__)


class ExecutionWorker:
    """Executes workflows by listening to execution requests on a transport."""

    def __init__(
        self,
        transport: BaseTransport,
        executor: WorkflowExecutor,
        store: ExecutionStore,
        entities: Optional[EntityStore] = None,
        topic: str = DEFAULT_EXECUTION_TOPIC,
    ) -> None:
        self._transport = transport
        self._executor = executor
        self._store = store
        self._entities = entities
        self._topic = topic
        self.processed = 0

    async def handle(self, request: ExecutionRequest) -> Optional[ExecutionReport]:
        """Run the workflow named by ``request``."""
        workflow = await self._lookup(request)
        if workflow is None:
            return None
        return await self._run(workflow, request)

    async def _lookup(self, request: ExecutionRequest) -> Optional[Workflow]:
        workflow = await self._store.get_workflow(request.workflow_id, request.tenant_id)
        if workflow is None:
            logger.warning(
                f"Workflow {request.workflow_id} for request {request.request_id} no longer exists"
            )
        return workflow

    async def _run(self, workflow: Workflow, request: ExecutionRequest) -> ExecutionReport:
        context = await build_context(request.payload, request.tenant_id, self._entities)
        return await self._executor.run(workflow, request.tenant_id, context)

    async def start(self, lifespan: Optional[float] = None) -> None:
        """Consume requests until ``lifespan`` seconds have passed (forever if None).

        If the workflow cannot be loaded because the store failed, no
        execution exists yet, so the request is nacked for redelivery and the
        loop backs off. Once an execution has started, any failure is logged
        and the request acknowledged: the execution record holds the failure.
        """
        lookup_failures = 0
        async for raw_message, request in self._transport.subscribe(
            self._topic, lifespan=lifespan
        ):
            try:
                workflow = await self._lookup(request)
            except Exception:
                lookup_failures += 1
                logger.exception(
                    f"Could not load workflow {request.workflow_id} for request "
                    f"{request.request_id}, requeueing"
                )
                await self._transport.nack(raw_message, requeue=True)
                await schedule_retry(lookup_failures)
                continue

            lookup_failures = 0
            try:
                if workflow is not None:
                    await self._run(workflow, request)
            except Exception:
                logger.exception(
                    f"Execution request {request.request_id} for workflow "
                    f"{request.workflow_id} failed"
                )
            finally:
                self.processed += 1
                await self._transport.ack(raw_message)


class WorkerPool:
    """Run ``concurrency`` supervised copies of an :class:`ExecutionWorker` loop.

    A loop that crashes (for example because the broker connection dropped)
    is restarted after an exponential backoff.
    """

    def __init__(self, worker: ExecutionWorker, concurrency: int = 4) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._worker = worker
        self._concurrency = concurrency

    async def run(self, lifespan: Optional[float] = None) -> None:
        logger.info(f"Starting {self._concurrency} execution workers")
        await asyncio.gather(
            *(self._supervise(slot, lifespan) for slot in range(self._concurrency))
        )

    async def _supervise(self, slot: int, lifespan: Optional[float]) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + lifespan if lifespan is not None else None
        attempt = 0
        while True:
            remaining = deadline - loop.time() if deadline is not None else None
            if remaining is not None and remaining <= 0:
                return
            try:
                await self._worker.start(lifespan=remaining)
                return
            except Exception:
                attempt += 1
                logger.exception(f"Worker {slot} crashed, restarting (attempt {attempt})")
                await schedule_retry(attempt)
