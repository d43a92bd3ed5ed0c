"""Wire the engine's components together from configuration."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Mapping, Optional

from .actions import ActionMetadata, ActionServices, build_registry
from .collaborators import InMemoryChatNotifier
from .config import HireflowConfig, load_config
from .constants import TriggerKind
from .contracts import Workflow
from .dispatch import TriggerDispatcher
from .executor import WorkflowExecutor
from .persistence import ExecutionStore, get_store
from .persistence.models import ExecutionReport
from .scheduler import WaitScheduler
from .slack import SlackWebhookNotifier
from .transports import BaseTransport, get_transport
from .worker import ExecutionWorker, WorkerPool

logger = logging.getLogger(__name__)


class Engine:
    """One fully wired workflow engine: store, actions, queue, workers, scheduler."""

    def __init__(
        self,
        config: Optional[HireflowConfig] = None,
        store: Optional[ExecutionStore] = None,
        services: Optional[ActionServices] = None,
        transport: Optional[BaseTransport] = None,
    ) -> None:
        self.config = config or load_config()
        self.store = store or get_store(config=self.config)
        self.services = services or self._default_services()
        self.registry = build_registry(self.services)
        self.transport = transport or get_transport(config=self.config)
        self.executor = WorkflowExecutor(self.store, self.registry)
        topic = self.config.worker.topic
        self.dispatcher = TriggerDispatcher(
            self.store,
            self.transport,
            topic=topic,
            executor=self.executor,
            entities=self.services.entities,
        )
        self.worker = ExecutionWorker(
            self.transport,
            self.executor,
            self.store,
            entities=self.services.entities,
            topic=topic,
        )
        self.pool = WorkerPool(self.worker, self.config.worker.concurrency)
        self.scheduler = WaitScheduler(
            self.store, self.executor, self.config.scheduler.poll_interval
        )

    def _default_services(self) -> ActionServices:
        webhook_url = self.config.slack.webhook_url
        if webhook_url:
            return ActionServices(chat=SlackWebhookNotifier(webhook_url))
        logger.info("No Slack webhook configured; chat notifications stay in memory")
        return ActionServices(chat=InMemoryChatNotifier())

    async def execute_workflow(
        self,
        workflow: Workflow,
        tenant_id: str,
        initial_context: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionReport:
        """Run ``workflow`` now and return its execution with step history."""
        return await self.executor.run(workflow, tenant_id, initial_context)

    async def run_workflow(
        self,
        workflow: Workflow,
        tenant_id: str,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionReport:
        """Like :meth:`execute_workflow`, hydrating entities referenced by id first."""
        return await self.dispatcher.run_workflow(workflow, tenant_id, payload)

    async def trigger_workflows(
        self,
        event_kind: TriggerKind | str,
        payload: Optional[Mapping[str, Any]],
        tenant_id: str,
    ) -> List[str]:
        """Queue executions for every workflow the event matches."""
        return await self.dispatcher.trigger_workflows(event_kind, payload, tenant_id)

    def list_available_actions(self) -> List[ActionMetadata]:
        return self.registry.list_available_actions()

    async def run_workers(self, lifespan: Optional[float] = None) -> None:
        """Consume the execution queue and resume waiting executions."""
        await self.transport.connect()
        try:
            await asyncio.gather(self.pool.run(lifespan), self.scheduler.run(lifespan))
        finally:
            await self.transport.disconnect()


_engine_instance: Engine | None = None


def get_engine(config: Optional[HireflowConfig] = None) -> Engine:
    """Return the process-wide engine, building it from ``config`` on first use."""
    global _engine_instance
    if _engine_instance is None or config is not None:
        _engine_instance = Engine(config)
    return _engine_instance


def set_engine(engine: Optional[Engine]) -> None:
    """Replace (or with ``None`` forget) the process-wide engine."""
    global _engine_instance
    _engine_instance = engine


async def execute_workflow(
    workflow: Workflow,
    tenant_id: str,
    initial_context: Optional[Mapping[str, Any]] = None,
) -> ExecutionReport:
    return await get_engine().execute_workflow(workflow, tenant_id, initial_context)


async def trigger_workflows(
    event_kind: TriggerKind | str,
    payload: Optional[Mapping[str, Any]],
    tenant_id: str,
) -> List[str]:
    return await get_engine().trigger_workflows(event_kind, payload, tenant_id)


def list_available_actions() -> List[ActionMetadata]:
    return get_engine().list_available_actions()
