import pytest

import hireflow.engine as engine_module
from hireflow.collaborators import InMemoryChatNotifier
from hireflow.config import HireflowConfig
from hireflow.contracts import Workflow
from hireflow.engine import Engine, get_engine, set_engine
from hireflow.persistence import (
    ExecutionStatus,
    InMemoryExecutionStore,
    SQLiteExecutionStore,
    reset_store,
)
from hireflow.slack import SlackWebhookNotifier
from hireflow.transports import InMemoryTransport


@pytest.fixture(autouse=True)
def _reset_globals():
    reset_store()
    set_engine(None)
    yield
    reset_store()
    set_engine(None)


def test_engine_wires_backends_from_config(tmp_path):
    config = HireflowConfig.model_validate(
        {
            "database_url": f"sqlite://{tmp_path / 'engine.db'}",
            "slack": {"webhook_url": "https://hooks.slack.test/abc"},
        }
    )
    engine = get_engine(config)
    assert isinstance(engine.store, SQLiteExecutionStore)
    assert isinstance(engine.services.chat, SlackWebhookNotifier)
    assert isinstance(engine.transport, InMemoryTransport)
    assert get_engine() is engine


def test_engine_without_webhook_keeps_chat_in_memory():
    engine = Engine(config=HireflowConfig(), store=InMemoryExecutionStore())
    assert isinstance(engine.services.chat, InMemoryChatNotifier)
    assert [a.kind for a in engine.list_available_actions()][-1] == "condition"


@pytest.mark.asyncio
async def test_module_level_helpers_use_process_engine():
    engine = Engine(config=HireflowConfig(), store=InMemoryExecutionStore())
    set_engine(engine)
    wf = await engine.store.create_workflow(
        Workflow(
            tenant_id="acme",
            name="Manual",
            trigger_kind="manual",
            steps=[{"type": "wait", "config": {"duration": 0}}],
        )
    )

    report = await engine_module.execute_workflow(wf, "acme", {})
    assert report.execution.status == ExecutionStatus.COMPLETED

    request_ids = await engine_module.trigger_workflows("manual", {}, "acme")
    assert len(request_ids) == 1

    await engine.run_workers(lifespan=0.2)
    assert engine.worker.processed == 1
    assert (await engine.store.get_workflow(wf.id, "acme")).execution_count == 2
