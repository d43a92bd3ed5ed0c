import asyncio

import pytest
from typer.testing import CliRunner

from hireflow.actions import ActionServices
from hireflow.cli import app
from hireflow.collaborators import InMemoryChatNotifier, InMemoryEntityStore
from hireflow.config import HireflowConfig
from hireflow.contracts import Workflow
from hireflow.engine import Engine, set_engine
from hireflow.persistence import InMemoryExecutionStore
from hireflow.transports import InMemoryTransport

TENANT = "acme"

runner = CliRunner()


@pytest.fixture
def engine():
    entities = InMemoryEntityStore()
    entities.add_candidate(TENANT, {"id": "c1", "name": "Ada", "email": "ada@example.com"})
    engine = Engine(
        config=HireflowConfig(),
        store=InMemoryExecutionStore(),
        services=ActionServices(entities=entities, chat=InMemoryChatNotifier()),
        transport=InMemoryTransport(),
    )
    set_engine(engine)
    yield engine
    set_engine(None)


def _create(engine, **overrides) -> Workflow:
    data = {
        "tenant_id": TENANT,
        "name": "Hire flow",
        "trigger_kind": "candidate_status_change",
        "steps": [{"type": "update_status", "config": {"status": "hired"}}],
    }
    data.update(overrides)
    return asyncio.run(engine.store.create_workflow(Workflow.model_validate(data)))


def test_actions_list(engine):
    result = runner.invoke(app, ["actions", "list"])
    assert result.exit_code == 0, result.output
    assert "send_email\tSend Email" in result.output
    assert "Config: status*" in result.output


def test_workflow_list_and_show(engine):
    wf = _create(engine)
    result = runner.invoke(app, ["workflow", "list", "--tenant", TENANT])
    assert result.exit_code == 0, result.output
    assert wf.id in result.output
    assert "candidate_status_change" in result.output

    result = runner.invoke(app, ["workflow", "show", wf.id, "--tenant", TENANT])
    assert result.exit_code == 0, result.output
    assert "type: update_status" in result.output

    result = runner.invoke(app, ["workflow", "show", wf.id, "--tenant", "other"])
    assert result.exit_code == 1
    assert "Workflow not found" in result.output


def test_workflow_list_empty(engine):
    result = runner.invoke(app, ["workflow", "list", "--tenant", TENANT])
    assert result.exit_code == 0
    assert "No workflows found" in result.output


def test_workflow_create_from_yaml(engine, tmp_path):
    path = tmp_path / "flow.yaml"
    path.write_text(
        """
name: Ping on interview
trigger_kind: interview_scheduled
steps:
  - type: notify_slack
    config:
      message: "Interview for {{candidate.name}}"
"""
    )
    result = runner.invoke(app, ["workflow", "create", str(path), "--tenant", TENANT])
    assert result.exit_code == 0, result.output
    [wf] = asyncio.run(engine.store.list_workflows(TENANT))
    assert wf.name == "Ping on interview"
    assert f"Created workflow {wf.id}" in result.output


def test_workflow_create_rejects_invalid_definition(engine, tmp_path):
    path = tmp_path / "flow.yaml"
    path.write_text("name: Broken\ntrigger_kind: manual\nsteps: []\n")
    result = runner.invoke(app, ["workflow", "create", str(path), "--tenant", TENANT])
    assert result.exit_code == 1
    assert "Invalid workflow definition" in result.output


def test_workflow_create_from_template(engine):
    result = runner.invoke(
        app, ["workflow", "create", "--template", "assessment_completed", "--tenant", TENANT]
    )
    assert result.exit_code == 0, result.output
    [wf] = asyncio.run(engine.store.list_workflows(TENANT))
    assert wf.name == "Assessment Completed"

    result = runner.invoke(app, ["workflow", "create", "--template", "nope", "--tenant", TENANT])
    assert result.exit_code == 1


def test_workflow_set_active(engine):
    wf = _create(engine)
    result = runner.invoke(app, ["workflow", "set-active", wf.id, "--inactive", "--tenant", TENANT])
    assert result.exit_code == 0, result.output
    assert "is now inactive" in result.output
    assert not asyncio.run(engine.store.get_workflow(wf.id, TENANT)).is_active


def test_workflow_run_and_execution_commands(engine):
    wf = _create(engine)
    result = runner.invoke(
        app,
        ["workflow", "run", wf.id, "--tenant", TENANT, "--context", '{"candidate_id": "c1"}'],
    )
    assert result.exit_code == 0, result.output
    assert ": completed" in result.output
    assert "- [0] update_status: completed" in result.output

    [execution] = asyncio.run(engine.store.list_executions(wf.id, TENANT))
    result = runner.invoke(app, ["execution", "list", wf.id, "--tenant", TENANT])
    assert execution.id in result.output

    result = runner.invoke(app, ["execution", "show", execution.id])
    assert result.exit_code == 0, result.output
    assert f"Execution {execution.id}: completed" in result.output

    result = runner.invoke(app, ["execution", "show", "missing"])
    assert result.exit_code == 1
    assert "Execution not found" in result.output


def test_workflow_run_rejects_bad_context(engine):
    wf = _create(engine)
    result = runner.invoke(app, ["workflow", "run", wf.id, "--tenant", TENANT, "--context", "[1]"])
    assert result.exit_code == 1
    assert "must be a JSON object" in result.output


def test_workflow_trigger(engine):
    _create(engine, trigger_filter={"toStatus": "hired"})
    result = runner.invoke(
        app,
        ["workflow", "trigger", "candidate_status_change", "--tenant", TENANT,
         "--payload", '{"candidate_id": "c1", "toStatus": "hired"}'],
    )
    assert result.exit_code == 0, result.output
    assert "Queued request" in result.output
    assert engine.transport.pending(engine.config.worker.topic) == 1

    result = runner.invoke(
        app,
        ["workflow", "trigger", "candidate_status_change", "--tenant", TENANT,
         "--payload", '{"toStatus": "rejected"}'],
    )
    assert "No matching workflows" in result.output

    result = runner.invoke(app, ["workflow", "trigger", "candidate_deleted", "--tenant", TENANT])
    assert result.exit_code == 1
