"""Command line interface for operating the workflow engine."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError

from hireflow.config import load_config
from hireflow.constants import DEFAULT_EXECUTION_LIST_LIMIT, TriggerKind
from hireflow.contracts import Workflow
from hireflow.engine import get_engine
from hireflow.errors import HireflowError
from hireflow.persistence.models import ExecutionReport
from hireflow.presets import WORKFLOW_TEMPLATES, workflow_from_template

app = typer.Typer(help="CLI for hireflow workflow automation")

# Command groups
actions_app = typer.Typer(help="Inspect available workflow actions")
workflow_app = typer.Typer(help="Commands for managing workflows")
execution_app = typer.Typer(help="Inspect workflow executions")
worker_app = typer.Typer(help="Run execution workers")

app.add_typer(actions_app, name="actions")
app.add_typer(workflow_app, name="workflow")
app.add_typer(execution_app, name="execution")
app.add_typer(worker_app, name="worker")

TenantOption = typer.Option(..., "--tenant", "-t", envvar="HIREFLOW_TENANT", help="Tenant id")


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to a YAML configuration file"
    ),
) -> None:
    """hireflow CLI entry point."""
    cfg = load_config(str(config) if config else None)
    logging.basicConfig(
        level=cfg.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if config is not None:
        get_engine(cfg)


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _parse_json(value: Optional[str], option: str) -> dict:
    if not value:
        return {}
    try:
        data = json.loads(value)
    except json.JSONDecodeError as exc:
        _fail(f"{option} is not valid JSON: {exc}")
    if not isinstance(data, dict):
        _fail(f"{option} must be a JSON object")
    return data


def _echo_report(report: ExecutionReport) -> None:
    execution = report.execution
    typer.echo(f"Execution {execution.id}: {execution.status.value}")
    if execution.error_message:
        typer.echo(f"Error: {execution.error_message}")
    if execution.resume_at:
        typer.echo(f"Resumes at: {execution.resume_at.isoformat()}")
    for step in report.steps:
        line = f"- [{step.step_index}] {step.action_kind}: {step.status.value}"
        if step.error_message:
            line += f" ({step.error_message})"
        typer.echo(line)


# ----------------------------------------------------------------------
# actions


@actions_app.command("list")
def actions_list() -> None:
    """
    List the action kinds a workflow step can use.

    Example:
        hireflow actions list
        # Output: send_email    Send Email    Send an email to candidate or team member
    """
    for meta in get_engine().list_available_actions():
        fields = ", ".join(
            f"{f.name}{'*' if f.required else ''}" for f in meta.config_fields
        )
        typer.echo(f"{meta.kind}\t{meta.name}\t{meta.description}")
        typer.echo(f"  Config: {fields or '(none)'}")


# ----------------------------------------------------------------------
# workflow


@workflow_app.command("list")
def workflow_list(tenant: str = TenantOption) -> None:
    """
    List a tenant's workflows with trigger and run count.

    Example:
        hireflow workflow list --tenant acme
        # Output: 3f2c...    active    candidate_status_change    4    Assessment Completed
    """
    workflows = asyncio.run(get_engine().store.list_workflows(tenant))
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        state = "active" if wf.is_active else "inactive"
        typer.echo(
            f"{wf.id}\t{state}\t{wf.trigger_kind.value}\t{wf.execution_count}\t{wf.name}"
        )


@workflow_app.command("show")
def workflow_show(workflow_id: str, tenant: str = TenantOption) -> None:
    """Show a workflow definition as YAML."""
    wf = asyncio.run(get_engine().store.get_workflow(workflow_id, tenant))
    if wf is None:
        _fail("Workflow not found")
    typer.echo(yaml.safe_dump(wf.model_dump(mode="json", by_alias=True), sort_keys=False))


@workflow_app.command("templates")
def workflow_templates() -> None:
    """List the starter workflow templates."""
    for template in WORKFLOW_TEMPLATES:
        typer.echo(f"{template['id']}\t{template['trigger_kind']}\t{template['name']}")


@workflow_app.command("create")
def workflow_create(
    path: Optional[Path] = typer.Argument(None, help="YAML workflow definition"),
    template: Optional[str] = typer.Option(None, help="Starter template id"),
    name: Optional[str] = typer.Option(None, help="Override the workflow name"),
    tenant: str = TenantOption,
) -> None:
    """
    Create a workflow from a YAML file or a starter template.

    Example:
        hireflow workflow create onboarding.yaml --tenant acme
        hireflow workflow create --template assessment_completed --tenant acme
    """
    if (path is None) == (template is None):
        _fail("Provide exactly one of PATH or --template")
    try:
        if template is not None:
            wf = workflow_from_template(template, tenant, name=name)
        else:
            if not path.exists():
                _fail("Specified path does not exist")
            data = yaml.safe_load(path.read_text()) or {}
            if name:
                data["name"] = name
            wf = Workflow.model_validate({**data, "tenant_id": tenant})
    except ValidationError as exc:
        _fail(f"Invalid workflow definition:\n{exc}")
    except HireflowError as exc:
        _fail(str(exc))
    asyncio.run(get_engine().store.create_workflow(wf))
    typer.echo(f"Created workflow {wf.id}")


@workflow_app.command("set-active")
def workflow_set_active(
    workflow_id: str,
    active: bool = typer.Option(True, "--active/--inactive"),
    tenant: str = TenantOption,
) -> None:
    """Enable or disable a workflow."""
    try:
        wf = asyncio.run(
            get_engine().store.update_workflow(workflow_id, tenant, {"is_active": active})
        )
    except HireflowError as exc:
        _fail(str(exc))
    typer.echo(f"Workflow {wf.id} is now {'active' if wf.is_active else 'inactive'}")


@workflow_app.command("run")
def workflow_run(
    workflow_id: str,
    tenant: str = TenantOption,
    context: Optional[str] = typer.Option(None, help="JSON object used as the trigger payload"),
) -> None:
    """
    Run a workflow immediately and print the per-step outcome.

    Example:
        hireflow workflow run 3f2c... --tenant acme --context '{"candidate_id": "42"}'
    """
    payload = _parse_json(context, "--context")
    engine = get_engine()

    async def _run() -> ExecutionReport:
        wf = await engine.store.get_workflow(workflow_id, tenant)
        if wf is None:
            raise HireflowError("Workflow not found")
        return await engine.run_workflow(wf, tenant, payload)

    try:
        report = asyncio.run(_run())
    except HireflowError as exc:
        _fail(str(exc))
    _echo_report(report)


@workflow_app.command("trigger")
def workflow_trigger(
    event: str,
    tenant: str = TenantOption,
    payload: Optional[str] = typer.Option(None, help="JSON event payload"),
) -> None:
    """
    Queue executions for every workflow matching an event.

    Example:
        hireflow workflow trigger candidate_status_change --tenant acme \\
            --payload '{"candidate_id": "42", "fromStatus": "new", "toStatus": "hired"}'
    """
    if event not in {kind.value for kind in TriggerKind}:
        _fail(f"Unknown event kind: {event}")
    data = _parse_json(payload, "--payload")
    request_ids = asyncio.run(get_engine().trigger_workflows(event, data, tenant))
    if not request_ids:
        typer.echo("No matching workflows")
        return
    for request_id in request_ids:
        typer.echo(f"Queued request {request_id}")


# ----------------------------------------------------------------------
# execution


@execution_app.command("list")
def execution_list(
    workflow_id: str,
    tenant: str = TenantOption,
    limit: int = typer.Option(DEFAULT_EXECUTION_LIST_LIMIT, help="Maximum rows"),
) -> None:
    """List a workflow's executions, newest first."""
    executions = asyncio.run(get_engine().store.list_executions(workflow_id, tenant, limit))
    if not executions:
        typer.echo("No executions found")
        return
    for execution in executions:
        typer.echo(
            f"{execution.id}\t{execution.status.value}\t{execution.started_at.isoformat()}"
        )


@execution_app.command("show")
def execution_show(
    execution_id: str,
    tenant: Optional[str] = typer.Option(None, "--tenant", "-t", envvar="HIREFLOW_TENANT"),
) -> None:
    """Show an execution with its step history."""
    store = get_engine().store

    async def _load() -> Optional[ExecutionReport]:
        execution = await store.get_execution(execution_id, tenant)
        if execution is None:
            return None
        return ExecutionReport(
            execution=execution, steps=await store.list_execution_steps(execution_id)
        )

    report = asyncio.run(_load())
    if report is None:
        _fail("Execution not found")
    _echo_report(report)


# ----------------------------------------------------------------------
# worker


@worker_app.command("start")
def worker_start(
    lifespan: Optional[float] = typer.Option(
        None, help="Stop after this many seconds (default: run indefinitely)"
    ),
) -> None:
    """
    Run the execution worker pool and the wait scheduler.

    Example:
        hireflow worker start
        hireflow worker start --lifespan 300
    """
    engine = get_engine()
    typer.echo(
        f"Starting {engine.config.worker.concurrency} workers on {engine.config.worker.topic}"
    )
    asyncio.run(engine.run_workers(lifespan=lifespan))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
