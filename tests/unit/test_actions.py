from datetime import timedelta

import pytest
from pydantic import BaseModel

from hireflow.actions import ActionServices, build_registry
from hireflow.actions.base import ActionHandler, ActionMetadata
from hireflow.actions.registry import ActionRegistry
from hireflow.collaborators import InMemoryChatNotifier, InMemoryCrmSync, InMemoryMailer
from hireflow.contracts import CONFIG_MODELS, Step
from hireflow.errors import ActionExecutionError, UnknownActionError
from hireflow.utils.clock import utcnow

TENANT = "acme"


def test_registry_lists_every_builtin_action(registry):
    kinds = [meta.kind for meta in registry.list_available_actions()]
    assert kinds == [
        "send_email",
        "update_status",
        "create_interview",
        "notify_slack",
        "update_crm",
        "wait",
        "condition",
    ]
    assert "condition" in registry
    assert "send_fax" not in registry


@pytest.mark.asyncio
async def test_unknown_action_kind(registry, context):
    with pytest.raises(UnknownActionError, match="Unknown action type: send_fax"):
        await registry.dispatch("send_fax", {}, context, TENANT)


@pytest.mark.asyncio
async def test_send_email_prefers_user_mailbox(registry, context, mailer):
    result = await registry.dispatch(
        "send_email",
        {"to": "ada@example.com", "subject": "Hi", "body": "Hello {{candidate.name}}"},
        context,
        TENANT,
    )
    assert result == {"success": True, "method": "user_mailbox", "to": "ada@example.com"}
    assert mailer.sent[0]["user_id"] == "u1"


@pytest.mark.asyncio
async def test_send_email_step_substitutes_before_sending(registry, context, mailer):
    step = Step.model_validate(
        {
            "type": "send_email",
            "config": {"to": "{{candidate.email}}", "subject": "Hi", "body": "Hello {{candidate.name}}"},
        }
    )
    result = await registry.dispatch_step(step, context, TENANT)
    assert result["to"] == "ada@example.com"
    assert mailer.sent[0]["body"] == "Hello Ada Lovelace"


@pytest.mark.asyncio
async def test_send_email_does_not_resolve_placeholders_inside_values(registry, context, mailer):
    context["candidate"]["email"] = "{{user.email}}"
    context["user"]["email"] = "grace@example.com"
    step = Step.model_validate(
        {"type": "send_email", "config": {"to": "{{candidate.email}}", "subject": "Hi", "body": "x"}}
    )
    with pytest.raises(ActionExecutionError, match="Invalid or missing email address"):
        await registry.dispatch_step(step, context, TENANT)
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_send_email_falls_back_to_direct(entities, context):
    mailer = InMemoryMailer(fail_user_mailbox=True)
    registry = build_registry(ActionServices(entities=entities, mailer=mailer))
    result = await registry.dispatch(
        "send_email", {"to": "ada@example.com", "body": "Hi"}, context, TENANT
    )
    assert result["method"] == "direct"
    assert mailer.sent == [
        {"method": "direct", "user_id": "u1", "to": "ada@example.com", "subject": "", "body": "Hi"}
    ]


@pytest.mark.asyncio
async def test_send_email_without_user_goes_direct(registry, mailer):
    result = await registry.dispatch(
        "send_email", {"to": "ada@example.com", "body": "Hi"}, {}, TENANT
    )
    assert result["method"] == "direct"


@pytest.mark.asyncio
async def test_send_email_fails_when_every_route_fails(entities, context):
    mailer = InMemoryMailer(fail_user_mailbox=True, fail_direct=True)
    registry = build_registry(ActionServices(entities=entities, mailer=mailer))
    with pytest.raises(ActionExecutionError, match="Failed to send email"):
        await registry.dispatch("send_email", {"to": "ada@example.com", "body": "Hi"}, context, TENANT)


@pytest.mark.asyncio
async def test_send_email_uses_default_template(registry, context, mailer):
    result = await registry.dispatch(
        "send_email", {"template": "rejection"}, context, TENANT
    )
    assert result["to"] == "ada@example.com"
    sent = mailer.sent[0]
    assert sent["subject"] == "Update on Your Application - Staff Engineer"
    assert "Hi Ada Lovelace" in sent["body"]
    assert "Grace Hopper" in sent["body"]


@pytest.mark.asyncio
async def test_tenant_template_overrides_default(entities, registry, context, mailer):
    entities.email_templates[TENANT] = {
        "rejection": {"subject": "Sorry {{candidate.name}}", "body": "Custom"}
    }
    await registry.dispatch("send_email", {"template": "rejection"}, context, TENANT)
    assert mailer.sent[0]["subject"] == "Sorry Ada Lovelace"
    assert mailer.sent[0]["body"] == "Custom"


@pytest.mark.asyncio
async def test_missing_template_without_body_fails(registry, context):
    with pytest.raises(ActionExecutionError, match="template nope not found"):
        await registry.dispatch("send_email", {"template": "nope"}, context, TENANT)


@pytest.mark.asyncio
@pytest.mark.parametrize("to", ["", "not-an-address", "{{candidate.email}}"])
async def test_send_email_rejects_invalid_address(registry, to, mailer):
    with pytest.raises(ActionExecutionError, match="Invalid or missing email address"):
        await registry.dispatch("send_email", {"to": to, "body": "Hi"}, {}, TENANT)
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_update_status(registry, context, entities):
    result = await registry.dispatch("update_status", {"status": "hired"}, context, TENANT)
    assert result == {"success": True, "new_status": "hired"}
    assert entities.candidates[(TENANT, "c1")]["status"] == "hired"


@pytest.mark.asyncio
async def test_update_status_requires_candidate(registry):
    with pytest.raises(ActionExecutionError, match="Candidate context required"):
        await registry.dispatch("update_status", {"status": "hired"}, {}, TENANT)


@pytest.mark.asyncio
async def test_update_status_rejects_unknown_status(registry, context):
    with pytest.raises(ActionExecutionError, match="Invalid update_status config"):
        await registry.dispatch("update_status", {"status": "promoted"}, context, TENANT)


@pytest.mark.asyncio
async def test_create_interview(registry, context, entities):
    result = await registry.dispatch(
        "create_interview",
        {"interviewerId": 7, "type": "onsite", "scheduledDate": "2026-11-02T10:00:00"},
        context,
        TENANT,
    )
    interview = entities.interviews[(TENANT, result["interview_id"])]
    assert interview["candidate_id"] == "c1"
    assert interview["job_id"] == "j1"
    assert interview["interviewer_id"] == "7"
    assert interview["status"] == "scheduled"


@pytest.mark.asyncio
async def test_notify_slack(registry, context, chat):
    result = await registry.dispatch(
        "notify_slack", {"message": "New hire!"}, context, TENANT
    )
    assert result["channel"] == "#hiring"
    assert chat.messages == [{"user_id": "u1", "message": "New hire!", "channel": "#hiring"}]


@pytest.mark.asyncio
async def test_notify_slack_requires_user(registry):
    with pytest.raises(ActionExecutionError, match="User context required"):
        await registry.dispatch("notify_slack", {"message": "x"}, {}, TENANT)


@pytest.mark.asyncio
async def test_notify_slack_failure(entities, context):
    registry = build_registry(ActionServices(entities=entities, chat=InMemoryChatNotifier(succeed=False)))
    with pytest.raises(ActionExecutionError, match="failed"):
        await registry.dispatch("notify_slack", {"message": "x"}, context, TENANT)


@pytest.mark.asyncio
async def test_update_crm_parses_json_data(registry, context, crm):
    result = await registry.dispatch(
        "update_crm",
        {"platform": "airtable", "action": "create", "data": '{"name": "Ada"}'},
        context,
        TENANT,
    )
    assert result == {"success": True, "platform": "airtable", "action": "create"}
    assert crm.calls[0]["data"] == {"name": "Ada"}


@pytest.mark.asyncio
async def test_update_crm_failure(entities, context):
    registry = build_registry(ActionServices(entities=entities, crm=InMemoryCrmSync(succeed=False)))
    with pytest.raises(ActionExecutionError, match="CRM sync"):
        await registry.dispatch(
            "update_crm", {"platform": "airtable", "action": "update", "data": {}}, context, TENANT
        )


@pytest.mark.asyncio
async def test_wait_computes_resume_time(registry):
    before = utcnow()
    result = await registry.dispatch("wait", {"duration": 2}, {}, TENANT)
    assert result["waited_hours"] == 2
    assert before + timedelta(hours=2) <= result["resume_at"] <= utcnow() + timedelta(hours=2)


@pytest.mark.asyncio
async def test_zero_wait_does_not_suspend(registry):
    result = await registry.dispatch("wait", {"duration": 0}, {}, TENANT)
    assert result["resume_at"] is None


@pytest.mark.asyncio
async def test_nested_wait_fails(registry):
    with pytest.raises(ActionExecutionError, match="condition branch"):
        await registry.dispatch("wait", {"duration": 1}, {}, TENANT, depth=1)


def _condition(expression: str) -> Step:
    return Step.model_validate(
        {
            "type": "condition",
            "config": {"condition": expression},
            "then_steps": [{"type": "update_status", "config": {"status": "interview_scheduled"}}],
            "else_steps": [
                {"type": "send_email", "config": {"to": "bad-address", "body": "x"}},
                {"type": "update_status", "config": {"status": "rejected"}},
            ],
        }
    )


@pytest.mark.asyncio
async def test_condition_runs_then_branch(registry, context, entities):
    result = await registry.dispatch_step(
        _condition("{{candidate.hiPeopleScore}} >= 80"), context, TENANT
    )
    assert result["condition_met"] is True
    assert result["branch"] == "then"
    assert [s["status"] for s in result["steps"]] == ["completed"]
    assert entities.status_updates == [(TENANT, "c1", "interview_scheduled")]


@pytest.mark.asyncio
async def test_condition_else_branch_isolates_failures(registry, context, entities):
    context["candidate"]["hiPeopleScore"] = 50
    result = await registry.dispatch_step(
        _condition("{{candidate.hiPeopleScore}} >= 80"), context, TENANT
    )
    assert result["branch"] == "else"
    assert [s["status"] for s in result["steps"]] == ["failed", "completed"]
    assert "Invalid or missing email address" in result["steps"][0]["error"]
    assert entities.status_updates == [(TENANT, "c1", "rejected")]


@pytest.mark.asyncio
async def test_condition_error_takes_else_branch(registry, context):
    result = await registry.dispatch_step(_condition("process.exit(1)"), context, TENANT)
    assert result["condition_met"] is False
    assert result["branch"] == "else"
    assert "condition_error" in result


@pytest.mark.asyncio
async def test_nested_condition_runs_inner_branch(registry, context, entities):
    step = Step.model_validate(
        {
            "type": "condition",
            "config": {"condition": "{{candidate.hiPeopleScore}} >= 80"},
            "then_steps": [
                {
                    "type": "condition",
                    "config": {"condition": "{{job.title}} == \"Staff Engineer\""},
                    "then_steps": [{"type": "update_status", "config": {"status": "hired"}}],
                    "else_steps": [{"type": "update_status", "config": {"status": "rejected"}}],
                }
            ],
        }
    )
    result = await registry.dispatch_step(step, context, TENANT)

    assert result["branch"] == "then"
    inner = result["steps"][0]
    assert inner["status"] == "completed"
    assert inner["result"]["branch"] == "then"
    assert [s["status"] for s in inner["result"]["steps"]] == ["completed"]
    assert entities.status_updates == [(TENANT, "c1", "hired")]


def test_materialize_keeps_condition_expression_raw(context):
    step = _condition("{{candidate.name}} == \"Ada Lovelace\"")
    config = ActionRegistry.materialize(step, context)
    assert config["condition"] == step.config["condition"]


class SmsConfig(BaseModel):
    to: str
    body: str


class SendSmsHandler(ActionHandler):
    kind = "send_sms"
    config_model = SmsConfig
    metadata = ActionMetadata(kind="send_sms", name="Send SMS", description="Text the candidate")

    async def execute(self, config, context, tenant_id, depth=0):
        return {"success": True, "to": config.to}


@pytest.mark.asyncio
async def test_custom_handler_is_scoped_to_its_registry(services, context):
    custom = build_registry(services)
    custom.register(SendSmsHandler(services))

    assert "send_sms" in custom
    assert "send_sms" not in build_registry(services)
    assert "send_sms" not in CONFIG_MODELS
    # authoring does not check kinds the process has not registered
    Step.model_validate({"type": "send_sms", "config": {"to": 5}})

    assert await custom.dispatch("send_sms", {"to": "+4412", "body": "hi"}, context, TENANT) == {
        "success": True,
        "to": "+4412",
    }
    with pytest.raises(ActionExecutionError, match="Invalid send_sms config"):
        await custom.dispatch("send_sms", {"to": "+4412"}, context, TENANT)
