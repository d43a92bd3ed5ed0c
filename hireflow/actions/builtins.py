"""Handlers for the built-in action kinds."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from ..collaborators import InterviewSpec
from ..conditions import evaluate_with_error
from ..constants import DEFAULT_SLACK_CHANNEL, ActionKind, CandidateStatus
from ..contracts import (
    ConditionConfig,
    CreateInterviewConfig,
    NotifySlackConfig,
    SendEmailConfig,
    UpdateCrmConfig,
    UpdateStatusConfig,
    WaitConfig,
)
from ..errors import ActionExecutionError
from ..presets import DEFAULT_EMAIL_TEMPLATES, merge_email_templates
from ..templating import substitute
from ..utils.clock import utcnow
from .base import ActionHandler, ActionMetadata, ActionServices, ConfigField

if TYPE_CHECKING:  # pragma: no cover
    from .registry import ActionRegistry

logger = logging.getLogger(__name__)


def _field(entity: Any, name: str) -> Any:
    if entity is None:
        return None
    if isinstance(entity, Mapping):
        return entity.get(name)
    return getattr(entity, name, None)


def _require_id(context: Mapping[str, Any], entity: str, kind: str) -> str:
    entity_id = _field(context.get(entity), "id")
    if entity_id is None:
        raise ActionExecutionError(
            f"{entity.capitalize()} context required for {kind} action"
        )
    return str(entity_id)


def _optional_id(context: Mapping[str, Any], entity: str) -> Optional[str]:
    entity_id = _field(context.get(entity), "id")
    return str(entity_id) if entity_id is not None else None


class SendEmailHandler(ActionHandler):
    kind = ActionKind.SEND_EMAIL.value
    config_model = SendEmailConfig
    metadata = ActionMetadata(
        kind=kind,
        name="Send Email",
        description="Send an email to candidate or team member",
        icon="📧",
        config_fields=[
            ConfigField(name="to", label="To", type="text", required=True, placeholder="{{candidate.email}}"),
            ConfigField(name="subject", label="Subject", type="text", required=True),
            ConfigField(name="body", label="Body", type="textarea", required=True),
            ConfigField(
                name="template",
                label="Email Template",
                type="select",
                options=list(DEFAULT_EMAIL_TEMPLATES),
            ),
        ],
    )

    async def execute(self, config: SendEmailConfig, context, tenant_id, depth=0):
        # config.to was substituted with the rest of the step config
        to = config.to if config.to else substitute("{{candidate.email}}", context)
        subject = config.subject
        body = config.body

        if config.template:
            tenant_templates = await self.services.entities.get_email_templates(tenant_id)
            template = merge_email_templates(tenant_templates).get(config.template)
            if template:
                body = substitute(template.get("body") or "", context)
                template_subject = substitute(template.get("subject") or "", context)
                if template_subject:
                    subject = template_subject
                if template.get("to"):
                    to = substitute(template["to"], context)
            elif not body:
                raise ActionExecutionError(f"Email template {config.template} not found")

        if not to or "@" not in to or "{{" in to or "}}" in to:
            raise ActionExecutionError(
                f"Invalid or missing email address: {to}. Please ensure candidate email is provided."
            )

        user_id = _optional_id(context, "user")
        if user_id is not None:
            try:
                if await self.services.mailer.send_email(user_id, to, subject, body):
                    return {"success": True, "method": "user_mailbox", "to": to}
                logger.warning(f"Mailbox send for user {user_id} failed, trying direct email")
            except Exception as exc:
                logger.warning(f"Mailbox send for user {user_id} failed, trying direct email: {exc}")

        if not await self.services.mailer.send_direct_email(to, subject, body, user_id):
            raise ActionExecutionError(f"Failed to send email to {to}")
        return {"success": True, "method": "direct", "to": to}


class UpdateStatusHandler(ActionHandler):
    kind = ActionKind.UPDATE_STATUS.value
    config_model = UpdateStatusConfig
    metadata = ActionMetadata(
        kind=kind,
        name="Update Candidate Status",
        description="Change candidate's status in the pipeline",
        icon="🔄",
        config_fields=[
            ConfigField(
                name="status",
                label="New Status",
                type="select",
                required=True,
                options=[s.value for s in CandidateStatus],
            ),
        ],
        requires_context=["candidate"],
    )

    async def execute(self, config: UpdateStatusConfig, context, tenant_id, depth=0):
        candidate_id = _require_id(context, "candidate", self.kind)
        updated = await self.services.entities.update_candidate_status(
            candidate_id, tenant_id, config.status.value
        )
        if updated is None:
            raise ActionExecutionError(f"Candidate {candidate_id} not found")
        return {"success": True, "new_status": config.status.value}


class CreateInterviewHandler(ActionHandler):
    kind = ActionKind.CREATE_INTERVIEW.value
    config_model = CreateInterviewConfig
    metadata = ActionMetadata(
        kind=kind,
        name="Schedule Interview",
        description="Automatically create an interview",
        icon="📅",
        config_fields=[
            ConfigField(
                name="type",
                label="Interview Type",
                type="select",
                required=True,
                options=["phone", "video", "onsite"],
            ),
            ConfigField(name="interviewerId", label="Interviewer", type="user_select", required=True),
            ConfigField(name="scheduledDate", label="Scheduled Date", type="datetime", required=True),
        ],
        requires_context=["candidate"],
    )

    async def execute(self, config: CreateInterviewConfig, context, tenant_id, depth=0):
        spec = InterviewSpec(
            tenant_id=tenant_id,
            candidate_id=_require_id(context, "candidate", self.kind),
            job_id=_optional_id(context, "job"),
            interviewer_id=str(config.interviewer_id),
            type=config.type,
            scheduled_date=config.scheduled_date,
        )
        interview = await self.services.entities.create_interview(spec)
        return {"success": True, "interview_id": _field(interview, "id")}


class NotifySlackHandler(ActionHandler):
    kind = ActionKind.NOTIFY_SLACK.value
    config_model = NotifySlackConfig
    metadata = ActionMetadata(
        kind=kind,
        name="Notify Slack",
        description="Send notification to Slack channel",
        icon="💬",
        config_fields=[
            ConfigField(name="channel", label="Channel", type="text", required=True, placeholder=DEFAULT_SLACK_CHANNEL),
            ConfigField(name="message", label="Message", type="textarea", required=True),
        ],
        requires_context=["user"],
    )

    async def execute(self, config: NotifySlackConfig, context, tenant_id, depth=0):
        user_id = _optional_id(context, "user")
        if user_id is None:
            raise ActionExecutionError("User context required for Slack notification")
        sent = await self.services.chat.send_chat_message(user_id, config.message, config.channel)
        if not sent:
            raise ActionExecutionError(f"Slack notification to {config.channel} failed")
        return {"success": True, "channel": config.channel, "message": config.message}


class UpdateCrmHandler(ActionHandler):
    kind = ActionKind.UPDATE_CRM.value
    config_model = UpdateCrmConfig
    metadata = ActionMetadata(
        kind=kind,
        name="Update CRM",
        description="Sync data to Google Sheets or Airtable",
        icon="📊",
        config_fields=[
            ConfigField(
                name="platform",
                label="Platform",
                type="select",
                required=True,
                options=["google_sheets", "airtable"],
            ),
            ConfigField(
                name="action",
                label="Action",
                type="select",
                required=True,
                options=["create", "update"],
            ),
            ConfigField(name="data", label="Data", type="json", required=True),
        ],
    )

    async def execute(self, config: UpdateCrmConfig, context, tenant_id, depth=0):
        if not await self.services.crm.sync_crm(config.platform, config.action, config.data):
            raise ActionExecutionError(f"CRM sync to {config.platform} failed")
        return {"success": True, "platform": config.platform, "action": config.action}


class WaitHandler(ActionHandler):
    """Compute when the execution may continue.

    The handler never sleeps; the executor suspends the execution until
    ``resume_at`` and the wait scheduler picks it up again.
    """

    kind = ActionKind.WAIT.value
    config_model = WaitConfig
    metadata = ActionMetadata(
        kind=kind,
        name="Wait/Delay",
        description="Pause workflow for specified duration",
        icon="⏳",
        config_fields=[
            ConfigField(name="duration", label="Duration (hours)", type="number", required=True),
        ],
    )

    async def execute(self, config: WaitConfig, context, tenant_id, depth=0):
        if config.duration == 0:
            return {"success": True, "waited_hours": 0, "resume_at": None}
        if depth > 0:
            raise ActionExecutionError(
                "A wait inside a condition branch cannot suspend the execution; "
                "move it to the top level or use a duration of 0"
            )
        resume_at = utcnow() + timedelta(hours=config.duration)
        return {"success": True, "waited_hours": config.duration, "resume_at": resume_at}


class ConditionHandler(ActionHandler):
    """Evaluate an expression and run the selected branch.

    Branch steps share the parent's context and are isolated from each
    other: a failing branch step is recorded and the next one still runs.
    """

    kind = ActionKind.CONDITION.value
    config_model = ConditionConfig
    metadata = ActionMetadata(
        kind=kind,
        name="Conditional Logic",
        description="Run different actions based on condition",
        icon="🔀",
        config_fields=[
            ConfigField(
                name="condition",
                label="Condition",
                type="text",
                required=True,
                placeholder="{{candidate.hiPeopleScore}} >= 80",
            ),
        ],
    )

    def __init__(self, services: ActionServices, registry: "ActionRegistry") -> None:
        super().__init__(services)
        self.registry = registry

    async def execute(self, config: ConditionConfig, context, tenant_id, depth=0):
        outcome = evaluate_with_error(config.condition, context)
        branch = config.then_steps if outcome.value else config.else_steps

        steps = []
        for index, step in enumerate(branch):
            entry: Dict[str, Any] = {"index": index, "kind": step.kind}
            try:
                entry["result"] = await self.registry.dispatch_step(
                    step, context, tenant_id, depth=depth + 1
                )
                entry["status"] = "completed"
            except Exception as exc:
                logger.warning(f"Branch step {index} ({step.kind}) failed: {exc}")
                entry["status"] = "failed"
                entry["error"] = str(exc)
            steps.append(entry)

        result: Dict[str, Any] = {
            "success": True,
            "condition_met": outcome.value,
            "branch": "then" if outcome.value else "else",
            "steps": steps,
        }
        if outcome.error is not None:
            result["condition_error"] = outcome.error
        return result
