"""Email templates and starter workflows shipped with the product."""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

from .contracts import Workflow
from .errors import WorkflowNotFoundError

DEFAULT_EMAIL_TEMPLATES: Dict[str, Dict[str, str]] = {
    "welcome": {
        "subject": "Welcome to {{companyName}}",
        "body": (
            "<p>Hi {{candidate.name}},</p><p>Welcome! We're excited to have you on board.</p>"
            "<p>Best regards,<br>{{user.fullName}}</p>"
        ),
    },
    "interview_confirmation": {
        "subject": "Interview Scheduled - {{job.title}}",
        "body": (
            "<p>Hi {{candidate.name}},</p><p>Your interview for {{job.title}} has been scheduled "
            "for {{interview.scheduledDate}}.</p><p>Looking forward to meeting you!</p>"
            "<p>Best regards,<br>{{user.fullName}}</p>"
        ),
    },
    "rejection": {
        "subject": "Update on Your Application - {{job.title}}",
        "body": (
            "<p>Hi {{candidate.name}},</p><p>Thank you for your interest in {{job.title}}. "
            "Unfortunately, we've decided to move forward with other candidates.</p>"
            "<p>We wish you the best in your job search.</p><p>Best regards,<br>{{user.fullName}}</p>"
        ),
    },
    "offer": {
        "subject": "Job Offer - {{job.title}}",
        "body": (
            "<p>Hi {{candidate.name}},</p><p>We're excited to offer you the {{job.title}} position!</p>"
            "<p>Please review the details and let us know if you have any questions.</p>"
            "<p>Best regards,<br>{{user.fullName}}</p>"
        ),
    },
}


def merge_email_templates(
    tenant_templates: Optional[Dict[str, Dict[str, Any]]],
) -> Dict[str, Dict[str, Any]]:
    """Defaults overlaid with a tenant's own templates (tenant wins)."""
    merged: Dict[str, Dict[str, Any]] = copy.deepcopy(DEFAULT_EMAIL_TEMPLATES)
    merged.update(tenant_templates or {})
    return merged


def template_display_name(template_id: str) -> str:
    return template_id.replace("_", " ").title()


WORKFLOW_TEMPLATES: List[Dict[str, Any]] = [
    {
        "id": "new_application",
        "name": "New Application Received",
        "description": "Automatically handle new candidate applications",
        "trigger_kind": "candidate_status_change",
        "trigger_filter": {"from_status": None, "to_status": "new"},
        "steps": [
            {
                "type": "send_email",
                "config": {
                    "template": "welcome",
                    "to": "{{candidate.email}}",
                    "subject": "Thank you for your application",
                },
            },
            {
                "type": "notify_slack",
                "config": {
                    "channel": "#hiring",
                    "message": "New application: {{candidate.name}} for {{job.title}}",
                },
            },
        ],
    },
    {
        "id": "interview_scheduled",
        "name": "Interview Scheduled",
        "description": "Notify team and candidate when interview is scheduled",
        "trigger_kind": "interview_scheduled",
        "trigger_filter": {},
        "steps": [
            {
                "type": "send_email",
                "config": {
                    "template": "interview_confirmation",
                    "to": "{{candidate.email}}",
                    "subject": "Interview Scheduled - {{job.title}}",
                },
            },
            {
                "type": "notify_slack",
                "config": {
                    "channel": "#hiring",
                    "message": "Interview scheduled: {{candidate.name}} on {{interview.scheduledDate}}",
                },
            },
        ],
    },
    {
        "id": "assessment_completed",
        "name": "Assessment Completed",
        "description": "Auto-advance or reject based on assessment score",
        "trigger_kind": "candidate_status_change",
        "trigger_filter": {"from_status": "assessment_sent", "to_status": "assessment_completed"},
        "steps": [
            {
                "type": "condition",
                "config": {"condition": "{{candidate.hiPeopleScore}} >= 80"},
                "then_steps": [
                    {"type": "update_status", "config": {"status": "interview_scheduled"}},
                ],
                "else_steps": [
                    {
                        "type": "send_email",
                        "config": {"template": "rejection", "to": "{{candidate.email}}"},
                    },
                    {"type": "update_status", "config": {"status": "rejected"}},
                ],
            },
        ],
    },
]


def get_workflow_template(template_id: str) -> Dict[str, Any]:
    for template in WORKFLOW_TEMPLATES:
        if template["id"] == template_id:
            return copy.deepcopy(template)
    raise WorkflowNotFoundError(f"Workflow template {template_id} not found")


def workflow_from_template(
    template_id: str,
    tenant_id: str,
    name: Optional[str] = None,
    created_by_id: Optional[str] = None,
) -> Workflow:
    """Instantiate a starter workflow for ``tenant_id``."""
    template = get_workflow_template(template_id)
    template.pop("id")
    if name:
        template["name"] = name
    return Workflow.model_validate(
        {**template, "tenant_id": tenant_id, "created_by_id": created_by_id}
    )
