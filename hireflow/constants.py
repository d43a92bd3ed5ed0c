"""Shared enumerations and defaults for hireflow."""

from __future__ import annotations

from enum import Enum

DEFAULT_EXECUTION_TOPIC = "workflow-executions"
DEFAULT_EXECUTION_LIST_LIMIT = 50
DEFAULT_SLACK_CHANNEL = "#hiring"


class TriggerKind(str, Enum):
    """Pipeline events a workflow can react to."""

    CANDIDATE_STATUS_CHANGE = "candidate_status_change"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    INTERVIEW_COMPLETED = "interview_completed"
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class ActionKind(str, Enum):
    """Capability tags a workflow step can carry."""

    SEND_EMAIL = "send_email"
    UPDATE_STATUS = "update_status"
    CREATE_INTERVIEW = "create_interview"
    NOTIFY_SLACK = "notify_slack"
    UPDATE_CRM = "update_crm"
    WAIT = "wait"
    CONDITION = "condition"


class CandidateStatus(str, Enum):
    NEW = "new"
    ASSESSMENT_SENT = "assessment_sent"
    ASSESSMENT_COMPLETED = "assessment_completed"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    INTERVIEW_COMPLETED = "interview_completed"
    OFFER_SENT = "offer_sent"
    OFFER_ACCEPTED = "offer_accepted"
    REJECTED = "rejected"
    HIRED = "hired"
