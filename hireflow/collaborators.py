"""Narrow interfaces to the systems the engine acts upon.

The engine never talks to the candidate database or to mail, chat and CRM
providers directly. It goes through the protocols below; the in-memory
implementations record every call and are used for tests and local runs.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Protocol, Tuple

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class InterviewSpec(BaseModel):
    """Data needed to create an interview record."""

    tenant_id: str
    candidate_id: str
    job_id: Optional[str] = None
    interviewer_id: str
    type: Literal["phone", "video", "onsite"] = "video"
    scheduled_date: datetime
    status: str = "scheduled"


class EntityStore(Protocol):
    """Tenant-scoped access to candidates, jobs and interviews."""

    async def get_candidate(self, candidate_id: str, tenant_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def get_job(self, job_id: str, tenant_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def get_interview(self, interview_id: str, tenant_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def update_candidate_status(
        self, candidate_id: str, tenant_id: str, status: str
    ) -> Optional[Dict[str, Any]]:
        ...

    async def create_interview(self, spec: InterviewSpec) -> Dict[str, Any]:
        ...

    async def get_email_templates(self, tenant_id: str) -> Dict[str, Dict[str, Any]]:
        """Return the tenant's email templates keyed by template id."""
        ...


class Mailer(Protocol):
    async def send_email(self, user_id: str, to: str, subject: str, body: str) -> bool:
        """Send from the acting user's connected mailbox."""
        ...

    async def send_direct_email(
        self, to: str, subject: str, body: str, user_id: Optional[str] = None
    ) -> bool:
        """Send through the platform's own mail provider."""
        ...


class ChatNotifier(Protocol):
    async def send_chat_message(self, user_id: Optional[str], message: str, channel: str) -> bool:
        ...


class CrmSync(Protocol):
    async def sync_crm(self, platform: str, action: str, data: Dict[str, Any]) -> bool:
        ...


# ----------------------------------------------------------------------
# In-memory implementations


class InMemoryEntityStore:
    """Dictionary-backed entity store keyed by ``(tenant_id, id)``."""

    def __init__(self) -> None:
        self.candidates: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.jobs: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.interviews: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.email_templates: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.status_updates: List[Tuple[str, str, str]] = []

    def add_candidate(self, tenant_id: str, candidate: Dict[str, Any]) -> Dict[str, Any]:
        candidate = {"status": "new", **candidate}
        self.candidates[(tenant_id, str(candidate["id"]))] = candidate
        return candidate

    def add_job(self, tenant_id: str, job: Dict[str, Any]) -> Dict[str, Any]:
        self.jobs[(tenant_id, str(job["id"]))] = job
        return job

    def add_interview(self, tenant_id: str, interview: Dict[str, Any]) -> Dict[str, Any]:
        self.interviews[(tenant_id, str(interview["id"]))] = interview
        return interview

    async def get_candidate(self, candidate_id: str, tenant_id: str) -> Optional[Dict[str, Any]]:
        return self.candidates.get((tenant_id, str(candidate_id)))

    async def get_job(self, job_id: str, tenant_id: str) -> Optional[Dict[str, Any]]:
        return self.jobs.get((tenant_id, str(job_id)))

    async def get_interview(self, interview_id: str, tenant_id: str) -> Optional[Dict[str, Any]]:
        return self.interviews.get((tenant_id, str(interview_id)))

    async def update_candidate_status(
        self, candidate_id: str, tenant_id: str, status: str
    ) -> Optional[Dict[str, Any]]:
        candidate = self.candidates.get((tenant_id, str(candidate_id)))
        if candidate is None:
            return None
        candidate["status"] = status
        self.status_updates.append((tenant_id, str(candidate_id), status))
        return candidate

    async def create_interview(self, spec: InterviewSpec) -> Dict[str, Any]:
        interview = {"id": str(uuid.uuid4()), **spec.model_dump()}
        self.interviews[(spec.tenant_id, interview["id"])] = interview
        return interview

    async def get_email_templates(self, tenant_id: str) -> Dict[str, Dict[str, Any]]:
        return dict(self.email_templates.get(tenant_id, {}))


class InMemoryMailer:
    """Records sent mail; ``fail_user_mailbox`` forces the direct-send fallback."""

    def __init__(self, fail_user_mailbox: bool = False, fail_direct: bool = False) -> None:
        self.fail_user_mailbox = fail_user_mailbox
        self.fail_direct = fail_direct
        self.sent: List[Dict[str, Any]] = []

    async def send_email(self, user_id: str, to: str, subject: str, body: str) -> bool:
        if self.fail_user_mailbox:
            return False
        self.sent.append(
            {"method": "user_mailbox", "user_id": user_id, "to": to, "subject": subject, "body": body}
        )
        return True

    async def send_direct_email(
        self, to: str, subject: str, body: str, user_id: Optional[str] = None
    ) -> bool:
        if self.fail_direct:
            return False
        self.sent.append(
            {"method": "direct", "user_id": user_id, "to": to, "subject": subject, "body": body}
        )
        return True


class InMemoryChatNotifier:
    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.messages: List[Dict[str, Any]] = []

    async def send_chat_message(self, user_id: Optional[str], message: str, channel: str) -> bool:
        if not self.succeed:
            return False
        self.messages.append({"user_id": user_id, "message": message, "channel": channel})
        return True


class InMemoryCrmSync:
    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.calls: List[Dict[str, Any]] = []

    async def sync_crm(self, platform: str, action: str, data: Dict[str, Any]) -> bool:
        self.calls.append({"platform": platform, "action": action, "data": data})
        logger.info(f"CRM sync requested: {platform} {action}")
        return self.succeed


class LoggingCrmSync:
    """Default CRM collaborator: accepts every request and logs it."""

    async def sync_crm(self, platform: str, action: str, data: Dict[str, Any]) -> bool:
        logger.info(f"CRM update ({platform}, {action}): {data}")
        return True


__all__ = [
    "ChatNotifier",
    "CrmSync",
    "EntityStore",
    "InMemoryChatNotifier",
    "InMemoryCrmSync",
    "InMemoryEntityStore",
    "InMemoryMailer",
    "InterviewSpec",
    "LoggingCrmSync",
    "Mailer",
]
