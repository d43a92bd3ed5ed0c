"""Data models for persisted execution history."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..utils.clock import utcnow


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    WAITING = "waiting"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


class StepStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Execution(BaseModel):
    """One run of a workflow against a concrete context."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    tenant_id: str
    workflow_id: str
    status: ExecutionStatus = ExecutionStatus.RUNNING
    trigger_entity_type: Optional[str] = None
    trigger_entity_id: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    # JSON pointer -> "datetime" | "date" for values stored as ISO strings in context
    context_types: Dict[str, str] = Field(default_factory=dict)
    error_message: Optional[str] = None
    resume_at: Optional[datetime] = None
    next_step_index: Optional[int] = None
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class ExecutionStep(BaseModel):
    """Record of an individual top-level step attempt."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    execution_id: str
    step_index: int = Field(ge=0)
    action_kind: str
    action_config: Dict[str, Any] = Field(default_factory=dict)
    status: StepStatus = StepStatus.RUNNING
    result: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class ExecutionReport(BaseModel):
    """An execution together with its step history."""

    execution: Execution
    steps: List[ExecutionStep] = Field(default_factory=list)

    @property
    def step_statuses(self) -> List[StepStatus]:
        return [step.status for step in self.steps]
