"""Workflow definitions and the messages exchanged between dispatcher and workers."""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional, Type, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .constants import DEFAULT_SLACK_CHANNEL, ActionKind, CandidateStatus, TriggerKind
from .templating import has_placeholder
from .utils.clock import utcnow

# ----------------------------------------------------------------------
# Typed configuration for each built-in action kind


class SendEmailConfig(BaseModel):
    to: Optional[str] = None
    subject: str = ""
    body: str = ""
    template: Optional[str] = None

    @model_validator(mode="after")
    def _body_or_template(self) -> "SendEmailConfig":
        if not self.body and not self.template:
            raise ValueError("send_email requires a body or a template")
        return self


class UpdateStatusConfig(BaseModel):
    status: CandidateStatus


class CreateInterviewConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    interviewer_id: Union[int, str] = Field(alias="interviewerId")
    type: Literal["phone", "video", "onsite"] = "video"
    scheduled_date: datetime = Field(alias="scheduledDate")


class NotifySlackConfig(BaseModel):
    message: str = Field(min_length=1)
    channel: str = DEFAULT_SLACK_CHANNEL


class UpdateCrmConfig(BaseModel):
    platform: Literal["google_sheets", "airtable"]
    action: Literal["create", "update"]
    data: Dict[str, Any]

    @field_validator("data", mode="before")
    @classmethod
    def _parse_json_data(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError(f"data must be a JSON object: {exc}") from exc
        return value


class WaitConfig(BaseModel):
    duration: float = Field(ge=0, description="Delay in hours")


class ConditionConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    condition: str = Field(min_length=1)
    then_steps: List["Step"] = Field(default_factory=list, alias="thenSteps")
    else_steps: List["Step"] = Field(default_factory=list, alias="elseSteps")


CONFIG_MODELS: Dict[str, Type[BaseModel]] = {
    ActionKind.SEND_EMAIL.value: SendEmailConfig,
    ActionKind.UPDATE_STATUS.value: UpdateStatusConfig,
    ActionKind.CREATE_INTERVIEW.value: CreateInterviewConfig,
    ActionKind.NOTIFY_SLACK.value: NotifySlackConfig,
    ActionKind.UPDATE_CRM.value: UpdateCrmConfig,
    ActionKind.WAIT.value: WaitConfig,
    ActionKind.CONDITION.value: ConditionConfig,
}


def register_config_model(kind: str, model: Type[BaseModel]) -> None:
    """Make step construction validate ``kind`` configs against ``model``.

    This is process-wide: every workflow built afterwards is checked,
    whichever registry later runs it.
    """
    CONFIG_MODELS[kind] = model


def _placeholder_fields(model: Type[BaseModel], config: Mapping[str, Any]) -> set[str]:
    names: set[str] = set()
    for name, field in model.model_fields.items():
        keys = {name, field.alias or name}
        if any(has_placeholder(config.get(key)) for key in keys):
            names.update(keys)
    return names


def validate_step_config(kind: str, config: Mapping[str, Any]) -> None:
    """Validate an authored step configuration.

    Fields whose value still holds a ``{{...}}`` placeholder are only known
    after substitution, so type errors on them are ignored here and checked
    again when the step is dispatched. Unknown kinds are not checked.
    """
    model = CONFIG_MODELS.get(kind)
    if model is None:
        return
    try:
        model.model_validate(dict(config))
    except ValidationError as exc:
        deferred = _placeholder_fields(model, config)
        problems = [
            err for err in exc.errors() if not (err["loc"] and err["loc"][0] in deferred)
        ]
        if problems:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or kind}: {err['msg']}"
                for err in problems
            )
            raise ValueError(f"Invalid {kind} config: {details}") from None


# ----------------------------------------------------------------------
# Workflow definitions


class Step(BaseModel):
    """One configured unit of work in a workflow."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    kind: str = Field(alias="type")
    config: Dict[str, Any] = Field(default_factory=dict)
    then_steps: List["Step"] = Field(default_factory=list, alias="thenSteps")
    else_steps: List["Step"] = Field(default_factory=list, alias="elseSteps")

    @model_validator(mode="after")
    def _validate(self) -> "Step":
        if self.kind != ActionKind.CONDITION.value and (self.then_steps or self.else_steps):
            raise ValueError("only condition steps may have then/else branches")
        validate_step_config(self.kind, self.config)
        return self

    @property
    def is_condition(self) -> bool:
        return self.kind == ActionKind.CONDITION.value


ConditionConfig.model_rebuild()


class TriggerFilter(BaseModel):
    """Optional status pair; an unset side matches any status."""

    model_config = ConfigDict(populate_by_name=True)

    from_status: Optional[str] = Field(default=None, alias="fromStatus")
    to_status: Optional[str] = Field(default=None, alias="toStatus")

    def matches(self, payload: Mapping[str, Any]) -> bool:
        from_status = payload.get("fromStatus", payload.get("from_status"))
        to_status = payload.get("toStatus", payload.get("to_status"))
        if self.from_status is not None and self.from_status != from_status:
            return False
        if self.to_status is not None and self.to_status != to_status:
            return False
        return True


class Workflow(BaseModel):
    """A tenant-owned automation: trigger, filter and an ordered step list."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    tenant_id: str
    name: str = Field(min_length=1)
    description: Optional[str] = None
    is_active: bool = True
    trigger_kind: TriggerKind
    trigger_filter: TriggerFilter = Field(default_factory=TriggerFilter)
    steps: List[Step] = Field(min_length=1)
    execution_count: int = 0
    last_executed_at: Optional[datetime] = None
    created_by_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def matches_event(self, kind: TriggerKind, payload: Mapping[str, Any]) -> bool:
        """Return ``True`` when an event of ``kind`` should start this workflow."""
        if not self.is_active or self.trigger_kind != kind:
            return False
        if kind == TriggerKind.CANDIDATE_STATUS_CHANGE:
            return self.trigger_filter.matches(payload)
        return True


# ----------------------------------------------------------------------
# Queue message


class ExecutionRequest(BaseModel):
    """Envelope asking a worker to run one workflow for one event."""

    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow_id: str
    tenant_id: str
    event_kind: Optional[TriggerKind] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)

    def to_json(self) -> str:
        """Serialize request to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "ExecutionRequest":
        """Deserialize request from JSON."""
        return cls.model_validate_json(data)
