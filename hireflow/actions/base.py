"""Building blocks shared by every action handler."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel, Field

from ..collaborators import (
    ChatNotifier,
    CrmSync,
    EntityStore,
    InMemoryChatNotifier,
    InMemoryEntityStore,
    InMemoryMailer,
    LoggingCrmSync,
    Mailer,
)


class ConfigField(BaseModel):
    """Describes one configurable input of an action, for editors."""

    name: str
    label: str
    type: str = Field(..., description="text, textarea, select, number, json, ...")
    required: bool = False
    options: List[str] = Field(default_factory=list)
    placeholder: Optional[str] = None


class ActionMetadata(BaseModel):
    """Capability description of an action kind."""

    kind: str
    name: str
    description: str
    icon: Optional[str] = None
    config_fields: List[ConfigField] = Field(default_factory=list)
    requires_context: List[str] = Field(default_factory=list)


@dataclass
class ActionServices:
    """Collaborators available to handlers."""

    entities: EntityStore = field(default_factory=InMemoryEntityStore)
    mailer: Mailer = field(default_factory=InMemoryMailer)
    chat: ChatNotifier = field(default_factory=InMemoryChatNotifier)
    crm: CrmSync = field(default_factory=LoggingCrmSync)


class ActionHandler(ABC):
    """Executes one action kind against a materialized, typed config.

    ``depth`` is 0 for top-level steps and grows by one for every
    condition branch the step is nested in.
    """

    kind: ClassVar[str]
    config_model: ClassVar[Type[BaseModel]]
    metadata: ClassVar[ActionMetadata]

    def __init__(self, services: ActionServices) -> None:
        self.services = services

    @abstractmethod
    async def execute(
        self,
        config: Any,
        context: Mapping[str, Any],
        tenant_id: str,
        depth: int = 0,
    ) -> Dict[str, Any]:
        """Perform the action and return a JSON-compatible result."""
