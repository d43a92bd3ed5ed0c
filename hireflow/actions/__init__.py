"""Action registry and the built-in action handlers."""

from __future__ import annotations

from typing import Optional

from .base import ActionHandler, ActionMetadata, ActionServices, ConfigField
from .builtins import (
    ConditionHandler,
    CreateInterviewHandler,
    NotifySlackHandler,
    SendEmailHandler,
    UpdateCrmHandler,
    UpdateStatusHandler,
    WaitHandler,
)
from .registry import ActionRegistry

_registry_instance: ActionRegistry | None = None


def build_registry(services: Optional[ActionServices] = None) -> ActionRegistry:
    """Create a registry holding every built-in handler bound to ``services``."""
    services = services or ActionServices()
    registry = ActionRegistry()
    for handler_cls in (
        SendEmailHandler,
        UpdateStatusHandler,
        CreateInterviewHandler,
        NotifySlackHandler,
        UpdateCrmHandler,
        WaitHandler,
    ):
        registry.register(handler_cls(services))
    registry.register(ConditionHandler(services, registry))
    return registry


def get_registry() -> ActionRegistry:
    """Return the process-wide default registry, creating it on first use."""
    global _registry_instance
    if _registry_instance is None:
        _registry_instance = build_registry()
    return _registry_instance


__all__ = [
    "ActionHandler",
    "ActionMetadata",
    "ActionRegistry",
    "ActionServices",
    "ConfigField",
    "build_registry",
    "get_registry",
]
