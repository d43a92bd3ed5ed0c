"""hireflow: workflow automation for hiring pipelines."""

from .actions import ActionRegistry, build_registry, get_registry
from .conditions import evaluate
from .constants import ActionKind, CandidateStatus, TriggerKind
from .contracts import ExecutionRequest, Step, TriggerFilter, Workflow
from .dispatch import TriggerDispatcher
from .engine import (
    Engine,
    execute_workflow,
    get_engine,
    list_available_actions,
    trigger_workflows,
)
from .executor import WorkflowExecutor
from .persistence import get_store
from .templating import substitute
from .transports import get_transport

__version__ = "0.1.0"
__all__ = [
    "ActionKind",
    "ActionRegistry",
    "CandidateStatus",
    "Engine",
    "ExecutionRequest",
    "Step",
    "TriggerDispatcher",
    "TriggerFilter",
    "TriggerKind",
    "Workflow",
    "WorkflowExecutor",
    "build_registry",
    "evaluate",
    "execute_workflow",
    "get_engine",
    "get_registry",
    "get_store",
    "get_transport",
    "list_available_actions",
    "substitute",
    "trigger_workflows",
]
