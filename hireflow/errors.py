"""Exception hierarchy for the workflow engine.

Step-scoped errors (:class:`StepError` subclasses) are caught at the
executor's per-step boundary and recorded on the execution step.
:class:`PersistenceError` is the only kind that aborts a whole execution.
"""

from __future__ import annotations


class HireflowError(Exception):
    """Base class for all hireflow errors."""


class StepError(HireflowError):
    """An error confined to a single workflow step."""


class ConditionEvaluationError(StepError):
    """A condition expression could not be parsed or evaluated."""


class UnknownActionError(StepError):
    """A step refers to an action kind that is not registered."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"Unknown action type: {kind}")
        self.kind = kind


class ActionExecutionError(StepError):
    """An action's precondition failed or a collaborator call failed."""


class PersistenceError(HireflowError):
    """The execution store failed to read or write a record."""


class WorkflowNotFoundError(HireflowError):
    """A workflow or execution lookup found no record."""
