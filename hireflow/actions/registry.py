"""Map action kinds to their handlers."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from ..contracts import Step
from ..errors import ActionExecutionError, UnknownActionError
from ..templating import substitute_config
from .base import ActionHandler, ActionMetadata, ActionServices

logger = logging.getLogger(__name__)


class ActionRegistry:
    """Dispatch table from action kind to :class:`ActionHandler`."""

    def __init__(self) -> None:
        self._handlers: Dict[str, ActionHandler] = {}

    def register(self, handler: ActionHandler) -> None:
        """Add ``handler`` to this registry only.

        Its config model is applied when this registry dispatches the kind.
        Workflow authoring does not see it unless the kind is also passed to
        :func:`hireflow.contracts.register_config_model`.
        """
        if handler.kind in self._handlers:
            logger.info(f"Replacing handler for action kind {handler.kind}")
        self._handlers[handler.kind] = handler

    def get(self, kind: str) -> ActionHandler:
        handler = self._handlers.get(kind)
        if handler is None:
            raise UnknownActionError(kind)
        return handler

    def __contains__(self, kind: object) -> bool:
        return kind in self._handlers

    def list_available_actions(self) -> List[ActionMetadata]:
        return [handler.metadata for handler in self._handlers.values()]

    @staticmethod
    def materialize(step: Step, context: Mapping[str, Any]) -> Dict[str, Any]:
        """Substitute placeholders in ``step.config``.

        A condition expression is left as written; the evaluator resolves
        its placeholders itself so strings keep their quoting.
        """
        config = substitute_config(step.config, context)
        if step.is_condition and "condition" in step.config:
            config["condition"] = step.config["condition"]
        return config

    async def dispatch(
        self,
        kind: str,
        config: Mapping[str, Any],
        context: Mapping[str, Any],
        tenant_id: str,
        depth: int = 0,
    ) -> Dict[str, Any]:
        """Validate ``config`` for ``kind`` and run the handler."""
        handler = self.get(kind)
        try:
            typed = handler.config_model.model_validate(dict(config))
        except ValidationError as exc:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or kind}: {err['msg']}"
                for err in exc.errors()
            )
            raise ActionExecutionError(f"Invalid {kind} config: {details}") from exc
        return await handler.execute(typed, context, tenant_id, depth)

    async def dispatch_step(
        self,
        step: Step,
        context: Mapping[str, Any],
        tenant_id: str,
        depth: int = 0,
        materialized: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Run a workflow step, passing condition branches to the handler."""
        config = dict(materialized if materialized is not None else self.materialize(step, context))
        if step.is_condition:
            if step.then_steps:
                config.pop("thenSteps", None)
                config["then_steps"] = step.then_steps
            if step.else_steps:
                config.pop("elseSteps", None)
                config["else_steps"] = step.else_steps
        return await self.dispatch(step.kind, config, context, tenant_id, depth)
