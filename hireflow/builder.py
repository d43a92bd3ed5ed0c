"""Editing operations on a workflow's step list.

Every function returns a new list and leaves its input untouched, so an
editor can keep the saved version around to detect unsaved changes. Steps
are addressed by ``id`` at any nesting depth.
"""

from __future__ import annotations

import uuid
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional

from .contracts import Step
from .errors import HireflowError

Branch = Literal["then", "else"]


class StepNotFoundError(HireflowError):
    """No step with the requested id exists in the list."""


def generate_step_id() -> str:
    return f"step-{uuid.uuid4().hex[:12]}"


def new_step(
    kind: str, config: Optional[Mapping[str, Any]] = None, step_id: Optional[str] = None
) -> Step:
    """Create a validated step with a fresh id."""
    return Step(id=step_id or generate_step_id(), kind=kind, config=dict(config or {}))


def find_step(steps: List[Step], step_id: str) -> Optional[Step]:
    for step in steps:
        if step.id == step_id:
            return step
        found = find_step(step.then_steps, step_id) or find_step(step.else_steps, step_id)
        if found is not None:
            return found
    return None


def _with_branches(step: Step, then_steps: List[Step], else_steps: List[Step]) -> Step:
    return step.model_copy(update={"then_steps": then_steps, "else_steps": else_steps})


def _map_steps(
    steps: List[Step], step_id: str, replace: Callable[[Step], List[Step]]
) -> tuple[List[Step], bool]:
    """Replace the step ``step_id`` with ``replace(step)`` wherever it is nested."""
    result: List[Step] = []
    found = False
    for step in steps:
        if not found and step.id == step_id:
            result.extend(replace(step))
            found = True
            continue
        if not found and step.is_condition:
            then_steps, found = _map_steps(step.then_steps, step_id, replace)
            else_steps = step.else_steps
            if not found:
                else_steps, found = _map_steps(step.else_steps, step_id, replace)
            if found:
                step = _with_branches(step, then_steps, else_steps)
        result.append(step)
    return result, found


def add_step(
    steps: List[Step],
    kind: str,
    config: Optional[Mapping[str, Any]] = None,
    after_step_id: Optional[str] = None,
    branch: Optional[Branch] = None,
    step_id: Optional[str] = None,
) -> List[Step]:
    """Insert a new step of ``kind``.

    - no ``after_step_id``: append to the top level;
    - ``after_step_id`` and no ``branch``: insert right after that step, in
      whichever list holds it;
    - ``after_step_id`` naming a condition step and ``branch`` set to
      ``"then"`` or ``"else"``: append to that branch.
    """
    step = new_step(kind, config, step_id)
    if after_step_id is None:
        if branch is not None:
            raise ValueError("branch requires after_step_id naming a condition step")
        return [*steps, step]

    if branch is None:
        updated, found = _map_steps(steps, after_step_id, lambda target: [target, step])
    else:
        if branch not in ("then", "else"):
            raise ValueError(f"branch must be 'then' or 'else', not {branch!r}")

        def _append_to_branch(target: Step) -> List[Step]:
            if not target.is_condition:
                raise ValueError(f"Step {after_step_id} is not a condition step")
            if branch == "then":
                return [_with_branches(target, [*target.then_steps, step], target.else_steps)]
            return [_with_branches(target, target.then_steps, [*target.else_steps, step])]

        updated, found = _map_steps(steps, after_step_id, _append_to_branch)

    if not found:
        raise StepNotFoundError(f"Step {after_step_id} not found")
    return updated


def remove_step(steps: List[Step], step_id: str) -> List[Step]:
    """Remove the step ``step_id`` (and, for a condition, its branches)."""
    updated, found = _map_steps(steps, step_id, lambda target: [])
    if not found:
        raise StepNotFoundError(f"Step {step_id} not found")
    return updated


def update_step_config(
    steps: List[Step], step_id: str, config: Mapping[str, Any]
) -> List[Step]:
    """Merge ``config`` into the step's configuration and re-validate it."""

    def _merge(target: Step) -> List[Step]:
        merged: Dict[str, Any] = {**target.config, **config}
        return [Step.model_validate({**target.model_dump(), "config": merged})]

    updated, found = _map_steps(steps, step_id, _merge)
    if not found:
        raise StepNotFoundError(f"Step {step_id} not found")
    return updated
