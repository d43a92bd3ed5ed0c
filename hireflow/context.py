"""Build the per-execution context from an event payload."""

from __future__ import annotations

import copy
import logging
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from .collaborators import EntityStore

logger = logging.getLogger(__name__)

_ENTITIES = ("candidate", "job", "interview")


def _lookup_id(payload: Mapping[str, Any], entity: str) -> Optional[str]:
    for key in (f"{entity}_id", f"{entity}Id"):
        value = payload.get(key)
        if value is not None:
            return str(value)
    return None


def _attr(entity: Any, *names: str) -> Any:
    for name in names:
        if isinstance(entity, Mapping):
            value = entity.get(name)
        else:
            value = getattr(entity, name, None)
        if value is not None:
            return value
    return None


async def build_context(
    payload: Mapping[str, Any],
    tenant_id: str,
    entities: Optional[EntityStore] = None,
) -> Dict[str, Any]:
    """Return a context with ``candidate``, ``job`` and ``interview`` hydrated.

    Entities already present in ``payload`` are kept as given. Missing ones
    are fetched by ``<entity>_id`` (or ``<entity>Id``); an interview also
    supplies the candidate and job ids when those are absent.
    """
    context: Dict[str, Any] = dict(payload)
    if entities is None:
        return context

    if context.get("interview") is None:
        interview_id = _lookup_id(payload, "interview")
        if interview_id is not None:
            context["interview"] = await entities.get_interview(interview_id, tenant_id)

    interview = context.get("interview")
    ids = {entity: _lookup_id(payload, entity) for entity in _ENTITIES}
    if ids["candidate"] is None:
        candidate_id = _attr(interview, "candidate_id", "candidateId")
        ids["candidate"] = str(candidate_id) if candidate_id is not None else None
    if ids["job"] is None:
        job_id = _attr(interview, "job_id", "jobId")
        ids["job"] = str(job_id) if job_id is not None else None

    if context.get("candidate") is None and ids["candidate"] is not None:
        context["candidate"] = await entities.get_candidate(ids["candidate"], tenant_id)
    if ids["job"] is None:
        job_id = _attr(context.get("candidate"), "job_id", "jobId")
        ids["job"] = str(job_id) if job_id is not None else None
    if context.get("job") is None and ids["job"] is not None:
        context["job"] = await entities.get_job(ids["job"], tenant_id)

    for entity in _ENTITIES:
        if ids[entity] is not None and context.get(entity) is None:
            logger.warning(f"{entity} {ids[entity]} not found for tenant {tenant_id}")
    return context


def trigger_entity(context: Mapping[str, Any]) -> tuple[Optional[str], Optional[str]]:
    """Return ``(entity_type, entity_id)`` identifying what started a run."""
    entity_type = context.get("entity_type") or context.get("entityType")
    entity_id = context.get("entity_id") or context.get("entityId")
    if entity_type is None:
        for entity in ("interview", "candidate"):
            if context.get(entity) is not None or _lookup_id(context, entity) is not None:
                entity_type = entity
                break
    if entity_type is not None and entity_id is None:
        entity = context.get(entity_type)
        entity_id = _attr(entity, "id") if entity is not None else _lookup_id(context, entity_type)
    return (
        str(entity_type) if entity_type is not None else None,
        str(entity_id) if entity_id is not None else None,
    )


# ----------------------------------------------------------------------
# Snapshots stored on an execution

def _parse_datetime(raw: str) -> datetime:
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw)


_TEMPORAL_PARSERS = {"datetime": _parse_datetime, "date": date.fromisoformat}


def _pointer_part(key: Any) -> str:
    return str(key).replace("~", "~0").replace("/", "~1")


def _temporal_types(value: Any, pointer: str = "") -> Dict[str, str]:
    if isinstance(value, BaseModel):
        value = value.model_dump()
    if isinstance(value, datetime):
        return {pointer: "datetime"}
    if isinstance(value, date):
        return {pointer: "date"}
    found: Dict[str, str] = {}
    if isinstance(value, Mapping):
        for key, item in value.items():
            found.update(_temporal_types(item, f"{pointer}/{_pointer_part(key)}"))
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            found.update(_temporal_types(item, f"{pointer}/{index}"))
    return found


def snapshot_context(context: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """Return a JSON-compatible copy of ``context`` and the JSON pointers of its dates.

    Dates and datetimes become ISO strings in the copy; the pointer map lets
    :func:`restore_context` turn them back so placeholders render the same
    after a resume as before it.
    """
    snapshot = to_jsonable_python(dict(context), fallback=str)
    return snapshot, _temporal_types(dict(context))


def restore_context(snapshot: Mapping[str, Any], types: Mapping[str, str]) -> Dict[str, Any]:
    """Rebuild a context saved with :func:`snapshot_context`."""
    context: Dict[str, Any] = copy.deepcopy(dict(snapshot))
    for pointer, kind in types.items():
        parts = [
            part.replace("~1", "/").replace("~0", "~") for part in pointer.split("/")[1:]
        ]
        if not parts:
            continue
        container: Any = context
        try:
            for part in parts[:-1]:
                container = container[int(part)] if isinstance(container, list) else container[part]
            last: Any = int(parts[-1]) if isinstance(container, list) else parts[-1]
            raw = container[last]
        except (KeyError, IndexError, ValueError, TypeError):
            logger.warning(f"Context snapshot has no value at {pointer}")
            continue
        if isinstance(raw, str):
            container[last] = _TEMPORAL_PARSERS[kind](raw)
    return context
