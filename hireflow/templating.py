"""Placeholder substitution for step configuration.

Templates reference context values with ``{{path.to.value}}`` tokens. A token
whose path cannot be fully resolved is left exactly as written so that a
partially configured step still runs.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")


class _Unresolved:
    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return "UNRESOLVED"


UNRESOLVED: Any = _Unresolved()


def has_placeholder(value: Any) -> bool:
    """Return ``True`` when ``value`` is a string containing a ``{{...}}`` token."""
    return isinstance(value, str) and PLACEHOLDER_PATTERN.search(value) is not None


def resolve_path(path: str, context: Any) -> Any:
    """Walk ``context`` along the dotted ``path``.

    Mappings are indexed by key; other objects (pydantic models, dataclasses)
    are read by attribute. Returns :data:`UNRESOLVED` when any key is missing.
    """
    value = context
    for key in path.strip().split("."):
        if isinstance(value, Mapping):
            if key not in value:
                return UNRESOLVED
            value = value[key]
        elif value is not None and not isinstance(value, (str, int, float, bool)) and hasattr(value, key):
            value = getattr(value, key)
        else:
            return UNRESOLVED
    return value


def format_value(value: Any) -> str:
    """Render a resolved value the way it should appear in messages."""
    if isinstance(value, datetime):
        return value.strftime("%m/%d/%Y, %I:%M:%S %p")
    if isinstance(value, date):
        return value.strftime("%m/%d/%Y")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def substitute(template: str, context: Any) -> str:
    """Replace every resolvable ``{{path}}`` token in ``template``."""

    def _replace(match: re.Match[str]) -> str:
        value = resolve_path(match.group(1), context)
        if value is UNRESOLVED or value is None:
            return match.group(0)
        return format_value(value)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def substitute_config(config: Any, context: Any) -> Any:
    """Materialize a configuration structure against ``context``.

    Strings are substituted, dicts and lists are walked recursively and every
    other value is returned unchanged.
    """
    if isinstance(config, str):
        return substitute(config, context)
    if isinstance(config, Mapping):
        return {key: substitute_config(value, context) for key, value in config.items()}
    if isinstance(config, list):
        return [substitute_config(item, context) for item in config]
    return config
