from datetime import date, datetime

from hireflow.templating import (
    UNRESOLVED,
    has_placeholder,
    resolve_path,
    substitute,
    substitute_config,
)


def test_substitute_resolves_nested_paths():
    ctx = {"candidate": {"name": "Ada", "score": 91}}
    assert substitute("Hi {{candidate.name}} ({{ candidate.score }})", ctx) == "Hi Ada (91)"


def test_unresolved_token_is_left_verbatim():
    assert substitute("Hi {{x.y}}", {}) == "Hi {{x.y}}"
    assert substitute("Hi {{x.y}}", {"x": {"y": None}}) == "Hi {{x.y}}"
    assert substitute("Hi {{x.y.z}}", {"x": {"y": "flat"}}) == "Hi {{x.y.z}}"


def test_substitution_is_idempotent_once_resolved():
    ctx = {"job": {"title": "Engineer"}}
    once = substitute("Role: {{job.title}}", ctx)
    assert substitute(once, ctx) == once


def test_values_are_rendered_for_display():
    ctx = {
        "when": datetime(2026, 3, 4, 15, 30, 0),
        "day": date(2026, 3, 4),
        "flag": True,
    }
    assert substitute("{{when}}", ctx) == "03/04/2026, 03:30:00 PM"
    assert substitute("{{day}}", ctx) == "03/04/2026"
    assert substitute("{{flag}}", ctx) == "true"


def test_resolve_path_reads_object_attributes():
    class Candidate:
        name = "Ada"

    assert resolve_path("candidate.name", {"candidate": Candidate()}) == "Ada"
    assert resolve_path("candidate.missing", {"candidate": Candidate()}) is UNRESOLVED


def test_substitute_config_walks_nested_structures():
    ctx = {"candidate": {"email": "ada@example.com"}}
    config = {
        "to": "{{candidate.email}}",
        "cc": ["{{candidate.email}}", "{{missing}}"],
        "data": {"email": "{{candidate.email}}"},
        "duration": 2,
    }
    assert substitute_config(config, ctx) == {
        "to": "ada@example.com",
        "cc": ["ada@example.com", "{{missing}}"],
        "data": {"email": "ada@example.com"},
        "duration": 2,
    }


def test_has_placeholder():
    assert has_placeholder("{{a}}")
    assert not has_placeholder("plain")
    assert not has_placeholder(3)
