import pytest

from hireflow.conditions import (
    Compare,
    Literal,
    Logical,
    evaluate,
    evaluate_with_error,
    parse,
    substitute_literals,
    tokenize,
)
from hireflow.errors import ConditionEvaluationError


@pytest.mark.parametrize(
    "score, expected",
    [(85, True), (80, True), (70, False)],
)
def test_score_threshold(score, expected):
    ctx = {"candidate": {"hiPeopleScore": score}}
    assert evaluate("{{candidate.hiPeopleScore}} >= 80", ctx) is expected


def test_missing_value_is_false():
    assert evaluate("{{candidate.hiPeopleScore}} >= 80", {"candidate": {}}) is False


def test_string_values_are_quoted_before_parsing():
    ctx = {"candidate": {"status": "offer sent", "name": 'Jo "JJ" Smith'}}
    assert substitute_literals("{{candidate.status}}", ctx) == '"offer sent"'
    assert evaluate('{{candidate.status}} == "offer sent"', ctx)
    assert evaluate("{{candidate.name}} != null", ctx)


def test_bare_words_compare_as_strings():
    ctx = {"candidate": {"status": "hired"}}
    assert evaluate("{{candidate.status}} == hired", ctx)
    assert not evaluate("{{candidate.status}} == rejected", ctx)


def test_logical_operators_and_precedence():
    ctx = {"a": 1, "b": 0, "c": True}
    assert evaluate("{{a}} == 1 || {{b}} == 1 && {{c}}", ctx)
    assert not evaluate("({{a}} == 1 || {{b}} == 1) && !{{c}}", ctx)
    assert evaluate("!({{b}} > 0)", ctx)


def test_strict_equality_operators_are_accepted():
    assert evaluate("{{x}} === 3", {"x": 3})
    assert evaluate("{{x}} !== 4", {"x": 3})


def test_numeric_strings_compare_with_numbers():
    assert evaluate("{{score}} > 50", {"score": "75"})
    assert evaluate("{{score}} == 75", {"score": "75"})


def test_null_equality_and_ordering():
    assert evaluate("{{missing}} == null", {})
    assert not evaluate("{{missing}} < 3", {})


def test_parser_builds_typed_ast():
    node = parse("1 < 2 && true")
    assert isinstance(node, Logical)
    assert isinstance(node.left, Compare)
    assert node.right == Literal(True)


def test_tokenizer_records_positions():
    tokens = tokenize('"ab" == x')
    assert [(t.kind, t.position) for t in tokens] == [("string", 0), ("op", 5), ("word", 8)]


@pytest.mark.parametrize(
    "expression",
    [
        "process.exit(1)",
        "{{a}} = 1",
        "1 >",
        "(1 == 1",
        "",
        '"unterminated',
        "a; b",
        "{{a}} > \u00b2",
        "{{a}} == -",
    ],
)
def test_invalid_expressions_are_false_with_error(expression):
    outcome = evaluate_with_error(expression, {"a": 1})
    assert outcome.value is False
    assert outcome.error


def test_function_call_is_rejected():
    with pytest.raises(ConditionEvaluationError, match="Function calls"):
        parse("alert(1)")


def test_ordering_of_incompatible_types_is_an_error():
    outcome = evaluate_with_error('{{a}} > "x"', {"a": 1})
    assert outcome.value is False
    assert "Cannot compare" in outcome.error
