"""Restricted boolean expressions for ``condition`` steps.

An expression such as ``{{candidate.hiPeopleScore}} >= 80 && {{job.open}}``
is evaluated in two phases. Placeholders are first replaced with literal
text (strings quoted, unresolved paths as ``null``), then the text is
tokenized, parsed into a small AST and interpreted. The grammar only has
literals, comparisons (``== != > < >= <=``), ``&&``, ``||``, ``!`` and
parentheses; there is no way to call functions, read attributes or assign.

Grammar::

    expr       := or
    or         := and ( "||" and )*
    and        := unary ( "&&" unary )*
    unary      := "!" unary | comparison
    comparison := primary ( COMPARE_OP primary )?
    primary    := NUMBER | STRING | WORD | "true" | "false" | "null" | "(" expr ")"

Unquoted words compare as strings, so ``{{candidate.status}} == hired``
works without quoting.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, List, Optional, Union

from .errors import ConditionEvaluationError
from .templating import PLACEHOLDER_PATTERN, UNRESOLVED, resolve_path

logger = logging.getLogger(__name__)

COMPARISON_OPERATORS = ("==", "!=", ">=", "<=", ">", "<")

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?", re.ASCII)
_WORD = re.compile(r"[A-Za-z_][A-Za-z0-9_\-]*")
_NUMERIC_STRING = re.compile(r"^\s*-?\d+(?:\.\d+)?\s*$")
_KEYWORDS = {"true": True, "false": False, "null": None}


@dataclass(frozen=True)
class Token:
    kind: str  # "number", "string", "word", "op", "lparen", "rparen"
    value: Any
    position: int


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Not:
    operand: "Node"


@dataclass(frozen=True)
class Compare:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Logical:
    op: str
    left: "Node"
    right: "Node"


Node = Union[Literal, Not, Compare, Logical]


@dataclass(frozen=True)
class ConditionOutcome:
    """Result of evaluating a condition; ``error`` is set when it was invalid."""

    value: bool
    error: Optional[str] = None


# ----------------------------------------------------------------------
# Phase 1: placeholder substitution


def _literal_text(value: Any) -> str:
    if value is UNRESOLVED or value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, date):
        value = value.isoformat()
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def substitute_literals(expression: str, context: Any) -> str:
    """Replace each ``{{path}}`` with the literal form of its value."""
    return PLACEHOLDER_PATTERN.sub(
        lambda match: _literal_text(resolve_path(match.group(1), context)),
        expression,
    )


# ----------------------------------------------------------------------
# Phase 2: tokenize, parse, interpret


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]
        if ch.isspace():
            i += 1
            continue
        if ch in "\"'":
            end, literal = _read_string(text, i)
            tokens.append(Token("string", literal, i))
            i = end
            continue
        match = _NUMBER.match(text, i) if ch == "-" or "0" <= ch <= "9" else None
        if match:
            raw = match.group(0)
            number: Any = float(raw) if any(c in raw for c in ".eE") else int(raw)
            tokens.append(Token("number", number, i))
            i = match.end()
            continue
        if ch == "(":
            tokens.append(Token("lparen", ch, i))
            i += 1
            continue
        if ch == ")":
            tokens.append(Token("rparen", ch, i))
            i += 1
            continue
        # JavaScript-style strict operators are accepted as their plain form.
        if text.startswith("===", i) or text.startswith("!==", i):
            tokens.append(Token("op", text[i : i + 2], i))
            i += 3
            continue
        two = text[i : i + 2]
        if two in ("==", "!=", ">=", "<=", "&&", "||"):
            tokens.append(Token("op", two, i))
            i += 2
            continue
        if ch in "<>!":
            tokens.append(Token("op", ch, i))
            i += 1
            continue
        match = _WORD.match(text, i)
        if match:
            tokens.append(Token("word", match.group(0), i))
            i = match.end()
            continue
        raise ConditionEvaluationError(f"Unexpected character {ch!r} at position {i}")
    return tokens


def _read_string(text: str, start: int) -> tuple[int, str]:
    quote = text[start]
    chars: List[str] = []
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text):
            chars.append(text[i + 1])
            i += 2
            continue
        if ch == quote:
            return i + 1, "".join(chars)
        chars.append(ch)
        i += 1
    raise ConditionEvaluationError(f"Unterminated string starting at position {start}")


class _Parser:
    def __init__(self, tokens: List[Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    def parse(self) -> Node:
        if not self._tokens:
            raise ConditionEvaluationError("Condition is empty")
        node = self._or()
        if self._pos < len(self._tokens):
            token = self._tokens[self._pos]
            if token.kind == "lparen":
                raise ConditionEvaluationError(
                    f"Function calls are not supported (position {token.position})"
                )
            raise ConditionEvaluationError(
                f"Unexpected token {token.value!r} at position {token.position}"
            )
        return node

    def _peek(self) -> Optional[Token]:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _take_op(self, *ops: str) -> Optional[str]:
        token = self._peek()
        if token is not None and token.kind == "op" and token.value in ops:
            self._pos += 1
            return token.value
        return None

    def _or(self) -> Node:
        node = self._and()
        while self._take_op("||"):
            node = Logical("||", node, self._and())
        return node

    def _and(self) -> Node:
        node = self._unary()
        while self._take_op("&&"):
            node = Logical("&&", node, self._unary())
        return node

    def _unary(self) -> Node:
        if self._take_op("!"):
            return Not(self._unary())
        return self._comparison()

    def _comparison(self) -> Node:
        left = self._primary()
        op = self._take_op(*COMPARISON_OPERATORS)
        if op is None:
            return left
        return Compare(op, left, self._primary())

    def _primary(self) -> Node:
        token = self._peek()
        if token is None:
            raise ConditionEvaluationError("Unexpected end of condition")
        self._pos += 1
        if token.kind in ("number", "string"):
            return Literal(token.value)
        if token.kind == "word":
            if token.value in _KEYWORDS:
                return Literal(_KEYWORDS[token.value])
            return Literal(token.value)
        if token.kind == "lparen":
            node = self._or()
            closing = self._peek()
            if closing is None or closing.kind != "rparen":
                raise ConditionEvaluationError("Missing closing parenthesis")
            self._pos += 1
            return node
        raise ConditionEvaluationError(
            f"Unexpected token {token.value!r} at position {token.position}"
        )


def parse(text: str) -> Node:
    """Parse substituted condition text into an AST."""
    return _Parser(tokenize(text)).parse()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _coerce_pair(left: Any, right: Any) -> tuple[Any, Any]:
    if _is_number(left) and isinstance(right, str) and _NUMERIC_STRING.match(right):
        return left, float(right)
    if _is_number(right) and isinstance(left, str) and _NUMERIC_STRING.match(left):
        return float(left), right
    return left, right


def truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value != ""
    return bool(value)


def _compare(op: str, left: Any, right: Any) -> bool:
    left, right = _coerce_pair(left, right)
    if op == "==":
        return left == right
    if op == "!=":
        return left != right
    if left is None or right is None:
        return False
    comparable = (_is_number(left) and _is_number(right)) or (
        isinstance(left, str) and isinstance(right, str)
    )
    if not comparable:
        raise ConditionEvaluationError(
            f"Cannot compare {left!r} {op} {right!r}"
        )
    if op == ">":
        return left > right
    if op == "<":
        return left < right
    if op == ">=":
        return left >= right
    return left <= right


def interpret(node: Node) -> Any:
    """Evaluate an AST node."""
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, Not):
        return not truthy(interpret(node.operand))
    if isinstance(node, Logical):
        left = truthy(interpret(node.left))
        if node.op == "&&":
            return left and truthy(interpret(node.right))
        return left or truthy(interpret(node.right))
    if isinstance(node, Compare):
        return _compare(node.op, interpret(node.left), interpret(node.right))
    raise ConditionEvaluationError(f"Unsupported expression node: {node!r}")


def evaluate_with_error(expression: str, context: Any) -> ConditionOutcome:
    """Evaluate ``expression`` and report, rather than raise, any error."""
    try:
        text = substitute_literals(expression, context)
        return ConditionOutcome(value=truthy(interpret(parse(text))))
    except ConditionEvaluationError as exc:
        logger.warning(f"Condition evaluation error for {expression!r}: {exc}")
        return ConditionOutcome(value=False, error=str(exc))


def evaluate(expression: str, context: Any) -> bool:
    """Return the truth value of ``expression``; invalid expressions are false."""
    return evaluate_with_error(expression, context).value
