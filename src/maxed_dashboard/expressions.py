# Maxed Dashboard - Marketing analytics dashboard core
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Evaluation of SQL-like metric expressions for Maxed Dashboard.

Metric definitions are written the way they would be in a warehouse
query, for example::

    SAFE_DIVIDE(conversions_value, spend)
    SAFE_DIVIDE(clicks, impressions) * 100
    (revenue - cost) / orders

Supported grammar
-----------------
    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "/") unary)*
    unary   := ("-" | "+") unary | primary
    primary := NUMBER
             | SAFE_DIVIDE "(" expr "," expr ")"
             | FIELD
             | "(" expr ")"

``SAFE_DIVIDE`` is matched case-insensitively and is the only function.
Anything else (comparisons, strings, attribute access, other calls) is a
syntax error. Expressions are parsed into a small tree of frozen
dataclasses and walked against the row; caller-supplied text is never
executed as code.

Failure policy
--------------
``evaluate()`` never raises. Syntax errors, unknown fields, non-numeric
operands and non-finite results are logged as warnings and degrade to
``0.0``, since these values feed numeric displays. ``parse_expression()``
and ``evaluate_strict()`` raise ExpressionError instead, for checking
formulas when they are defined.

A field that is present with a None value counts as zero in arithmetic
(``conversions_value - spend`` gives ``-spend``); inside SAFE_DIVIDE it
makes the division yield 0.0.
"""

import math
import numbers
import operator
import re
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Union

from .logging import get_logger

logger = get_logger(__name__)

SAFE_DIVIDE = "SAFE_DIVIDE"


class ExpressionError(ValueError):
    """Raised when an expression cannot be parsed or evaluated."""


# ---------------------------------------------------------------------------
# Expression tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Field:
    name: str


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: "Node"


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class SafeDivide:
    numerator: "Node"
    denominator: "Node"


Node = Union[Number, Field, UnaryOp, BinaryOp, SafeDivide]

_BINARY_OPERATORS = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
}

_UNARY_OPERATORS = {
    "-": operator.neg,
    "+": operator.pos,
}


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    (?P<space>\s+)
  | (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<punct>[-+*/(),])
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class Token:
    kind: str  # 'number', 'name', 'punct' or 'end'
    text: str
    pos: int


def tokenize(expression: str) -> list[Token]:
    """
    Split an expression into tokens, ending with an 'end' token.

    Raises:
        ExpressionError: on any character outside the grammar.
    """
    tokens: list[Token] = []
    pos = 0
    while pos < len(expression):
        match = _TOKEN_RE.match(expression, pos)
        if match is None:
            raise ExpressionError(
                f"Unexpected character {expression[pos]!r} at position {pos} "
                f"in expression {expression!r}"
            )
        kind = match.lastgroup or ""
        if kind != "space":
            tokens.append(Token(kind, match.group(), pos))
        pos = match.end()

    tokens.append(Token("end", "", len(expression)))
    return tokens


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class _Parser:
    """Recursive-descent parser over the token list of one expression."""

    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = tokenize(expression)
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _error(self, message: str) -> ExpressionError:
        token = self.current
        where = "end of input" if token.kind == "end" else f"{token.text!r}"
        return ExpressionError(
            f"{message} at {where} (position {token.pos}) "
            f"in expression {self.expression!r}"
        )

    def _expect(self, text: str) -> None:
        if self.current.kind != "punct" or self.current.text != text:
            raise self._error(f"Expected {text!r}")
        self._advance()

    def parse(self) -> Node:
        node = self._expr()
        if self.current.kind != "end":
            raise self._error("Unexpected token")
        return node

    def _expr(self) -> Node:
        node = self._term()
        while self.current.kind == "punct" and self.current.text in ("+", "-"):
            op = self._advance().text
            node = BinaryOp(op, node, self._term())
        return node

    def _term(self) -> Node:
        node = self._unary()
        while self.current.kind == "punct" and self.current.text in ("*", "/"):
            op = self._advance().text
            node = BinaryOp(op, node, self._unary())
        return node

    def _unary(self) -> Node:
        if self.current.kind == "punct" and self.current.text in _UNARY_OPERATORS:
            op = self._advance().text
            return UnaryOp(op, self._unary())
        return self._primary()

    def _primary(self) -> Node:
        token = self.current

        if token.kind == "number":
            self._advance()
            return Number(float(token.text))

        if token.kind == "name":
            self._advance()
            is_call = self.current.kind == "punct" and self.current.text == "("
            if not is_call:
                return Field(token.text)
            if token.text.upper() != SAFE_DIVIDE:
                raise ExpressionError(
                    f"Unsupported function {token.text!r} in expression "
                    f"{self.expression!r}; only {SAFE_DIVIDE} is available"
                )
            self._expect("(")
            numerator = self._expr()
            self._expect(",")
            denominator = self._expr()
            self._expect(")")
            return SafeDivide(numerator, denominator)

        if token.kind == "punct" and token.text == "(":
            self._advance()
            node = self._expr()
            self._expect(")")
            return node

        raise self._error("Unexpected token")


@lru_cache(maxsize=512)
def parse_expression(expression: str) -> Node:
    """
    Parse an expression into its tree.

    Results are cached per expression string, since the same formula is
    usually evaluated against many rows.

    Raises:
        ExpressionError: if the expression is empty or not in the grammar.
    """
    if not isinstance(expression, str) or not expression.strip():
        raise ExpressionError(f"Empty or invalid expression: {expression!r}")
    return _Parser(expression).parse()


def referenced_fields(expression: str) -> set[str]:
    """Return the names of all fields an expression reads."""
    fields: set[str] = set()
    stack: list[Node] = [parse_expression(expression)]
    while stack:
        node = stack.pop()
        if isinstance(node, Field):
            fields.add(node.name)
        elif isinstance(node, UnaryOp):
            stack.append(node.operand)
        elif isinstance(node, BinaryOp):
            stack.extend((node.left, node.right))
        elif isinstance(node, SafeDivide):
            stack.extend((node.numerator, node.denominator))
    return fields


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _is_real(value: Any) -> bool:
    return (
        isinstance(value, numbers.Real)
        and not isinstance(value, bool)
        and not math.isnan(value)
    )


def safe_divide(numerator: Any, denominator: Any) -> float:
    """
    Divide, returning 0.0 instead of failing.

    The result is 0.0 when the denominator is zero, or when either operand
    is not a real number (None, missing, string, boolean or NaN).
    """
    if not _is_real(numerator) or not _is_real(denominator):
        return 0.0
    if denominator == 0:
        return 0.0
    return float(numerator) / float(denominator)


def _as_number(value: Any, node: Node) -> float:
    # A field that is present but empty counts as zero in arithmetic.
    if value is None:
        return 0.0
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return float(value)
    label = f"field {node.name!r}" if isinstance(node, Field) else "operand"
    raise ExpressionError(f"Non-numeric value for {label}: {value!r}")


def _eval(node: Node, row: Mapping[str, Any]) -> Any:
    if isinstance(node, Number):
        return node.value

    if isinstance(node, Field):
        if node.name not in row:
            raise ExpressionError(f"Unknown field in expression: {node.name!r}")
        return row[node.name]

    if isinstance(node, UnaryOp):
        operand = _as_number(_eval(node.operand, row), node.operand)
        return _UNARY_OPERATORS[node.op](operand)

    if isinstance(node, BinaryOp):
        left = _as_number(_eval(node.left, row), node.left)
        right = _as_number(_eval(node.right, row), node.right)
        return _BINARY_OPERATORS[node.op](left, right)

    if isinstance(node, SafeDivide):
        return safe_divide(
            _eval_divide_operand(node.numerator, row),
            _eval_divide_operand(node.denominator, row),
        )

    raise ExpressionError(f"Unsupported expression node: {type(node).__name__}")


def _eval_divide_operand(node: Node, row: Mapping[str, Any]) -> Any:
    # A bare field missing from the row is simply absent for SAFE_DIVIDE.
    if isinstance(node, Field) and node.name not in row:
        return None
    return _eval(node, row)


def evaluate_strict(expression: str, row: Mapping[str, Any]) -> float:
    """
    Evaluate an expression against a row, raising on any failure.

    Raises:
        ExpressionError: on syntax errors, unknown fields, non-numeric
            operands or a non-finite result.
        ZeroDivisionError: on a plain ``/`` by zero.
    """
    tree = parse_expression(expression)
    value = _as_number(_eval(tree, row), tree)
    if not math.isfinite(value):
        raise ExpressionError(f"Non-finite result {value!r} for {expression!r}")
    return value


def evaluate(expression: str, row: Mapping[str, Any]) -> float:
    """
    Evaluate an expression against a metric row.

    Args:
        expression: Formula string (e.g. "SAFE_DIVIDE(conversions_value, spend)").
        row: Mapping of field names to numeric (or None) values.

    Returns:
        The result as a float, or 0.0 if the expression cannot be evaluated
        or does not produce a finite number. Failures are logged.
    """
    try:
        return evaluate_strict(expression, row)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to evaluate expression %r: %s", expression, exc)
        return 0.0
