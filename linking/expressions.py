"""Safe evaluation for filter expressions.

Expression filters reference row fields as ``datum.<field>`` (or
``datum['field']``). Only constants, comparisons, boolean operators and basic
arithmetic are supported: no calls, no other attribute access, no
comprehensions. Anything outside that subset evaluates to False.
"""

from __future__ import annotations

import ast
import operator
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

_DATUM = "datum"
_STRING_LITERAL = re.compile(r"""('(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")""")

_COMPARE = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}

_BINARY = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
}


class _Unsupported(Exception):
    """Internal signal for nodes outside the supported subset."""


@dataclass(frozen=True, slots=True)
class ExpressionInspection:
    """Result of inspecting a filter expression.

    Args:
        referenced_fields: Row fields referenced through `datum`.
        is_valid_syntax: Whether the expression parses.
        is_safe: Whether the expression uses only the supported subset.
    """

    referenced_fields: frozenset[str]
    is_valid_syntax: bool
    is_safe: bool


def _to_python(expression: str) -> str:
    """Translate the renderer's boolean operators into Python spelling.

    Quoted string literals are left untouched.
    """

    parts = _STRING_LITERAL.split(expression)
    for idx in range(0, len(parts), 2):
        parts[idx] = (
            parts[idx].replace("&&", " and ").replace("||", " or ").replace("!==", "!=").replace("===", "==")
        )
    return "".join(parts)


def inspect_expression(expression: str) -> ExpressionInspection:
    """Inspect an expression for syntax, safety and referenced fields."""

    try:
        tree = ast.parse(_to_python(expression), mode="eval")
    except SyntaxError:
        return ExpressionInspection(referenced_fields=frozenset(), is_valid_syntax=False, is_safe=False)

    fields: set[str] = set()
    try:
        _collect(tree.body, fields)
    except _Unsupported:
        return ExpressionInspection(referenced_fields=frozenset(fields), is_valid_syntax=True, is_safe=False)
    return ExpressionInspection(referenced_fields=frozenset(fields), is_valid_syntax=True, is_safe=True)


def evaluate_expression(expression: str, row: Mapping[str, Any]) -> bool:
    """Evaluate a filter expression against one row.

    Args:
        expression: Expression such as ``"datum.rank <= 15"``.
        row: Row mapping supplying `datum` fields.

    Returns:
        The truthiness of the expression, or False when it cannot be evaluated.
    """

    try:
        tree = ast.parse(_to_python(expression), mode="eval")
        return bool(_eval_node(tree.body, row))
    except (SyntaxError, _Unsupported, TypeError, ValueError, ZeroDivisionError):
        return False


def _datum_field(node: ast.AST) -> str | None:
    if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name) and node.value.id == _DATUM:
        return node.attr
    if (
        isinstance(node, ast.Subscript)
        and isinstance(node.value, ast.Name)
        and node.value.id == _DATUM
        and isinstance(node.slice, ast.Constant)
        and isinstance(node.slice.value, str)
    ):
        return node.slice.value
    return None


def _collect(node: ast.AST, fields: set[str]) -> None:
    field_name = _datum_field(node)
    if field_name is not None:
        fields.add(field_name)
        return
    if isinstance(node, ast.Constant):
        return
    if isinstance(node, ast.BoolOp):
        for value in node.values:
            _collect(value, fields)
        return
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.Not, ast.USub, ast.UAdd)):
        _collect(node.operand, fields)
        return
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY:
        _collect(node.left, fields)
        _collect(node.right, fields)
        return
    if isinstance(node, ast.Compare) and all(type(op) in _COMPARE for op in node.ops):
        _collect(node.left, fields)
        for comparator in node.comparators:
            _collect(comparator, fields)
        return
    raise _Unsupported(type(node).__name__)


def _eval_node(node: ast.AST, row: Mapping[str, Any]) -> Any:
    """Recursively evaluate an AST node with strict safety rules."""

    field_name = _datum_field(node)
    if field_name is not None:
        return row.get(field_name)

    if isinstance(node, ast.Constant):
        return node.value

    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            return all(_eval_node(value, row) for value in node.values)
        return any(_eval_node(value, row) for value in node.values)

    if isinstance(node, ast.UnaryOp):
        operand = _eval_node(node.operand, row)
        if isinstance(node.op, ast.Not):
            return not operand
        if operand is None:
            raise TypeError("missing operand")
        if isinstance(node.op, ast.USub):
            return -operand
        if isinstance(node.op, ast.UAdd):
            return +operand

    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY:
        left = _eval_node(node.left, row)
        right = _eval_node(node.right, row)
        if left is None or right is None:
            raise TypeError("missing operand")
        return _BINARY[type(node.op)](left, right)

    if isinstance(node, ast.Compare) and all(type(op) in _COMPARE for op in node.ops):
        left = _eval_node(node.left, row)
        for op, comparator in zip(node.ops, node.comparators):
            right = _eval_node(comparator, row)
            if left is None or right is None:
                return False
            if not _COMPARE[type(op)](left, right):
                return False
            left = right
        return True

    raise _Unsupported(type(node).__name__)
