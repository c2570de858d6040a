"""Row-level expression evaluation with three-valued logic.

Predicates evaluate to a Boolean ``Value`` or ``NULL``. AND/OR/NOT follow SQL
three-valued logic; a row passes a filter only when its predicate is TRUE.
Both operands of AND/OR are always evaluated so a type error surfaces
regardless of operand order.
"""

from __future__ import annotations

from typing import Mapping

from tabular_engine.domain.entities.expressions import (
    ColumnExpr,
    ComparisonExpr,
    ComparisonOp,
    Expression,
    LiteralExpr,
    LogicalExpr,
    LogicalOp,
)
from tabular_engine.domain.entities.table import Row
from tabular_engine.domain.errors import PlanError, QueryTypeError
from tabular_engine.domain.value_objects import (
    FALSE,
    NULL,
    TRUE,
    Value,
    ValueType,
    compare_values,
    values_equal,
)

_ORDERING = {
    ComparisonOp.LT: lambda c: c < 0,
    ComparisonOp.LE: lambda c: c <= 0,
    ComparisonOp.GT: lambda c: c > 0,
    ComparisonOp.GE: lambda c: c >= 0,
}


def _truth(result: bool | None) -> Value:
    if result is None:
        return NULL
    return TRUE if result else FALSE


def _as_condition(value: Value) -> bool | None:
    if value.is_null:
        return None
    if value.type is not ValueType.BOOLEAN:
        raise QueryTypeError(f"Expected BOOLEAN condition, got {value.type.value}")
    return value.raw


def evaluate(expr: Expression, row: Row, positions: Mapping[str, int]) -> Value:
    """Evaluate an expression against one row.

    Args:
        expr: Expression to evaluate
        row: Row values
        positions: Column name -> index into ``row``

    Raises:
        QueryTypeError: On comparisons across incompatible types.
    """
    if isinstance(expr, LiteralExpr):
        return expr.value
    if isinstance(expr, ColumnExpr):
        return row[positions[expr.name]]
    if isinstance(expr, ComparisonExpr):
        left = evaluate(expr.left, row, positions)
        if expr.op is ComparisonOp.IS_NULL:
            return _truth(left.is_null)
        if expr.op is ComparisonOp.IS_NOT_NULL:
            return _truth(not left.is_null)
        right = evaluate(expr.right, row, positions)
        return compare(left, expr.op, right)
    if isinstance(expr, LogicalExpr):
        conditions = [_as_condition(evaluate(o, row, positions)) for o in expr.operands]
        if expr.op is LogicalOp.NOT:
            return NULL if conditions[0] is None else _truth(not conditions[0])
        if expr.op is LogicalOp.AND:
            if any(c is False for c in conditions):
                return FALSE
            return NULL if any(c is None for c in conditions) else TRUE
        if any(c is True for c in conditions):
            return TRUE
        return NULL if any(c is None for c in conditions) else FALSE
    raise PlanError(f"Cannot evaluate expression {expr}")


def compare(left: Value, op: ComparisonOp, right: Value) -> Value:
    """Apply a binary comparison operator under the coercion rules."""
    if op is ComparisonOp.EQ:
        return _truth(values_equal(left, right))
    if op is ComparisonOp.NE:
        equal = values_equal(left, right)
        return _truth(None if equal is None else not equal)
    ordering = compare_values(left, right)
    if ordering is None:
        return NULL
    return _truth(_ORDERING[op](ordering))


def is_true(value: Value) -> bool:
    """Whether a predicate result lets a row through. Null counts as false."""
    return _as_condition(value) is True


# One value per type tag; coercion failures depend only on the tags involved.
_SAMPLES = {
    ValueType.INTEGER: Value(ValueType.INTEGER, 0),
    ValueType.FLOAT: Value(ValueType.FLOAT, 0.0),
    ValueType.TEXT: Value(ValueType.TEXT, ""),
    ValueType.BOOLEAN: FALSE,
    ValueType.NULL: NULL,
}


def check_predicate(expr: Expression, types: Mapping[str, ValueType]) -> None:
    """Type-check a filter predicate against column types before any row is read.

    Columns hold values of their declared type or Null, so a predicate that
    passes here cannot raise ``QueryTypeError`` during evaluation. All-null
    columns are typed NULL and compare as unknown.

    Raises:
        QueryTypeError: If some comparison pairs incompatible types, a
            Boolean is ordered, or a condition is not Boolean.
    """
    _as_condition(_SAMPLES[static_type(expr, types)])


def static_type(expr: Expression, types: Mapping[str, ValueType]) -> ValueType:
    """Result type of an expression over columns of the given types."""
    if isinstance(expr, LiteralExpr):
        return expr.value.type
    if isinstance(expr, ColumnExpr):
        return types[expr.name]
    if isinstance(expr, ComparisonExpr):
        left = static_type(expr.left, types)
        if expr.right is not None:
            right = static_type(expr.right, types)
            compare(_SAMPLES[left], expr.op, _SAMPLES[right])
        return ValueType.BOOLEAN
    if isinstance(expr, LogicalExpr):
        for operand in expr.operands:
            _as_condition(_SAMPLES[static_type(operand, types)])
        return ValueType.BOOLEAN
    raise PlanError(f"Cannot type expression {expr}")
