"""Typed scalar values and their coercion rules.

Every cell in a table is a ``Value``: a closed tagged union over Integer,
Float, Text, Boolean and Null.

Coercion rules:
    - Integer and Float compare numerically. A mixed pair is promoted to
      Float.
    - Text compares lexicographically.
    - Boolean supports equality only.
    - Null is incomparable: comparisons with Null yield ``None``.
    - Any other pairing raises ``QueryTypeError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from tabular_engine.domain.errors import QueryTypeError


class ValueType(Enum):
    """Type tags for values and columns."""

    INTEGER = "INTEGER"
    FLOAT = "FLOAT"
    TEXT = "TEXT"
    BOOLEAN = "BOOLEAN"
    NULL = "NULL"

    @property
    def is_numeric(self) -> bool:
        return self in (ValueType.INTEGER, ValueType.FLOAT)


@dataclass(frozen=True, slots=True)
class Value:
    """A single typed value.

    Attributes:
        type: The type tag
        raw: The underlying Python value (``None`` for Null)

    Example:
        >>> Value.of(3)
        Value(INTEGER, 3)
        >>> Value.of(None).is_null
        True
    """

    type: ValueType
    raw: Any = None

    @classmethod
    def of(cls, raw: Any) -> Value:
        """Wrap a Python value, inferring its type tag.

        Raises:
            QueryTypeError: If the Python type has no engine counterpart.
        """
        if raw is None:
            return NULL
        # bool is a subclass of int, so it must be checked first
        if isinstance(raw, bool):
            return TRUE if raw else FALSE
        if isinstance(raw, int):
            return cls(ValueType.INTEGER, raw)
        if isinstance(raw, float):
            return cls(ValueType.FLOAT, raw)
        if isinstance(raw, str):
            return cls(ValueType.TEXT, raw)
        raise QueryTypeError(f"Unsupported value type: {type(raw).__name__}")

    @property
    def is_null(self) -> bool:
        return self.type is ValueType.NULL

    def to_python(self) -> Any:
        return self.raw

    def __repr__(self) -> str:
        if self.is_null:
            return "Value(NULL)"
        return f"Value({self.type.value}, {self.raw!r})"

    def __str__(self) -> str:
        if self.is_null:
            return "NULL"
        if self.type is ValueType.TEXT:
            return f"'{self.raw}'"
        if self.type is ValueType.BOOLEAN:
            return "TRUE" if self.raw else "FALSE"
        return str(self.raw)


NULL = Value(ValueType.NULL, None)
TRUE = Value(ValueType.BOOLEAN, True)
FALSE = Value(ValueType.BOOLEAN, False)


def _numeric_pair(left: Value, right: Value) -> tuple[Any, Any]:
    if left.type is not right.type:
        return float(left.raw), float(right.raw)
    return left.raw, right.raw


def _incompatible(op: str, left: Value, right: Value) -> QueryTypeError:
    return QueryTypeError(
        f"Cannot {op} {left.type.value} with {right.type.value}"
    )


def values_equal(left: Value, right: Value) -> bool | None:
    """Equality under the coercion rules; ``None`` when either side is Null."""
    if left.is_null or right.is_null:
        return None
    if left.type.is_numeric and right.type.is_numeric:
        a, b = _numeric_pair(left, right)
        return a == b
    if left.type is right.type:
        return left.raw == right.raw
    raise _incompatible("compare", left, right)


def compare_values(left: Value, right: Value) -> int | None:
    """Three-way ordering comparison.

    Returns:
        -1, 0 or 1, or ``None`` when either side is Null.

    Raises:
        QueryTypeError: For Boolean operands or mixed type families.
    """
    if left.is_null or right.is_null:
        return None
    if left.type.is_numeric and right.type.is_numeric:
        a, b = _numeric_pair(left, right)
    elif left.type is ValueType.TEXT and right.type is ValueType.TEXT:
        a, b = left.raw, right.raw
    else:
        raise _incompatible("order", left, right)
    return (a > b) - (a < b)



def coerce_to(value: Value, target: ValueType) -> Value | None:
    """Convert a value for storage in a column of type ``target``.

    Integer widens into Float; Null fits any column. Returns ``None`` when
    the value does not fit.
    """
    if value.is_null or value.type is target:
        return value
    if target is ValueType.FLOAT and value.type is ValueType.INTEGER:
        return Value(ValueType.FLOAT, float(value.raw))
    return None
