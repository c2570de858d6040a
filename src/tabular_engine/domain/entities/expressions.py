"""Expression trees shared by the query AST and the logical plan.

Expressions are immutable. Predicates are trees of ``LogicalExpr``
(AND/OR/NOT), ``ComparisonExpr``, ``LiteralExpr`` and ``ColumnExpr``.
Aggregate calls appear only in select and order-by lists.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from tabular_engine.domain.value_objects import Value, ValueType


class ComparisonOp(Enum):
    """Comparison operators for predicates."""

    EQ = "="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    IS_NULL = "IS NULL"
    IS_NOT_NULL = "IS NOT NULL"


class LogicalOp(Enum):
    """Logical operators for combining predicates."""

    AND = "AND"
    OR = "OR"
    NOT = "NOT"


class AggregateFunc(Enum):
    """Aggregate functions."""

    COUNT = "COUNT"
    SUM = "SUM"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"

    @property
    def requires_numeric(self) -> bool:
        return self is not AggregateFunc.COUNT

    def result_type(self, arg_type: ValueType | None) -> ValueType:
        """Type of the finalized aggregate given its argument type."""
        if self is AggregateFunc.COUNT:
            return ValueType.INTEGER
        if self is AggregateFunc.AVG:
            return ValueType.FLOAT
        return arg_type if arg_type is not None else ValueType.NULL


@dataclass(frozen=True)
class Expression(ABC):
    """Base class for expressions."""

    @abstractmethod
    def __str__(self) -> str:
        pass

    def columns(self) -> set[str]:
        """Names of all columns referenced by this expression."""
        return set()


@dataclass(frozen=True)
class ColumnExpr(Expression):
    """Column reference expression."""

    name: str

    def __str__(self) -> str:
        return self.name

    def columns(self) -> set[str]:
        return {self.name}


@dataclass(frozen=True)
class StarExpr(Expression):
    """``*`` in a select list."""

    def __str__(self) -> str:
        return "*"


@dataclass(frozen=True)
class LiteralExpr(Expression):
    """Literal value expression."""

    value: Value

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class ComparisonExpr(Expression):
    """Comparison expression (e.g., col = value)."""

    left: Expression
    op: ComparisonOp
    right: Expression | None = None  # None for IS NULL / IS NOT NULL

    def __str__(self) -> str:
        if self.right is None:
            return f"{self.left} {self.op.value}"
        return f"{self.left} {self.op.value} {self.right}"

    def columns(self) -> set[str]:
        cols = self.left.columns()
        if self.right is not None:
            cols |= self.right.columns()
        return cols


@dataclass(frozen=True)
class LogicalExpr(Expression):
    """Logical expression combining other expressions."""

    op: LogicalOp
    operands: tuple[Expression, ...] = ()

    def __str__(self) -> str:
        if self.op == LogicalOp.NOT:
            return f"NOT ({self.operands[0]})"
        op_str = f" {self.op.value} "
        return f"({op_str.join(str(o) for o in self.operands)})"

    def columns(self) -> set[str]:
        cols: set[str] = set()
        for operand in self.operands:
            cols |= operand.columns()
        return cols


@dataclass(frozen=True)
class AggregateExpr(Expression):
    """Aggregate function expression; ``arg`` is None for COUNT(*)."""

    func: AggregateFunc
    arg: ColumnExpr | None = None

    def __str__(self) -> str:
        if self.arg is None:
            return f"{self.func.value}(*)"
        return f"{self.func.value}({self.arg})"

    def columns(self) -> set[str]:
        return self.arg.columns() if self.arg is not None else set()
