"""Aggregation state: accumulators and partial aggregates.

An ``Accumulator`` holds the running ``{count, sum, min, max}`` state of one
aggregate expression within one group. Raw sums and counts are carried rather
than averages so that states from different partitions can be merged; AVG is
derived once, at finalization.

Sums are exact: Integer inputs add as ``int`` and Float inputs as
``fractions.Fraction``, so a merged state finalizes to the same value no
matter how the rows were split. Rounding to ``float`` happens once, in
``finalize``.

A ``PartialAggregate`` is the opaque output of running Filter+Aggregate over
one partition of a table. It is only ever merged, never read as a result.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any

from tabular_engine.domain.entities.expressions import AggregateFunc
from tabular_engine.domain.errors import QueryTypeError
from tabular_engine.domain.value_objects import (
    NULL,
    RowRange,
    Value,
    ValueType,
    compare_values,
)

GroupKey = tuple[Value, ...]
ExactSum = int | Fraction


@dataclass(slots=True)
class Accumulator:
    """Running state of one aggregate expression for one group.

    Only the fields the function needs are maintained: COUNT tracks
    ``count``; SUM and AVG add ``sum``; MIN and MAX add the extremum.
    ``count`` always counts the non-null inputs (or rows for COUNT(*)).

    ``sum`` is ``None`` until a value arrives, an ``int`` while every input
    is Integer and a ``Fraction`` once a Float input is seen. Infinities and
    NaN cannot be held exactly and are added into ``non_finite`` instead.
    """

    func: AggregateFunc
    count: int = 0
    sum: ExactSum | None = None
    non_finite: float | None = None
    min: Value = NULL
    max: Value = NULL

    def update(self, value: Value) -> None:
        """Fold one input value into the state. Nulls are ignored."""
        if value.is_null:
            return
        self.count += 1
        if self.func in (AggregateFunc.SUM, AggregateFunc.AVG):
            self._add(value)
        elif self.func is AggregateFunc.MIN:
            if self.min.is_null or compare_values(value, self.min) < 0:
                self.min = value
        elif self.func is AggregateFunc.MAX:
            if self.max.is_null or compare_values(value, self.max) > 0:
                self.max = value

    def _add(self, value: Value) -> None:
        if value.type is ValueType.INTEGER:
            exact: ExactSum = value.raw
        elif value.type is ValueType.FLOAT:
            if not math.isfinite(value.raw):
                self.non_finite = _add_non_finite(self.non_finite, value.raw)
                exact = Fraction(0)
            else:
                exact = Fraction(value.raw)
        else:
            raise QueryTypeError(
                f"{self.func.value} requires numeric input, got {value.type.value}"
            )
        self.sum = exact if self.sum is None else self.sum + exact

    def update_row(self) -> None:
        """Count one row (COUNT(*))."""
        self.count += 1

    def merge(self, other: Accumulator) -> Accumulator:
        """Combine two states into a new one.

        Associative and commutative: counts and sums add, extrema take the
        respective extremum.
        """
        if other.func is not self.func:
            raise ValueError(
                f"Cannot merge {self.func.value} state with {other.func.value} state"
            )
        merged = Accumulator(func=self.func, count=self.count + other.count)
        if self.sum is None or other.sum is None:
            merged.sum = other.sum if self.sum is None else self.sum
        else:
            merged.sum = self.sum + other.sum
        if other.non_finite is not None:
            merged.non_finite = _add_non_finite(self.non_finite, other.non_finite)
        else:
            merged.non_finite = self.non_finite
        merged.min = _combine(
            self.min, other.min, lambda a, b: a if compare_values(a, b) <= 0 else b
        )
        merged.max = _combine(
            self.max, other.max, lambda a, b: a if compare_values(a, b) >= 0 else b
        )
        return merged

    def finalize(self) -> Value:
        """Final aggregate value. AVG and SUM of no values are Null."""
        if self.func is AggregateFunc.COUNT:
            return Value(ValueType.INTEGER, self.count)
        if self.func is AggregateFunc.SUM:
            if self.sum is None:
                return NULL
            if isinstance(self.sum, int):
                return Value(ValueType.INTEGER, self.sum)
            return Value(ValueType.FLOAT, self._rounded(self.sum))
        if self.func is AggregateFunc.AVG:
            if self.count == 0 or self.sum is None:
                return NULL
            return Value(ValueType.FLOAT, self._rounded(Fraction(self.sum) / self.count))
        if self.func is AggregateFunc.MIN:
            return self.min
        return self.max

    def _rounded(self, exact: Fraction) -> float:
        if self.non_finite is not None:
            return self.non_finite
        return float(exact)

    def to_dict(self) -> dict[str, Any]:
        return {
            "func": self.func.value,
            "count": self.count,
            "sum": _sum_to_dict(self.sum),
            "non_finite": self.non_finite,
            "min": _value_to_dict(self.min),
            "max": _value_to_dict(self.max),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Accumulator:
        non_finite = data.get("non_finite")
        return cls(
            func=AggregateFunc(data["func"]),
            count=int(data["count"]),
            sum=_sum_from_dict(data["sum"]),
            non_finite=None if non_finite is None else float(non_finite),
            min=_value_from_dict(data["min"]),
            max=_value_from_dict(data["max"]),
        )


def _add_non_finite(total: float | None, value: float) -> float:
    # inf + -inf is nan and nan absorbs, so the order of additions is irrelevant
    return value if total is None else total + value


def _combine(a: Value, b: Value, fn) -> Value:
    if a.is_null:
        return b
    if b.is_null:
        return a
    return fn(a, b)


def _sum_to_dict(total: ExactSum | None) -> dict[str, Any] | None:
    if total is None:
        return None
    if isinstance(total, int):
        return {"type": ValueType.INTEGER.value, "exact": str(total)}
    return {"type": ValueType.FLOAT.value, "exact": str(total)}


def _sum_from_dict(data: dict[str, Any] | None) -> ExactSum | None:
    if data is None:
        return None
    if ValueType(data["type"]) is ValueType.INTEGER:
        return int(data["exact"])
    return Fraction(data["exact"])


def _value_to_dict(value: Value) -> dict[str, Any]:
    return {"type": value.type.value, "raw": value.raw}


def _value_from_dict(data: dict[str, Any]) -> Value:
    vtype = ValueType(data["type"])
    if vtype is ValueType.NULL:
        return NULL
    return Value(vtype, data["raw"])


@dataclass
class PartialAggregate:
    """Unmerged output of one partition.

    For aggregating plans ``groups`` maps each group-key tuple to one
    accumulator per aggregate expression, in first-seen order. For plans
    without an Aggregate node ``rows`` holds the filtered rows of the
    partition instead.

    Attributes:
        row_range: Rows this partial covers (merged partials cover the union)
        group_keys: Group-by column names
        aggregates: Output names of the aggregate expressions
        groups: Group key -> accumulators
        rows: Filtered rows, for non-aggregating plans
        rows_scanned: Rows read from the table
    """

    row_range: RowRange
    group_keys: tuple[str, ...] = ()
    aggregates: tuple[str, ...] = ()
    groups: dict[GroupKey, tuple[Accumulator, ...]] = field(default_factory=dict)
    rows: list[tuple[Value, ...]] | None = None
    rows_scanned: int = 0

    @property
    def is_aggregate(self) -> bool:
        return self.rows is None

    def to_dict(self) -> dict[str, Any]:
        """Serializable form of this partial."""
        data: dict[str, Any] = {
            "row_range": self.row_range.to_dict(),
            "group_keys": list(self.group_keys),
            "aggregates": list(self.aggregates),
            "rows_scanned": self.rows_scanned,
            "groups": [
                {
                    "key": [_value_to_dict(v) for v in key],
                    "accumulators": [acc.to_dict() for acc in accs],
                }
                for key, accs in self.groups.items()
            ],
        }
        if self.rows is not None:
            data["rows"] = [[_value_to_dict(v) for v in row] for row in self.rows]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PartialAggregate:
        groups = {
            tuple(_value_from_dict(v) for v in entry["key"]): tuple(
                Accumulator.from_dict(a) for a in entry["accumulators"]
            )
            for entry in data.get("groups", [])
        }
        rows = None
        if "rows" in data:
            rows = [tuple(_value_from_dict(v) for v in row) for row in data["rows"]]
        return cls(
            row_range=RowRange.from_dict(data["row_range"]),
            group_keys=tuple(data.get("group_keys", ())),
            aggregates=tuple(data.get("aggregates", ())),
            groups=groups,
            rows=rows,
            rows_scanned=int(data.get("rows_scanned", 0)),
        )
