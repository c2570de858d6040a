"""Hash aggregation and partial-state merging.

The same ``HashAggregator`` backs both the sequential Aggregate operator and
per-partition execution, so a partition's partial state is exactly the state a
sequential run would hold after seeing those rows.

Groups are kept in first-seen order. Partials are merged in row-range order,
which makes the merged group order identical to a sequential run's.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from tabular_engine.domain.entities.accumulator import (
    Accumulator,
    GroupKey,
    PartialAggregate,
)
from tabular_engine.domain.entities.expressions import AggregateExpr
from tabular_engine.domain.entities.table import Row, Schema
from tabular_engine.domain.value_objects import RowRange, Value


class HashAggregator:
    """Builds per-group accumulators from a stream of rows.

    Example:
        >>> agg = HashAggregator(schema, ("category",), (sum_sales,))
        >>> agg.consume(rows)
        >>> agg.finalize()
        [(Value(TEXT, 'Food'), Value(INTEGER, 600))]
    """

    def __init__(
        self,
        schema: Schema,
        group_keys: Sequence[str],
        aggregates: Sequence[AggregateExpr],
    ) -> None:
        self._group_keys = tuple(group_keys)
        self._aggregates = tuple(aggregates)
        self._key_positions = [schema.index_of(k) for k in self._group_keys]
        self._arg_positions = [
            schema.index_of(a.arg.name) if a.arg is not None else None
            for a in self._aggregates
        ]
        self._groups: dict[GroupKey, tuple[Accumulator, ...]] = {}

    @property
    def groups(self) -> dict[GroupKey, tuple[Accumulator, ...]]:
        return self._groups

    def _new_state(self) -> tuple[Accumulator, ...]:
        return tuple(Accumulator(func=a.func) for a in self._aggregates)

    def consume(self, rows: Iterable[Row]) -> None:
        """Fold rows into their groups' accumulators."""
        for row in rows:
            key = tuple(row[i] for i in self._key_positions)
            state = self._groups.get(key)
            if state is None:
                state = self._new_state()
                self._groups[key] = state
            for acc, pos in zip(state, self._arg_positions):
                if pos is None:
                    acc.update_row()
                else:
                    acc.update(row[pos])

    def to_partial(self, row_range: RowRange, rows_scanned: int) -> PartialAggregate:
        return PartialAggregate(
            row_range=row_range,
            group_keys=self._group_keys,
            aggregates=tuple(str(a) for a in self._aggregates),
            groups=self._groups,
            rows_scanned=rows_scanned,
        )

    def finalize(self) -> list[Row]:
        return finalize_groups(self._groups, self._group_keys, self._aggregates)


def finalize_groups(
    groups: dict[GroupKey, tuple[Accumulator, ...]],
    group_keys: Sequence[str],
    aggregates: Sequence[AggregateExpr],
) -> list[Row]:
    """Turn group states into output rows: group key values, then aggregates.

    Without group keys there is exactly one implicit group, which produces a
    row even when no input rows were seen.
    """
    if not group_keys and not groups:
        groups = {(): tuple(Accumulator(func=a.func) for a in aggregates)}
    return [
        key + tuple(acc.finalize() for acc in state) for key, state in groups.items()
    ]


def merge_partials(partials: Sequence[PartialAggregate]) -> PartialAggregate:
    """Merge partition partials into one.

    Associative and commutative: the input order does not matter because
    partials are combined in row-range order. Accumulators are merged per
    function (COUNT/SUM add, MIN/MAX take extrema); AVG stays as sum and count
    until finalization.

    Raises:
        ValueError: If no partials are given or their shapes disagree.
    """
    if not partials:
        raise ValueError("merge requires at least one partial aggregate")

    ordered = sorted(partials, key=lambda p: p.row_range)
    first = ordered[0]
    for partial in ordered[1:]:
        if (
            partial.group_keys != first.group_keys
            or partial.aggregates != first.aggregates
            or partial.is_aggregate != first.is_aggregate
        ):
            raise ValueError("Cannot merge partials produced by different plans")

    covered = RowRange(
        min(p.row_range.start for p in ordered),
        max(p.row_range.stop for p in ordered),
    )
    scanned = sum(p.rows_scanned for p in ordered)

    if not first.is_aggregate:
        rows: list[tuple[Value, ...]] = []
        for partial in ordered:
            rows.extend(partial.rows or [])
        return PartialAggregate(
            row_range=covered,
            rows=rows,
            rows_scanned=scanned,
        )

    merged: dict[GroupKey, tuple[Accumulator, ...]] = {}
    for partial in ordered:
        for key, state in partial.groups.items():
            existing = merged.get(key)
            if existing is None:
                merged[key] = state
            else:
                merged[key] = tuple(a.merge(b) for a, b in zip(existing, state))

    return PartialAggregate(
        row_range=covered,
        group_keys=first.group_keys,
        aggregates=first.aggregates,
        groups=merged,
        rows_scanned=scanned,
    )
