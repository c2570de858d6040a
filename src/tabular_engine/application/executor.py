"""Query executor using a batched Volcano iterator model.

This module interprets logical plans and executes them against an in-memory
table with a pull-based operator pipeline.

The model:
    - Each operator has open(), next_batch(), close() methods
    - Operators pull batches of rows from their child on demand
    - Aggregate and Sort are blocking: they drain their child on the first
      pull; every other operator streams

Every operator records rows in, rows out and wall time. After a run the
executor turns these into an explain trace with one entry per plan node,
leaf first, where each entry's time excludes the time spent in its child.

References:
    - Graefe, "Volcano" (1994)
    - Boncz et al., "MonetDB/X100: Hyper-Pipelining Query Execution" (2005)
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Iterator, Sequence

from tabular_engine.domain.entities import (
    Aggregate,
    Filter,
    Limit,
    LogicalPlan,
    Project,
    Row,
    Scan,
    Schema,
    Sort,
    Table,
)
from tabular_engine.domain.errors import PlanError
from tabular_engine.domain.services import HashAggregator, evaluate, is_true
from tabular_engine.domain.value_objects import RowRange, Value, compare_values
from tabular_engine.ports.inbound.query_service import TraceEntry


@dataclass
class OperatorStats:
    """Counters collected by an operator while it runs."""

    rows_in: int = 0
    rows_out: int = 0
    elapsed: float = 0.0  # Seconds, including time spent in children


@dataclass
class ExecutionResult:
    """Result of executing a plan."""

    table: Table
    trace: list[TraceEntry] = field(default_factory=list)
    rows_scanned: int = 0


class Operator(ABC):
    """Base class for executor operators (batched Volcano model)."""

    def __init__(
        self, label: str, schema: Schema, children: Sequence[Operator] = ()
    ) -> None:
        self.label = label
        self.schema = schema
        self.children = tuple(children)
        self.stats = OperatorStats()

    def open(self) -> None:
        """Initialize the operator and its children."""
        for child in self.children:
            child.open()

    def next_batch(self) -> list[Row] | None:
        """Return the next non-empty batch of rows, or None if exhausted."""
        started = time.perf_counter()
        try:
            batch = self._next_batch()
        finally:
            self.stats.elapsed += time.perf_counter() - started
        if batch is not None:
            self.stats.rows_out += len(batch)
        return batch

    @abstractmethod
    def _next_batch(self) -> list[Row] | None:
        pass

    def close(self) -> None:
        """Clean up resources."""
        for child in self.children:
            child.close()

    def _pull(self, child: Operator) -> list[Row] | None:
        batch = child.next_batch()
        if batch is not None:
            self.stats.rows_in += len(batch)
        return batch

    def _drain(self, child: Operator) -> list[Row]:
        rows: list[Row] = []
        while True:
            batch = self._pull(child)
            if batch is None:
                return rows
            rows.extend(batch)

    def __iter__(self) -> Iterator[Row]:
        """Allow iteration over operator results."""
        self.open()
        try:
            while True:
                batch = self.next_batch()
                if batch is None:
                    break
                yield from batch
        finally:
            self.close()


class _BufferedOperator(Operator):
    """Operator that computes all of its output up front, then emits it."""

    def __init__(
        self,
        label: str,
        schema: Schema,
        children: Sequence[Operator] = (),
        batch_size: int = 1024,
    ) -> None:
        super().__init__(label, schema, children)
        self._batch_size = batch_size
        self._output: list[Row] | None = None
        self._position = 0

    @abstractmethod
    def _compute(self) -> list[Row]:
        pass

    def open(self) -> None:
        super().open()
        self._output = None
        self._position = 0

    def _next_batch(self) -> list[Row] | None:
        if self._output is None:
            self._output = self._compute()
        if self._position >= len(self._output):
            return None
        batch = self._output[self._position : self._position + self._batch_size]
        self._position += len(batch)
        return batch

    def close(self) -> None:
        self._output = None
        super().close()


class ScanOperator(Operator):
    """Reads a column subset of a table, optionally within a row range."""

    def __init__(
        self,
        label: str,
        table: Table,
        columns: Sequence[str] | None = None,
        row_range: RowRange | None = None,
        batch_size: int = 1024,
    ) -> None:
        schema = table.schema if columns is None else table.schema.select(columns)
        super().__init__(label, schema)
        self._columns = [table.column(name).values for name in schema.names]
        if row_range is None:
            row_range = RowRange(0, table.num_rows)
        self._start = row_range.start
        self._stop = min(row_range.stop, table.num_rows)
        self._batch_size = batch_size
        self._position = self._start

    def open(self) -> None:
        self._position = self._start

    def _next_batch(self) -> list[Row] | None:
        if self._position >= self._stop:
            return None
        end = min(self._position + self._batch_size, self._stop)
        batch = [
            tuple(values[i] for values in self._columns)
            for i in range(self._position, end)
        ]
        self.stats.rows_in += len(batch)
        self._position = end
        return batch


class ValuesOperator(_BufferedOperator):
    """Emits a fixed list of rows (e.g. merged partition results)."""

    def __init__(
        self, label: str, schema: Schema, rows: Sequence[Row], batch_size: int = 1024
    ) -> None:
        super().__init__(label, schema, batch_size=batch_size)
        self._rows = list(rows)

    def _compute(self) -> list[Row]:
        self.stats.rows_in = len(self._rows)
        return self._rows


class FilterOperator(Operator):
    """Passes through rows whose predicate evaluates to TRUE."""

    def __init__(self, label: str, child: Operator, plan: Filter) -> None:
        super().__init__(label, child.schema, (child,))
        self._predicate = plan.predicate
        self._positions = {name: i for i, name in enumerate(child.schema.names)}

    def _next_batch(self) -> list[Row] | None:
        # Keep pulling until a batch survives the filter, so callers never
        # see an empty batch before exhaustion
        while True:
            batch = self._pull(self.children[0])
            if batch is None:
                return None
            kept = [
                row
                for row in batch
                if is_true(evaluate(self._predicate, row, self._positions))
            ]
            if kept:
                return kept


class AggregateOperator(_BufferedOperator):
    """Blocking hash aggregation; emits groups in first-seen order."""

    def __init__(
        self, label: str, child: Operator, plan: Aggregate, batch_size: int = 1024
    ) -> None:
        super().__init__(label, plan.output_schema, (child,), batch_size)
        self._aggregator = HashAggregator(child.schema, plan.group_keys, plan.aggregates)

    def _compute(self) -> list[Row]:
        child = self.children[0]
        while True:
            batch = self._pull(child)
            if batch is None:
                break
            self._aggregator.consume(batch)
        return self._aggregator.finalize()


class ProjectOperator(Operator):
    """Selects, reorders and renames columns."""

    def __init__(self, label: str, child: Operator, plan: Project) -> None:
        super().__init__(label, plan.output_schema, (child,))
        self._positions = [child.schema.index_of(item.source) for item in plan.items]

    def _next_batch(self) -> list[Row] | None:
        batch = self._pull(self.children[0])
        if batch is None:
            return None
        return [tuple(row[i] for i in self._positions) for row in batch]


class SortOperator(_BufferedOperator):
    """Blocking, stable sort.

    Nulls sort after every other value ascending and before them descending.
    """

    def __init__(
        self, label: str, child: Operator, plan: Sort, batch_size: int = 1024
    ) -> None:
        super().__init__(label, child.schema, (child,), batch_size)
        self._keys = [(child.schema.index_of(k.column), k.ascending) for k in plan.keys]

    def _compare(self, left: Row, right: Row) -> int:
        for position, ascending in self._keys:
            result = _compare_nulls_last(left[position], right[position])
            if result:
                return result if ascending else -result
        return 0

    def _compute(self) -> list[Row]:
        rows = self._drain(self.children[0])
        return sorted(rows, key=cmp_to_key(self._compare))


def _compare_nulls_last(left: Value, right: Value) -> int:
    if left.is_null or right.is_null:
        return int(left.is_null) - int(right.is_null)
    return compare_values(left, right)


class LimitOperator(Operator):
    """Returns at most ``count`` rows and stops pulling afterwards."""

    def __init__(self, label: str, child: Operator, plan: Limit) -> None:
        super().__init__(label, child.schema, (child,))
        self._count = plan.count
        self._emitted = 0

    def open(self) -> None:
        super().open()
        self._emitted = 0

    def _next_batch(self) -> list[Row] | None:
        remaining = self._count - self._emitted
        if remaining <= 0:
            return None
        batch = self._pull(self.children[0])
        if batch is None:
            return None
        batch = batch[:remaining]
        self._emitted += len(batch)
        return batch


class QueryExecutor:
    """Executes logical plans against in-memory tables.

    Example:
        >>> executor = QueryExecutor(batch_size=1024)
        >>> result = executor.execute(plan, table)
        >>> result.table.to_records()
        [{'category': 'Electronics', 'SUM(sales)': 2700}, ...]
    """

    def __init__(self, batch_size: int = 1024) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._batch_size = batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def execute(
        self,
        plan: LogicalPlan,
        table: Table,
        row_range: RowRange | None = None,
    ) -> ExecutionResult:
        """Execute a plan.

        Args:
            plan: Root of the plan tree.
            table: Table read by the plan's Scan.
            row_range: Restrict the Scan to these rows.

        Returns:
            Result table, explain trace and number of rows read.

        Raises:
            QueryTypeError: If values of incompatible types meet at runtime.
        """
        root = self.build_operator_tree(plan, table, row_range)
        return self.run(root)

    def run(self, root: Operator) -> ExecutionResult:
        """Drain an operator tree into a result table."""
        rows: list[Row] = []
        root.open()
        try:
            while True:
                batch = root.next_batch()
                if batch is None:
                    break
                rows.extend(batch)
        finally:
            root.close()

        trace, scanned = summarize(root)
        return ExecutionResult(
            table=Table.from_rows(root.schema, rows),
            trace=trace,
            rows_scanned=scanned,
        )

    def build_operator_tree(
        self,
        plan: LogicalPlan,
        table: Table | None = None,
        row_range: RowRange | None = None,
        source_node: LogicalPlan | None = None,
        source: Operator | None = None,
    ) -> Operator:
        """Build the operator tree for a plan.

        Args:
            plan: Root of the plan tree.
            table: Table read by Scan nodes.
            row_range: Restrict Scans to these rows.
            source_node: Plan node to replace by ``source``, with everything
                below it. Used to run the final stages over merged partials.
            source: Operator standing in for ``source_node``.
        """
        if source_node is not None and plan is source_node:
            if source is None:
                raise ValueError("source_node given without a source operator")
            return source

        label = plan.describe()
        if isinstance(plan, Scan):
            if table is None:
                raise PlanError(f"No table to scan for {label}")
            return ScanOperator(label, table, plan.columns, row_range, self._batch_size)

        child = self.build_operator_tree(
            plan.children[0], table, row_range, source_node, source
        )
        if isinstance(plan, Filter):
            return FilterOperator(label, child, plan)
        if isinstance(plan, Aggregate):
            return AggregateOperator(label, child, plan, self._batch_size)
        if isinstance(plan, Project):
            return ProjectOperator(label, child, plan)
        if isinstance(plan, Sort):
            return SortOperator(label, child, plan, self._batch_size)
        if isinstance(plan, Limit):
            return LimitOperator(label, child, plan)
        raise PlanError(f"Unsupported plan node: {plan.name}")


def summarize(root: Operator) -> tuple[list[TraceEntry], int]:
    """Trace entries (leaf first) and rows scanned of a finished operator tree."""
    operators = list(_post_order(root))
    scanned = sum(op.stats.rows_in for op in operators if isinstance(op, ScanOperator))
    return [_trace_entry(op) for op in operators], scanned


def _post_order(op: Operator) -> Iterator[Operator]:
    for child in op.children:
        yield from _post_order(child)
    yield op


def _trace_entry(op: Operator) -> TraceEntry:
    own = op.stats.elapsed - sum(child.stats.elapsed for child in op.children)
    return TraceEntry(
        operation=op.label,
        elapsed_ms=max(own, 0.0) * 1000.0,
        rows_in=op.stats.rows_in,
        rows_out=op.stats.rows_out,
    )
