"""Partitioned execution and partial-aggregate merging.

A plan is split at its Aggregate node (or, without one, right above its
Filter/Scan). The lower part runs once per contiguous row range and yields a
``PartialAggregate``; partials are merged, and the upper part (Project, Sort,
Limit) runs once over the merged result::

    range 0 ─ Scan -> Filter -> partial Aggregate ─┐
    range 1 ─ Scan -> Filter -> partial Aggregate ─┼─ merge -> Project -> Sort -> Limit
    range 2 ─ Scan -> Filter -> partial Aggregate ─┘

Partition tasks only read the shared table and return their own partial, so
they need no locking. The merge waits for every partition; if any of them
fails, merge is never called and that error propagates unchanged.
"""

from __future__ import annotations

import time
from typing import Sequence

from tabular_engine.application.executor import (
    ExecutionResult,
    QueryExecutor,
    ValuesOperator,
    summarize,
)
from tabular_engine.domain.entities import (
    Aggregate,
    Filter,
    LogicalPlan,
    PartialAggregate,
    Scan,
    Table,
)
from tabular_engine.domain.errors import PlanError
from tabular_engine.domain.services import (
    HashAggregator,
    finalize_groups,
    merge_partials,
)
from tabular_engine.domain.value_objects import RowRange, split_rows
from tabular_engine.infrastructure.logging import get_logger
from tabular_engine.ports.inbound.query_service import TraceEntry
from tabular_engine.ports.outbound.worker_pool import WorkerPool

logger = get_logger(__name__)


def find_aggregate(plan: LogicalPlan) -> Aggregate | None:
    """The plan's Aggregate node, if any."""
    for node in plan.walk():
        if isinstance(node, Aggregate):
            return node
    return None


def partial_root(plan: LogicalPlan) -> LogicalPlan:
    """Topmost node that runs per partition.

    This is the Aggregate node when there is one, otherwise the topmost
    Filter or Scan.
    """
    for node in plan.walk():
        if isinstance(node, (Aggregate, Filter, Scan)):
            return node
    raise PlanError("Plan has no Scan node")


def _run_partial(
    plan: LogicalPlan,
    table: Table,
    row_range: RowRange,
    executor: QueryExecutor,
) -> tuple[PartialAggregate, list[TraceEntry]]:
    aggregate = find_aggregate(plan)
    lower = aggregate.input if aggregate is not None else partial_root(plan)
    # Rows are consumed straight from the operators: a pruned scan may have
    # no columns, which a Table cannot count
    root = executor.build_operator_tree(lower, table, row_range)
    rows = list(root)
    trace, scanned = summarize(root)

    if aggregate is None:
        partial = PartialAggregate(row_range=row_range, rows=rows, rows_scanned=scanned)
        return partial, trace

    started = time.perf_counter()
    aggregator = HashAggregator(
        lower.output_schema, aggregate.group_keys, aggregate.aggregates
    )
    aggregator.consume(rows)
    partial = aggregator.to_partial(row_range, scanned)
    entry = TraceEntry(
        operation=f"Partial{aggregate.describe()}",
        elapsed_ms=(time.perf_counter() - started) * 1000.0,
        rows_in=len(rows),
        rows_out=len(partial.groups),
    )
    return partial, [*trace, entry]


def execute_partial(
    plan: LogicalPlan,
    table: Table,
    row_range: RowRange,
    executor: QueryExecutor | None = None,
) -> PartialAggregate:
    """Run the per-partition part of a plan over one row range.

    Only Scan, Filter and (partial) Aggregate run here; Project, Sort and
    Limit need every partition's rows and are applied by ``finish``.

    Args:
        plan: Full plan of the query.
        table: Shared source table (read only).
        row_range: Rows of this partition.
        executor: Executor to run operators with.

    Returns:
        Opaque partial state, to be merged with the other partitions'.
    """
    partial, _ = _run_partial(plan, table, row_range, executor or QueryExecutor())
    return partial


def merge(partials: Sequence[PartialAggregate]) -> PartialAggregate:
    """Merge partition partials. Associative and commutative.

    Raises:
        ValueError: If there are no partials or they come from different plans.
    """
    return merge_partials(partials)


def finish(
    plan: LogicalPlan,
    merged: PartialAggregate,
    executor: QueryExecutor | None = None,
) -> ExecutionResult:
    """Apply the stages above the partition split once over merged state.

    Aggregates are finalized here, so AVG is derived from the merged sum and
    count.

    Raises:
        ValueError: If ``merged`` was not produced for ``plan``.
    """
    executor = executor or QueryExecutor()
    aggregate = find_aggregate(plan)

    if aggregate is None:
        if merged.is_aggregate:
            raise ValueError("Expected row partials for a plan without aggregation")
        source_node = partial_root(plan)
        rows = merged.rows or []
    else:
        names = tuple(str(a) for a in aggregate.aggregates)
        if (
            not merged.is_aggregate
            or merged.group_keys != aggregate.group_keys
            or merged.aggregates != names
        ):
            raise ValueError("Partial aggregate does not match the plan's Aggregate")
        source_node = aggregate
        rows = finalize_groups(merged.groups, aggregate.group_keys, aggregate.aggregates)

    source = ValuesOperator(
        f"Merged{source_node.describe()}",
        source_node.output_schema,
        rows,
        executor.batch_size,
    )
    root = executor.build_operator_tree(plan, source_node=source_node, source=source)
    result = executor.run(root)
    result.rows_scanned = merged.rows_scanned
    return result


class ParallelExecutor:
    """Runs a plan over row partitions on a worker pool.

    For every partition count from 1 to the table's row count the result is
    identical to a sequential run: same groups in the same order, same sums,
    counts and extrema, same row order.

    Example:
        >>> parallel = ParallelExecutor(QueryExecutor(), ThreadWorkerPool(4))
        >>> result = parallel.execute(plan, table, partitions=3)
    """

    def __init__(self, executor: QueryExecutor, worker_pool: WorkerPool) -> None:
        self._executor = executor
        self._pool = worker_pool

    def execute(self, plan: LogicalPlan, table: Table, partitions: int) -> ExecutionResult:
        """Execute a plan over ``partitions`` contiguous row ranges.

        The partition count is clamped to ``[1, max(1, rows)]``.

        Raises:
            EngineError: The error of the first failing partition; nothing is
                merged in that case.
        """
        ranges = split_rows(table.num_rows, partitions)
        logger.debug(
            "partitions_scheduled",
            partitions=len(ranges),
            rows=table.num_rows,
            max_workers=self._pool.max_workers,
        )

        outputs = self._pool.map(
            lambda row_range: _run_partial(plan, table, row_range, self._executor),
            ranges,
        )
        partials = [partial for partial, _ in outputs]

        started = time.perf_counter()
        merged = merge(partials)
        merge_entry = TraceEntry(
            operation=f"Merge(partials={len(partials)})",
            elapsed_ms=(time.perf_counter() - started) * 1000.0,
            rows_in=sum(_partial_size(p) for p in partials),
            rows_out=_partial_size(merged),
        )

        result = finish(plan, merged, self._executor)
        trace = _combine_traces([trace for _, trace in outputs])
        result.trace = [*trace, merge_entry, *result.trace]
        return result


def _partial_size(partial: PartialAggregate) -> int:
    if partial.is_aggregate:
        return len(partial.groups)
    return len(partial.rows or [])


def _combine_traces(traces: list[list[TraceEntry]]) -> list[TraceEntry]:
    """Sum per-partition traces node by node; every partition runs the same tree."""
    combined: list[TraceEntry] = []
    for entries in zip(*traces):
        combined.append(
            TraceEntry(
                operation=entries[0].operation,
                elapsed_ms=sum(e.elapsed_ms for e in entries),
                rows_in=sum(e.rows_in for e in entries),
                rows_out=sum(e.rows_out for e in entries),
            )
        )
    return combined
