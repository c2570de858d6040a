"""Query Engine - unified entry point for the query engine.

This module provides the QueryEngine class that wires the parser, plan
builder, optimizer, executors and table registry together behind a small
API for the presentation layer.

Usage:
    from tabular_engine.application import QueryEngine

    engine = QueryEngine.create()
    engine.load_records("data", records)

    result = engine.execute("SELECT category, SUM(sales) FROM data GROUP BY category")
    result.to_records()

    # Split the scan over 4 partitions run by the worker pool
    result = engine.execute("SELECT region, AVG(sales) FROM data GROUP BY region", partitions=4)

    engine.close()
"""

from __future__ import annotations

import time
from typing import Any, Iterable, Mapping

from tabular_engine.adapters.inbound.sql_parser import Query, SQLParser
from tabular_engine.adapters.outbound.thread_worker_pool import ThreadWorkerPool
from tabular_engine.application.executor import ExecutionResult, QueryExecutor
from tabular_engine.application.explain import estimate_plan
from tabular_engine.application.parallel import ParallelExecutor, find_aggregate
from tabular_engine.application.planner import PlanBuilder
from tabular_engine.application.registry import TableInfo, TableRegistry
from tabular_engine.domain.entities import LogicalPlan, Table
from tabular_engine.domain.errors import EngineError
from tabular_engine.domain.services import Optimizer, PivotTable, pivot
from tabular_engine.domain.value_objects import split_rows
from tabular_engine.infrastructure.config import EngineConfig, get_config
from tabular_engine.infrastructure.logging import (
    get_logger,
    query_logger,
    setup_logging,
)
from tabular_engine.infrastructure.metrics import (
    MetricsRegistry,
    get_metrics,
    setup_metrics,
)
from tabular_engine.infrastructure.tracing import setup_tracing, trace_span
from tabular_engine.ports.inbound.query_service import PlanStep, QueryResult
from tabular_engine.ports.outbound.worker_pool import WorkerPool


class QueryEngine:
    """Main query engine that orchestrates all components.

    Every query goes through the same pipeline: parse, resolve the table,
    build the plan, optimize it (unless disabled) and execute it, either
    sequentially or split over row partitions on the worker pool.

    Errors are fatal to the failing query only. They are logged, counted by
    kind and re-raised unchanged; registered tables stay valid.

    Thread Safety:
        Multiple threads can share a QueryEngine instance. Queries only read
        registered tables, which are immutable.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        metrics: MetricsRegistry | None = None,
        worker_pool: WorkerPool | None = None,
        parser: SQLParser | None = None,
    ) -> None:
        """Initialize the query engine.

        Args:
            config: Engine configuration. Uses the global config if None.
            metrics: Metrics registry. Uses the global registry if None.
            worker_pool: Pool for partition execution. A thread pool sized
                by ``execution.max_workers`` is created (and owned) if None.
            parser: SQL parser. A default parser is created if None.
        """
        self._config = config or get_config()
        self._metrics = metrics or get_metrics()
        execution = self._config.execution

        self._parser = parser or SQLParser()
        self._planner = PlanBuilder()
        self._optimizer = Optimizer()
        self._executor = QueryExecutor(batch_size=execution.batch_size)

        self._owns_pool = worker_pool is None
        self._pool = worker_pool or ThreadWorkerPool(max_workers=execution.max_workers)
        self._parallel = ParallelExecutor(self._executor, self._pool)

        self._registry = TableRegistry()
        self._logger = get_logger(__name__)

    @classmethod
    def create(cls, config: EngineConfig | None = None) -> QueryEngine:
        """Create an engine and set up logging, tracing and metrics from config."""
        config = config or get_config()
        obs = config.observability
        setup_logging(level=obs.log_level, log_format=obs.log_format)
        setup_tracing(service_name=obs.otel_service_name, otlp_endpoint=obs.otel_endpoint)
        metrics = setup_metrics(port=obs.metrics_port)
        return cls(config=config, metrics=metrics)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def registry(self) -> TableRegistry:
        return self._registry

    # Tables

    def register_table(self, name: str, table: Table) -> None:
        """Make a table queryable under ``name``, replacing any previous one."""
        info = self._registry.register(name, table)
        self._logger.info(
            "table_registered",
            table=name,
            rows=table.num_rows,
            columns=list(table.schema.names),
            version=info.version,
        )

    def load_records(self, name: str, records: Iterable[Mapping[str, Any]]) -> Table:
        """Ingest row-shaped records and register the resulting table.

        Values that do not match their column's type are stored as Null and
        reported in ``Table.cell_errors``; they never fail the load.
        """
        table = Table.from_records(records)
        if table.cell_errors:
            self._metrics.ingestion_cell_errors_total.inc(len(table.cell_errors))
            first = table.cell_errors[0]
            self._logger.warning(
                "ingestion_cell_errors",
                table=name,
                count=len(table.cell_errors),
                first_row=first.row,
                first_column=first.column,
                first_error=first.message,
            )
        self.register_table(name, table)
        return table

    def drop_table(self, name: str) -> bool:
        dropped = self._registry.drop(name)
        if dropped:
            self._logger.info("table_dropped", table=name)
        return dropped

    def table(self, name: str) -> Table:
        """Get a registered table.

        Raises:
            SchemaError: If the table does not exist.
        """
        return self._registry.get(name).table

    # Queries

    def parse(self, sql: str) -> Query:
        """Parse query text without planning or running it."""
        with trace_span("query.parse", {"query.length": len(sql)}):
            return self._parser.parse(sql)

    def plan(self, sql: str) -> LogicalPlan:
        """Parse and plan a query, returning the (optimized) logical plan."""
        plan, _ = self._plan(sql)
        return plan

    def _plan(self, sql: str) -> tuple[LogicalPlan, TableInfo]:
        query = self.parse(sql)
        info = self._registry.get(query.table_name)
        with trace_span("query.plan", {"query.table": info.name}):
            plan = self._planner.build(query, info.table.schema)
        if self._config.execution.optimize:
            with trace_span("query.optimize"):
                plan = self._optimizer.optimize(plan)
        return plan, info

    def execute(self, sql: str, partitions: int | None = None) -> QueryResult:
        """Execute a query.

        Args:
            sql: Query text.
            partitions: Number of row partitions; defaults to
                ``execution.default_partitions``. Clamped to the row count.

        Returns:
            QueryResult with the result table and explain trace.

        Raises:
            ParseError: Malformed query text (the query is never planned).
            SchemaError: Unknown table or column.
            QueryTypeError: Incompatible types.
            PlanError: Structurally invalid query.
        """
        if partitions is None:
            partitions = self._config.execution.default_partitions
        if partitions < 1:
            raise ValueError(f"partitions must be >= 1, got {partitions}")

        log = query_logger(self._logger)
        started = time.perf_counter()
        try:
            with trace_span("query.execute", {"query.partitions": partitions}) as span:
                plan, info = self._plan(sql)
                result, used = self._run(plan, info.table, partitions)
                span.set_attribute("query.rows_scanned", result.rows_scanned)
        except EngineError as e:
            self._record_failure(log, e, sql)
            raise

        elapsed = time.perf_counter() - started
        query_type = "aggregate" if find_aggregate(plan) is not None else "select"
        self._record_success(query_type, elapsed, result.rows_scanned)
        log.info(
            "query_executed",
            table=info.name,
            query_type=query_type,
            partitions=used,
            rows_scanned=result.rows_scanned,
            rows_returned=result.table.num_rows,
            elapsed_ms=round(elapsed * 1000.0, 3),
        )
        return QueryResult(
            table=result.table,
            trace=result.trace,
            elapsed_ms=elapsed * 1000.0,
            rows_scanned=result.rows_scanned,
            partitions=used,
        )

    def _run(
        self, plan: LogicalPlan, table: Table, partitions: int
    ) -> tuple[ExecutionResult, int]:
        used = len(split_rows(table.num_rows, partitions))
        with trace_span("query.run", {"query.partitions": used}):
            if used == 1:
                return self._executor.execute(plan, table), used
            result = self._parallel.execute(plan, table, used)
        self._metrics.partitions_executed_total.inc(used)
        return result, used

    def explain(self, sql: str) -> list[PlanStep]:
        """Estimate the cost of each plan node without running the query."""
        log = query_logger(self._logger)
        started = time.perf_counter()
        try:
            plan, info = self._plan(sql)
        except EngineError as e:
            self._record_failure(log, e, sql)
            raise
        steps = estimate_plan(plan, info.num_rows)
        self._metrics.query_latency_seconds.labels(query_type="explain").observe(
            time.perf_counter() - started
        )
        log.debug("query_explained", table=info.name, steps=len(steps))
        return steps

    def pivot(
        self,
        sql: str,
        row_key: str,
        column_key: str,
        value_column: str,
        partitions: int | None = None,
    ) -> PivotTable:
        """Run a two-key group query and reshape its result into a pivot.

        Example:
            >>> engine.pivot(
            ...     "SELECT category, region, SUM(sales) AS total FROM data "
            ...     "GROUP BY category, region",
            ...     "category", "region", "total",
            ... ).to_dict()
            {'Electronics': {'North': 1200, 'East': 1500}, ...}

        Raises:
            PivotError: If a (row, column) pair appears more than once.
        """
        result = self.execute(sql, partitions)
        try:
            with trace_span("query.pivot"):
                return pivot(result.table, row_key, column_key, value_column)
        except EngineError as e:
            self._metrics.query_errors_total.labels(error_kind=e.kind).inc()
            self._logger.warning("pivot_failed", error_kind=e.kind, error=str(e))
            raise

    # Observability

    def _record_success(self, query_type: str, elapsed: float, rows_scanned: int) -> None:
        self._metrics.queries_total.labels(status="success").inc()
        self._metrics.query_latency_seconds.labels(query_type=query_type).observe(elapsed)
        self._metrics.rows_scanned_total.inc(rows_scanned)

    def _record_failure(self, log: Any, error: EngineError, sql: str) -> None:
        self._metrics.queries_total.labels(status="error").inc()
        self._metrics.query_errors_total.labels(error_kind=error.kind).inc()
        log.warning("query_failed", error_kind=error.kind, error=str(error), sql=sql)

    # Lifecycle

    def close(self) -> None:
        """Shut down the worker pool if this engine created it."""
        if self._owns_pool:
            self._pool.shutdown()

    def __enter__(self) -> QueryEngine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
