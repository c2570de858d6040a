"""Query Service port for running queries against registered tables.

This inbound port defines the contract offered to the presentation layer:
register tables, run query text, explain a query and reshape results into a
pivot. Results are plain value objects so callers never touch plan or
operator internals.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Protocol

from tabular_engine.domain.entities import Table
from tabular_engine.domain.services import PivotTable


@dataclass(frozen=True, slots=True)
class TraceEntry:
    """Explain trace record for one executed plan node."""

    operation: str  # Plan node description
    elapsed_ms: float  # Time spent in this node, excluding its child
    rows_in: int
    rows_out: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "elapsed_ms": round(self.elapsed_ms, 3),
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
        }


@dataclass(frozen=True, slots=True)
class PlanStep:
    """Estimated cost of one plan node, produced without executing it."""

    operation: str
    cost: float
    rows_estimated: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "cost": round(self.cost, 3),
            "rows_estimated": self.rows_estimated,
        }


@dataclass
class QueryResult:
    """Result of a query.

    Attributes:
        table: Result rows
        trace: One entry per executed plan node, leaf first
        elapsed_ms: Wall time of the whole query
        rows_scanned: Rows read from the source table
        partitions: Number of partitions the query ran on
    """

    table: Table
    trace: list[TraceEntry] = field(default_factory=list)
    elapsed_ms: float = 0.0
    rows_scanned: int = 0
    partitions: int = 1

    @property
    def columns(self) -> tuple[str, ...]:
        return self.table.schema.names

    @property
    def row_count(self) -> int:
        return self.table.num_rows

    def to_records(self) -> list[dict[str, Any]]:
        return self.table.to_records()


class QueryService(Protocol):
    """Protocol for the engine's public operations.

    Thread Safety:
        Queries only read registered tables, so concurrent queries are safe.
        Registering a table replaces it atomically for later queries.
    """

    @abstractmethod
    def register_table(self, name: str, table: Table) -> None:
        """Make a table queryable under ``name``, replacing any previous one."""
        ...

    @abstractmethod
    def load_records(self, name: str, records: Iterable[Mapping[str, Any]]) -> Table:
        """Ingest row-shaped records and register the resulting table.

        Returns:
            The ingested table, including any recorded cell errors.
        """
        ...

    @abstractmethod
    def execute(self, sql: str, partitions: int | None = None) -> QueryResult:
        """Parse, plan, optimize and run a query.

        Args:
            sql: Query text.
            partitions: Number of row partitions; defaults to configuration.

        Raises:
            ParseError: Malformed query text.
            SchemaError: Unknown table or column.
            QueryTypeError: Incompatible types.
            PlanError: Structurally invalid query.
        """
        ...

    @abstractmethod
    def explain(self, sql: str) -> list[PlanStep]:
        """Estimate the cost of each plan node without running the query."""
        ...

    @abstractmethod
    def pivot(
        self,
        sql: str,
        row_key: str,
        column_key: str,
        value_column: str,
        partitions: int | None = None,
    ) -> PivotTable:
        """Run a two-key group query and reshape its result.

        Raises:
            PivotError: If the result is not a two-key grouping.
        """
        ...
