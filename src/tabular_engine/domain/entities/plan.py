"""Logical plan nodes.

A plan is a tree of frozen nodes, each owning its single child. The canonical
shape built by the planner is::

    Limit -> Sort -> Project -> Aggregate -> Filter -> Scan

with every stage but Scan and Project optional. Each node knows the schema of
the rows it produces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from tabular_engine.domain.entities.expressions import AggregateExpr, Expression
from tabular_engine.domain.entities.table import ColumnSpec, Schema
from tabular_engine.domain.errors import PlanError


@dataclass(frozen=True)
class LogicalPlan(ABC):
    """Base class for logical plan nodes."""

    @property
    @abstractmethod
    def output_schema(self) -> Schema:
        """Schema of the rows this node produces."""

    @property
    def children(self) -> tuple[LogicalPlan, ...]:
        return ()

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def describe(self) -> str:
        """One-line description of this node without its children."""

    def walk(self):
        """Yield this node and its descendants, root first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def __str__(self) -> str:
        lines = []
        for depth, node in enumerate(self.walk()):
            prefix = "  " * depth + ("-> " if depth else "")
            lines.append(prefix + node.describe())
        return "\n".join(lines)


@dataclass(frozen=True)
class Scan(LogicalPlan):
    """Read a table, optionally restricted to a subset of its columns."""

    table_name: str
    table_schema: Schema
    columns: tuple[str, ...] | None = None  # None reads every column

    @property
    def output_schema(self) -> Schema:
        if self.columns is None:
            return self.table_schema
        return self.table_schema.select(self.columns)

    def describe(self) -> str:
        if self.columns is None:
            return f"Scan({self.table_name})"
        return f"Scan({self.table_name}, columns=[{', '.join(self.columns)}])"


@dataclass(frozen=True)
class Filter(LogicalPlan):
    """Filter rows based on a predicate."""

    input: LogicalPlan
    predicate: Expression

    @property
    def output_schema(self) -> Schema:
        return self.input.output_schema

    @property
    def children(self) -> tuple[LogicalPlan, ...]:
        return (self.input,)

    def describe(self) -> str:
        return f"Filter({self.predicate})"


@dataclass(frozen=True)
class Aggregate(LogicalPlan):
    """Hash aggregation; no group keys means one implicit group."""

    input: LogicalPlan
    group_keys: tuple[str, ...]
    aggregates: tuple[AggregateExpr, ...]

    @property
    def output_schema(self) -> Schema:
        source = self.input.output_schema
        specs = [ColumnSpec(k, source.type_of(k)) for k in self.group_keys]
        for agg in self.aggregates:
            arg_type = source.type_of(agg.arg.name) if agg.arg is not None else None
            specs.append(ColumnSpec(str(agg), agg.func.result_type(arg_type)))
        return Schema(tuple(specs))

    @property
    def children(self) -> tuple[LogicalPlan, ...]:
        return (self.input,)

    def describe(self) -> str:
        groups = ", ".join(self.group_keys)
        aggs = ", ".join(str(a) for a in self.aggregates)
        return f"Aggregate(group=[{groups}], agg=[{aggs}])"


@dataclass(frozen=True)
class ProjectItem:
    """Output column ``name`` taken from input column ``source``."""

    source: str
    name: str

    def __str__(self) -> str:
        if self.source == self.name:
            return self.name
        return f"{self.source} AS {self.name}"


@dataclass(frozen=True)
class Project(LogicalPlan):
    """Select, reorder and rename columns."""

    input: LogicalPlan
    items: tuple[ProjectItem, ...]

    def __post_init__(self) -> None:
        names = [item.name for item in self.items]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise PlanError(f"Duplicate output column(s): {', '.join(duplicates)}")

    @property
    def output_schema(self) -> Schema:
        source = self.input.output_schema
        return Schema(
            tuple(ColumnSpec(i.name, source.type_of(i.source)) for i in self.items)
        )

    @property
    def children(self) -> tuple[LogicalPlan, ...]:
        return (self.input,)

    def describe(self) -> str:
        return f"Project({', '.join(str(i) for i in self.items)})"


@dataclass(frozen=True)
class SortKey:
    """A sort column and its direction."""

    column: str
    ascending: bool = True

    def __str__(self) -> str:
        return f"{self.column} {'ASC' if self.ascending else 'DESC'}"


@dataclass(frozen=True)
class Sort(LogicalPlan):
    """Stable sort by one or more keys."""

    input: LogicalPlan
    keys: tuple[SortKey, ...]

    @property
    def output_schema(self) -> Schema:
        return self.input.output_schema

    @property
    def children(self) -> tuple[LogicalPlan, ...]:
        return (self.input,)

    def describe(self) -> str:
        return f"Sort({', '.join(str(k) for k in self.keys)})"


@dataclass(frozen=True)
class Limit(LogicalPlan):
    """Limit the number of rows returned."""

    input: LogicalPlan
    count: int

    def __post_init__(self) -> None:
        if self.count < 0:
            raise PlanError(f"LIMIT must be non-negative, got {self.count}")

    @property
    def output_schema(self) -> Schema:
        return self.input.output_schema

    @property
    def children(self) -> tuple[LogicalPlan, ...]:
        return (self.input,)

    def describe(self) -> str:
        return f"Limit({self.count})"
