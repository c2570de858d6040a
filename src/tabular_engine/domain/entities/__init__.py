"""Domain entities for the query engine.

Exports:
    Table model:
        - ColumnSpec, Schema: Ordered column names and types
        - Column: Immutable typed value sequence
        - Table: Immutable columnar table
        - CellError: Value rejected at ingestion

    Expressions:
        - Expression and its variants (ColumnExpr, StarExpr, LiteralExpr,
          ComparisonExpr, LogicalExpr, AggregateExpr)
        - ComparisonOp, LogicalOp, AggregateFunc

    Logical plan:
        - LogicalPlan: Base class for plan nodes
        - Scan, Filter, Aggregate, Project, Sort, Limit
        - ProjectItem, SortKey

    Aggregation state:
        - Accumulator: Per-group running state
        - PartialAggregate: Unmerged output of one partition
"""

from tabular_engine.domain.entities.accumulator import (
    Accumulator,
    GroupKey,
    PartialAggregate,
)
from tabular_engine.domain.entities.expressions import (
    AggregateExpr,
    AggregateFunc,
    ColumnExpr,
    ComparisonExpr,
    ComparisonOp,
    Expression,
    LiteralExpr,
    LogicalExpr,
    LogicalOp,
    StarExpr,
)
from tabular_engine.domain.entities.plan import (
    Aggregate,
    Filter,
    Limit,
    LogicalPlan,
    Project,
    ProjectItem,
    Scan,
    Sort,
    SortKey,
)
from tabular_engine.domain.entities.table import (
    CellError,
    Column,
    ColumnSpec,
    Row,
    Schema,
    Table,
)

__all__ = [
    # Table model
    "CellError",
    "Column",
    "ColumnSpec",
    "Row",
    "Schema",
    "Table",
    # Expressions
    "Expression",
    "ColumnExpr",
    "StarExpr",
    "LiteralExpr",
    "ComparisonExpr",
    "LogicalExpr",
    "AggregateExpr",
    "ComparisonOp",
    "LogicalOp",
    "AggregateFunc",
    # Logical plan
    "LogicalPlan",
    "Scan",
    "Filter",
    "Aggregate",
    "Project",
    "ProjectItem",
    "Sort",
    "SortKey",
    "Limit",
    # Aggregation state
    "Accumulator",
    "GroupKey",
    "PartialAggregate",
]
