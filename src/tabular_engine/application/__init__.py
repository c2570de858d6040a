"""Application layer for the query engine.

The application layer orchestrates domain logic to fulfill use cases:
planning, executing and explaining queries over registered tables.

Exports:
    QueryEngine:
        - QueryEngine: Main entry point for the query engine
    Planning:
        - PlanBuilder: Builds validated logical plans from parsed queries
        - estimate_plan: Cost estimates for explain
    Execution:
        - QueryExecutor: Executes plans using a batched Volcano model
        - ExecutionResult: Result table, trace and scan count
        - Operator: Base class for executor operators
    Parallel execution:
        - ParallelExecutor: Runs plans over row partitions on a worker pool
        - execute_partial, merge, finish: Partition boundary operations
    Tables:
        - TableRegistry, TableInfo: Named in-memory tables
"""

from tabular_engine.application.executor import (
    AggregateOperator,
    ExecutionResult,
    FilterOperator,
    LimitOperator,
    Operator,
    OperatorStats,
    ProjectOperator,
    QueryExecutor,
    ScanOperator,
    SortOperator,
    ValuesOperator,
)
from tabular_engine.application.explain import estimate_plan
from tabular_engine.application.parallel import (
    ParallelExecutor,
    execute_partial,
    finish,
    merge,
)
from tabular_engine.application.planner import PlanBuilder
from tabular_engine.application.query_engine import QueryEngine
from tabular_engine.application.registry import TableInfo, TableRegistry

__all__ = [
    "QueryEngine",
    "PlanBuilder",
    "estimate_plan",
    "QueryExecutor",
    "ExecutionResult",
    "Operator",
    "OperatorStats",
    "ScanOperator",
    "ValuesOperator",
    "FilterOperator",
    "AggregateOperator",
    "ProjectOperator",
    "SortOperator",
    "LimitOperator",
    "ParallelExecutor",
    "execute_partial",
    "merge",
    "finish",
    "TableRegistry",
    "TableInfo",
]
