"""Domain services for the query engine.

Exports:
    - evaluate, compare, is_true: Row-level expression evaluation
    - check_predicate: Plan-time type check of filter predicates
    - HashAggregator, finalize_groups, merge_partials: Aggregation and merge
    - Optimizer, fold_expression: Logical plan rewrites
    - PivotTable, pivot, flatten: Two-key result reshaping
"""

from tabular_engine.domain.services.aggregation import (
    HashAggregator,
    finalize_groups,
    merge_partials,
)
from tabular_engine.domain.services.evaluator import (
    check_predicate,
    compare,
    evaluate,
    is_true,
)
from tabular_engine.domain.services.optimizer import Optimizer, fold_expression
from tabular_engine.domain.services.pivot import PivotTable, flatten, pivot

__all__ = [
    "evaluate",
    "compare",
    "is_true",
    "check_predicate",
    "HashAggregator",
    "finalize_groups",
    "merge_partials",
    "Optimizer",
    "fold_expression",
    "PivotTable",
    "pivot",
    "flatten",
]
