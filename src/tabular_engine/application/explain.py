"""Cost estimates for logical plans.

Estimates are heuristic and derived only from the source row count: a
filter is assumed to keep half of its input and a grouped aggregation at
most ten groups. They are meant for comparing plan shapes, not for
predicting run time.
"""

from __future__ import annotations

from tabular_engine.domain.entities import (
    Aggregate,
    Filter,
    Limit,
    LogicalPlan,
    Project,
    Scan,
    Sort,
)
from tabular_engine.ports.inbound.query_service import PlanStep

PARSE_COST = 0.1
VALIDATE_COST = 0.1

# Cost per input row
SCAN_COST = 0.001
FILTER_COST = 0.001
AGGREGATE_COST = 0.002
PROJECT_COST = 0.0005
SORT_COST = 0.003

MAX_ESTIMATED_GROUPS = 10


def estimate_plan(plan: LogicalPlan, num_rows: int) -> list[PlanStep]:
    """Estimate cost and output rows of each plan node, leaf first.

    The first two steps account for parsing and schema validation.

    Args:
        plan: Root of the plan tree.
        num_rows: Row count of the scanned table.
    """
    steps = [
        PlanStep(operation="Parse SQL", cost=PARSE_COST, rows_estimated=0),
        PlanStep(operation="Validate Schema", cost=VALIDATE_COST, rows_estimated=0),
    ]
    for node in reversed(list(plan.walk())):
        rows_in = steps[-1].rows_estimated if len(steps) > 2 else num_rows
        steps.append(_estimate_node(node, rows_in))
    return steps


def _estimate_node(node: LogicalPlan, rows_in: int) -> PlanStep:
    if isinstance(node, Scan):
        cost, rows_out = rows_in * SCAN_COST, rows_in
    elif isinstance(node, Filter):
        cost, rows_out = rows_in * FILTER_COST, rows_in // 2
    elif isinstance(node, Aggregate):
        groups = min(rows_in, MAX_ESTIMATED_GROUPS) if node.group_keys else 1
        cost, rows_out = rows_in * AGGREGATE_COST, groups
    elif isinstance(node, Project):
        cost, rows_out = rows_in * PROJECT_COST, rows_in
    elif isinstance(node, Sort):
        cost, rows_out = rows_in * SORT_COST, rows_in
    elif isinstance(node, Limit):
        cost, rows_out = 0.0, min(rows_in, node.count)
    else:
        raise TypeError(f"Unsupported plan node: {node.name}")
    return PlanStep(operation=node.describe(), cost=cost, rows_estimated=rows_out)
