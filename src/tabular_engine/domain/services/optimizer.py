"""Rule-based logical plan optimizer.

The optimizer is a pure rewrite: it never changes the rows a plan produces,
only the cost of producing them. ``optimize`` is idempotent.

Rewrites, applied in order:
    1. Constant folding - literal-only predicate sub-expressions are evaluated,
       TRUE/FALSE identities are simplified, and a Filter whose predicate folds
       to TRUE is removed.
    2. Column pruning - every Scan reads only the columns its ancestors need.
    3. No-op elimination - identity Projects and Sorts over input already
       ordered on the same keys are removed.

Filters are never moved relative to aggregation.
"""

from __future__ import annotations

import dataclasses

from tabular_engine.domain.entities.expressions import (
    ComparisonExpr,
    Expression,
    LiteralExpr,
    LogicalExpr,
    LogicalOp,
)
from tabular_engine.domain.entities.plan import (
    Aggregate,
    Filter,
    Limit,
    LogicalPlan,
    Project,
    Scan,
    Sort,
)
from tabular_engine.domain.errors import QueryTypeError
from tabular_engine.domain.services.evaluator import evaluate
from tabular_engine.domain.value_objects import FALSE, TRUE


class Optimizer:
    """Applies constant folding, column pruning and no-op elimination.

    Example:
        >>> optimizer = Optimizer()
        >>> optimized = optimizer.optimize(plan)
        >>> optimizer.optimize(optimized) == optimized
        True
    """

    def optimize(self, plan: LogicalPlan) -> LogicalPlan:
        plan = self.fold_constants(plan)
        plan = self.prune_columns(plan)
        plan = self.eliminate_noops(plan)
        return plan

    # Constant folding

    def fold_constants(self, plan: LogicalPlan) -> LogicalPlan:
        if isinstance(plan, Scan):
            return plan
        child = self.fold_constants(plan.children[0])
        if isinstance(plan, Filter):
            predicate = fold_expression(plan.predicate)
            if predicate == LiteralExpr(TRUE):
                return child
            return Filter(input=child, predicate=predicate)
        return dataclasses.replace(plan, input=child)

    # Column pruning

    def prune_columns(
        self, plan: LogicalPlan, required: set[str] | None = None
    ) -> LogicalPlan:
        """Restrict Scans to the columns required above them.

        Args:
            plan: Plan to rewrite
            required: Output columns of ``plan`` its parent needs; None means
                all of them
        """
        if required is None:
            required = set(plan.output_schema.names)

        if isinstance(plan, Scan):
            current = plan.output_schema.names
            kept = tuple(n for n in current if n in required)
            if kept == plan.table_schema.names:
                return dataclasses.replace(plan, columns=None)
            return dataclasses.replace(plan, columns=kept)

        if isinstance(plan, Filter):
            child_required = required | plan.predicate.columns()
        elif isinstance(plan, Aggregate):
            child_required = set(plan.group_keys)
            for agg in plan.aggregates:
                child_required |= agg.columns()
        elif isinstance(plan, Project):
            child_required = {item.source for item in plan.items}
        elif isinstance(plan, Sort):
            child_required = required | {key.column for key in plan.keys}
        elif isinstance(plan, Limit):
            child_required = required
        else:
            raise TypeError(f"Unsupported plan node: {type(plan).__name__}")

        child = self.prune_columns(plan.children[0], child_required)
        return dataclasses.replace(plan, input=child)

    # No-op elimination

    def eliminate_noops(self, plan: LogicalPlan) -> LogicalPlan:
        if isinstance(plan, Scan):
            return plan
        child = self.eliminate_noops(plan.children[0])
        if isinstance(plan, Project) and plan.output_schema == child.output_schema:
            return child
        if isinstance(plan, Sort) and self._already_ordered(child, plan):
            return child
        return dataclasses.replace(plan, input=child)

    def _already_ordered(self, child: LogicalPlan, sort: Sort) -> bool:
        # Limit preserves the order of its input
        while isinstance(child, Limit):
            child = child.input
        return isinstance(child, Sort) and child.keys == sort.keys


def fold_expression(expr: Expression) -> Expression:
    """Fold literal-only sub-expressions of a predicate.

    Sub-expressions whose evaluation would raise a type error are left
    unfolded so the error surfaces at execution time, if any row reaches it.
    """
    if isinstance(expr, ComparisonExpr):
        left = fold_expression(expr.left)
        right = fold_expression(expr.right) if expr.right is not None else None
        folded = ComparisonExpr(left=left, op=expr.op, right=right)
        literal_operands = isinstance(left, LiteralExpr) and (
            right is None or isinstance(right, LiteralExpr)
        )
        if literal_operands:
            return _try_literal(folded)
        return folded

    if isinstance(expr, LogicalExpr):
        operands = tuple(fold_expression(o) for o in expr.operands)
        if expr.op is LogicalOp.NOT:
            folded = LogicalExpr(op=LogicalOp.NOT, operands=operands)
            if isinstance(operands[0], LiteralExpr):
                return _try_literal(folded)
            return folded

        identity = LiteralExpr(TRUE if expr.op is LogicalOp.AND else FALSE)
        remaining = tuple(o for o in operands if o != identity)
        if not remaining:
            return identity
        if len(remaining) == 1:
            return remaining[0]
        folded = LogicalExpr(op=expr.op, operands=remaining)
        if all(isinstance(o, LiteralExpr) for o in remaining):
            return _try_literal(folded)
        return folded

    return expr


def _try_literal(expr: Expression) -> Expression:
    try:
        return LiteralExpr(evaluate(expr, (), {}))
    except QueryTypeError:
        return expr

