"""Unit tests for the logical plan optimizer."""

from __future__ import annotations

import pytest

from tabular_engine.adapters.inbound import SQLParser
from tabular_engine.application import PlanBuilder, QueryExecutor
from tabular_engine.domain.entities import (
    ColumnExpr,
    ComparisonExpr,
    ComparisonOp,
    Filter,
    Limit,
    LiteralExpr,
    LogicalExpr,
    LogicalOp,
    LogicalPlan,
    Project,
    Scan,
    Sort,
    SortKey,
    Table,
)
from tabular_engine.domain.services import Optimizer, fold_expression
from tabular_engine.domain.value_objects import FALSE, TRUE, Value

QUERIES = [
    "SELECT * FROM data",
    "SELECT category FROM data WHERE sales > 900",
    "SELECT category, sales FROM data WHERE 1 = 1 AND sales > 900",
    "SELECT region FROM data WHERE 1 = 2",
    "SELECT category, SUM(sales) AS total FROM data GROUP BY category ORDER BY total DESC",
    "SELECT region, COUNT(*) FROM data WHERE NOT (sales < 700) GROUP BY region",
    "SELECT category, region FROM data ORDER BY category, region DESC LIMIT 3",
    "SELECT AVG(sales), MIN(sales), MAX(sales) FROM data WHERE TRUE OR sales > 1",
]


@pytest.fixture
def build(sales_table: Table):
    """Parse and plan a query against the sales table."""
    parser = SQLParser()
    planner = PlanBuilder()

    def _build(sql: str) -> LogicalPlan:
        return planner.build(parser.parse(sql), sales_table.schema)

    return _build


def scan_of(plan: LogicalPlan) -> Scan:
    return [node for node in plan.walk() if isinstance(node, Scan)][0]


@pytest.mark.unit
class TestOptimizer:
    """Tests for Optimizer.optimize."""

    @pytest.mark.property
    @pytest.mark.parametrize("sql", QUERIES)
    def test_idempotent(self, build, sql: str) -> None:
        """Optimizing an optimized plan changes nothing."""
        optimizer = Optimizer()
        once = optimizer.optimize(build(sql))

        assert optimizer.optimize(once) == once

    @pytest.mark.property
    @pytest.mark.parametrize("sql", QUERIES)
    def test_preserves_results(self, build, sales_table: Table, sql: str) -> None:
        """Optimized and unoptimized plans return the same rows in the same order."""
        executor = QueryExecutor(batch_size=2)
        plan = build(sql)

        original = executor.execute(plan, sales_table).table
        optimized = executor.execute(Optimizer().optimize(plan), sales_table).table

        assert optimized.schema == original.schema
        assert optimized.to_tuples() == original.to_tuples()

    def test_true_filter_removed(self, build) -> None:
        plan = Optimizer().optimize(build("SELECT category FROM data WHERE 1 = 1"))

        assert not any(isinstance(node, Filter) for node in plan.walk())

    def test_true_conjunct_dropped(self, build) -> None:
        plan = Optimizer().optimize(
            build("SELECT category FROM data WHERE 1 = 1 AND sales > 900")
        )
        filters = [node for node in plan.walk() if isinstance(node, Filter)]

        assert len(filters) == 1
        assert str(filters[0].predicate) == "sales > 900"

    def test_false_filter_kept(self, build) -> None:
        plan = Optimizer().optimize(build("SELECT category FROM data WHERE 1 = 2"))
        filters = [node for node in plan.walk() if isinstance(node, Filter)]

        assert filters[0].predicate == LiteralExpr(FALSE)

    def test_scan_pruned_to_needed_columns(self, build) -> None:
        """The scan reads only columns used above it, in table order."""
        plan = Optimizer().optimize(build("SELECT category FROM data WHERE sales > 900"))

        assert scan_of(plan).columns == ("category", "sales")

    def test_aggregate_prunes_to_keys_and_arguments(self, build) -> None:
        plan = Optimizer().optimize(
            build("SELECT region, COUNT(*) FROM data GROUP BY region")
        )

        assert scan_of(plan).columns == ("region",)

    def test_identity_project_removed(self, build) -> None:
        plan = Optimizer().optimize(build("SELECT * FROM data"))

        assert isinstance(plan, Scan)
        assert plan.columns is None

    def test_renaming_project_kept(self, build) -> None:
        plan = Optimizer().optimize(
            build("SELECT category AS c, sales, region FROM data")
        )

        assert isinstance(plan, Project)

    def test_filter_stays_below_aggregate(self, build) -> None:
        """Filters are never moved across aggregation."""
        plan = Optimizer().optimize(
            build("SELECT category, SUM(sales) FROM data WHERE sales > 700 GROUP BY category")
        )
        names = [node.name for node in plan.walk()]

        assert names.index("Aggregate") < names.index("Filter")

    def test_redundant_sort_removed(self, sales_table: Table) -> None:
        """A sort over input already sorted on the same keys is dropped."""
        keys = (SortKey("sales", ascending=False),)
        scan = Scan(table_name="data", table_schema=sales_table.schema)
        inner = Sort(input=Limit(input=Sort(input=scan, keys=keys), count=3), keys=keys)

        plan = Optimizer().eliminate_noops(inner)

        assert isinstance(plan, Limit)
        assert isinstance(plan.input, Sort)

    def test_sort_on_other_keys_kept(self, sales_table: Table) -> None:
        scan = Scan(table_name="data", table_schema=sales_table.schema)
        plan = Sort(
            input=Sort(input=scan, keys=(SortKey("sales"),)),
            keys=(SortKey("region"),),
        )

        assert Optimizer().eliminate_noops(plan) == plan


@pytest.mark.unit
class TestFoldExpression:
    """Tests for fold_expression."""

    def test_literal_comparison_folds(self) -> None:
        expr = ComparisonExpr(
            left=LiteralExpr(Value.of(2)), op=ComparisonOp.GT, right=LiteralExpr(Value.of(1))
        )

        assert fold_expression(expr) == LiteralExpr(TRUE)

    def test_column_comparison_unchanged(self) -> None:
        expr = ComparisonExpr(
            left=ColumnExpr("sales"), op=ComparisonOp.GT, right=LiteralExpr(Value.of(1))
        )

        assert fold_expression(expr) == expr

    def test_type_error_left_unfolded(self) -> None:
        """Invalid literal comparisons are kept for execution to report."""
        expr = ComparisonExpr(
            left=LiteralExpr(Value.of("a")), op=ComparisonOp.LT, right=LiteralExpr(Value.of(1))
        )

        assert fold_expression(expr) == expr

    def test_or_with_false_identity(self) -> None:
        sales = ComparisonExpr(
            left=ColumnExpr("sales"), op=ComparisonOp.GT, right=LiteralExpr(Value.of(1))
        )
        expr = LogicalExpr(op=LogicalOp.OR, operands=(LiteralExpr(FALSE), sales))

        assert fold_expression(expr) == sales

    def test_not_of_literal(self) -> None:
        expr = LogicalExpr(op=LogicalOp.NOT, operands=(LiteralExpr(FALSE),))

        assert fold_expression(expr) == LiteralExpr(TRUE)
