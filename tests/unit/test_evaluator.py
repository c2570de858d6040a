"""Unit tests for predicate evaluation."""

from __future__ import annotations

import pytest

from tabular_engine.domain.entities import (
    ColumnExpr,
    ComparisonExpr,
    ComparisonOp,
    Expression,
    LiteralExpr,
    LogicalExpr,
    LogicalOp,
)
from tabular_engine.domain.errors import QueryTypeError
from tabular_engine.domain.services import check_predicate, compare, evaluate, is_true
from tabular_engine.domain.value_objects import FALSE, NULL, TRUE, Value, ValueType

POSITIONS = {"sales": 0, "region": 1, "flag": 2}


def lit(raw: object) -> LiteralExpr:
    return LiteralExpr(Value.of(raw))


def col(name: str) -> ColumnExpr:
    return ColumnExpr(name)


def cmp(left: Expression, op: ComparisonOp, right: Expression | None = None) -> ComparisonExpr:
    return ComparisonExpr(left=left, op=op, right=right)


def logical(op: LogicalOp, *operands: Expression) -> LogicalExpr:
    return LogicalExpr(op=op, operands=operands)


@pytest.mark.unit
class TestComparisons:
    """Tests for comparison evaluation."""

    @pytest.mark.parametrize(
        ("op", "expected"),
        [
            (ComparisonOp.GT, TRUE),
            (ComparisonOp.GE, TRUE),
            (ComparisonOp.LT, FALSE),
            (ComparisonOp.LE, FALSE),
            (ComparisonOp.EQ, FALSE),
            (ComparisonOp.NE, TRUE),
        ],
    )
    def test_column_against_literal(self, op: ComparisonOp, expected: Value) -> None:
        """Comparisons read the row through column positions."""
        row = (Value.of(1200), Value.of("North"), TRUE)

        assert evaluate(cmp(col("sales"), op, lit(900)), row, POSITIONS) == expected

    def test_integer_float_comparison(self) -> None:
        """Integers and floats compare numerically."""
        assert compare(Value.of(2), ComparisonOp.EQ, Value.of(2.0)) == TRUE
        assert compare(Value.of(2), ComparisonOp.LT, Value.of(2.5)) == TRUE

    def test_null_operand_yields_null(self) -> None:
        """Any comparison with Null is Null."""
        row = (NULL, Value.of("North"), TRUE)

        for op in (ComparisonOp.EQ, ComparisonOp.NE, ComparisonOp.GT):
            assert evaluate(cmp(col("sales"), op, lit(1)), row, POSITIONS) == NULL

    def test_is_null(self) -> None:
        """IS NULL and IS NOT NULL never yield Null."""
        row = (NULL, Value.of("North"), TRUE)

        assert evaluate(cmp(col("sales"), ComparisonOp.IS_NULL), row, POSITIONS) == TRUE
        assert evaluate(cmp(col("region"), ComparisonOp.IS_NULL), row, POSITIONS) == FALSE
        assert (
            evaluate(cmp(col("sales"), ComparisonOp.IS_NOT_NULL), row, POSITIONS) == FALSE
        )

    def test_text_against_number_raises(self) -> None:
        """Mixed type families are a type error."""
        row = (Value.of(1), Value.of("North"), TRUE)

        with pytest.raises(QueryTypeError):
            evaluate(cmp(col("region"), ComparisonOp.GT, lit(5)), row, POSITIONS)

    def test_boolean_equality_only(self) -> None:
        """Booleans support = and != but not ordering."""
        row = (Value.of(1), Value.of("North"), TRUE)

        assert evaluate(cmp(col("flag"), ComparisonOp.EQ, lit(True)), row, POSITIONS) == TRUE
        assert evaluate(cmp(col("flag"), ComparisonOp.NE, lit(True)), row, POSITIONS) == FALSE
        with pytest.raises(QueryTypeError):
            evaluate(cmp(col("flag"), ComparisonOp.LT, lit(False)), row, POSITIONS)


@pytest.mark.unit
class TestThreeValuedLogic:
    """Tests for AND/OR/NOT over TRUE, FALSE and Null."""

    @pytest.mark.parametrize(
        ("left", "right", "expected"),
        [
            (TRUE, TRUE, TRUE),
            (TRUE, FALSE, FALSE),
            (TRUE, NULL, NULL),
            (FALSE, NULL, FALSE),
            (NULL, NULL, NULL),
        ],
    )
    def test_and(self, left: Value, right: Value, expected: Value) -> None:
        expr = logical(LogicalOp.AND, LiteralExpr(left), LiteralExpr(right))

        assert evaluate(expr, (), {}) == expected

    @pytest.mark.parametrize(
        ("left", "right", "expected"),
        [
            (FALSE, FALSE, FALSE),
            (TRUE, FALSE, TRUE),
            (TRUE, NULL, TRUE),
            (FALSE, NULL, NULL),
            (NULL, NULL, NULL),
        ],
    )
    def test_or(self, left: Value, right: Value, expected: Value) -> None:
        expr = logical(LogicalOp.OR, LiteralExpr(left), LiteralExpr(right))

        assert evaluate(expr, (), {}) == expected

    @pytest.mark.parametrize(
        ("operand", "expected"), [(TRUE, FALSE), (FALSE, TRUE), (NULL, NULL)]
    )
    def test_not(self, operand: Value, expected: Value) -> None:
        expr = logical(LogicalOp.NOT, LiteralExpr(operand))

        assert evaluate(expr, (), {}) == expected

    def test_non_boolean_operand_raises(self) -> None:
        """Logical operators require Boolean operands."""
        with pytest.raises(QueryTypeError):
            evaluate(logical(LogicalOp.AND, lit(1), lit(True)), (), {})

    def test_type_error_surfaces_regardless_of_order(self) -> None:
        """A FALSE left operand does not hide a type error on the right."""
        bad = cmp(lit("a"), ComparisonOp.LT, lit(1))

        with pytest.raises(QueryTypeError):
            evaluate(logical(LogicalOp.AND, lit(False), bad), (), {})


@pytest.mark.unit
class TestIsTrue:
    """Tests for filter admission."""

    def test_only_true_passes(self) -> None:
        assert is_true(TRUE)
        assert not is_true(FALSE)
        assert not is_true(NULL)


@pytest.mark.unit
class TestCheckPredicate:
    """Tests for plan-time predicate typing."""

    TYPES = {
        "sales": ValueType.INTEGER,
        "region": ValueType.TEXT,
        "flag": ValueType.BOOLEAN,
        "empty": ValueType.NULL,
    }

    def test_error_hidden_behind_true_operand_is_found(self) -> None:
        """OR with a TRUE left side still fails on a mistyped right side."""
        expr = logical(
            LogicalOp.OR,
            cmp(col("sales"), ComparisonOp.EQ, lit(1)),
            cmp(col("sales"), ComparisonOp.EQ, lit("x")),
        )

        with pytest.raises(QueryTypeError):
            check_predicate(expr, self.TYPES)

    def test_null_typed_column_is_compatible(self) -> None:
        check_predicate(cmp(col("empty"), ComparisonOp.LT, lit("x")), self.TYPES)

    def test_mixed_numeric_is_compatible(self) -> None:
        check_predicate(cmp(col("sales"), ComparisonOp.GE, lit(1.5)), self.TYPES)

    def test_boolean_equality_only(self) -> None:
        check_predicate(cmp(col("flag"), ComparisonOp.NE, lit(True)), self.TYPES)

        with pytest.raises(QueryTypeError):
            check_predicate(cmp(col("flag"), ComparisonOp.GT, lit(False)), self.TYPES)

    def test_condition_must_be_boolean(self) -> None:
        with pytest.raises(QueryTypeError):
            check_predicate(col("region"), self.TYPES)

        check_predicate(col("flag"), self.TYPES)
        check_predicate(cmp(col("region"), ComparisonOp.IS_NULL), self.TYPES)
