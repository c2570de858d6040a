"""Unit tests for SQL Parser."""

from __future__ import annotations

import pytest

from tabular_engine.adapters.inbound import SQLParser
from tabular_engine.domain.entities import (
    AggregateExpr,
    AggregateFunc,
    ColumnExpr,
    ComparisonExpr,
    ComparisonOp,
    LiteralExpr,
    LogicalExpr,
    LogicalOp,
    StarExpr,
)
from tabular_engine.domain.errors import ParseError
from tabular_engine.domain.value_objects import NULL, TRUE, Value, ValueType


@pytest.fixture
def parser() -> SQLParser:
    """Create a SQL parser for testing."""
    return SQLParser()


@pytest.mark.unit
class TestSQLParserSelect:
    """Tests for SELECT list and FROM parsing."""

    def test_simple_select(self, parser: SQLParser) -> None:
        """Parse simple SELECT."""
        query = parser.parse("SELECT id, name FROM users")

        assert query.table_name == "users"
        assert [i.expr for i in query.select_items] == [ColumnExpr("id"), ColumnExpr("name")]
        assert query.where is None
        assert query.group_by == ()
        assert query.order_by == ()
        assert query.limit is None

    def test_select_star(self, parser: SQLParser) -> None:
        """Parse SELECT *."""
        query = parser.parse("SELECT * FROM data")

        assert len(query.select_items) == 1
        assert isinstance(query.select_items[0].expr, StarExpr)

    def test_keywords_are_case_insensitive(self, parser: SQLParser) -> None:
        """Keywords may be written in any case."""
        upper = parser.parse("SELECT category FROM data WHERE sales > 1 LIMIT 2")
        lower = parser.parse("select category from data where sales > 1 limit 2")

        assert upper == lower

    def test_identifiers_are_case_sensitive(self, parser: SQLParser) -> None:
        """Identifier case is preserved."""
        query = parser.parse("SELECT Category FROM Data")

        assert query.select_items[0].expr == ColumnExpr("Category")
        assert query.table_name == "Data"

    def test_quoted_identifier(self, parser: SQLParser) -> None:
        """Double-quoted identifiers may contain spaces."""
        query = parser.parse('SELECT "unit price" FROM data')

        assert query.select_items[0].expr == ColumnExpr("unit price")

    def test_alias_with_as(self, parser: SQLParser) -> None:
        """Parse an explicit alias."""
        query = parser.parse("SELECT SUM(sales) AS total FROM data")

        item = query.select_items[0]
        assert item.alias == "total"
        assert item.output_name == "total"

    def test_bare_alias(self, parser: SQLParser) -> None:
        """Parse an alias without AS."""
        query = parser.parse("SELECT category cat FROM data")

        assert query.select_items[0].alias == "cat"

    def test_output_name_defaults_to_expression(self, parser: SQLParser) -> None:
        """Unaliased items are named after their expression."""
        query = parser.parse("SELECT category, COUNT(*) FROM data")

        assert [i.output_name for i in query.select_items] == ["category", "COUNT(*)"]

    def test_trailing_semicolon(self, parser: SQLParser) -> None:
        """A trailing semicolon is accepted."""
        query = parser.parse("SELECT * FROM data;")

        assert query.table_name == "data"


@pytest.mark.unit
class TestSQLParserAggregates:
    """Tests for aggregate calls."""

    @pytest.mark.parametrize("func", list(AggregateFunc))
    def test_aggregate_functions(self, parser: SQLParser, func: AggregateFunc) -> None:
        """Every supported function parses with a column argument."""
        query = parser.parse(f"SELECT {func.value}(sales) FROM data")

        assert query.select_items[0].expr == AggregateExpr(func, ColumnExpr("sales"))
        assert query.has_aggregates

    def test_lowercase_function_name(self, parser: SQLParser) -> None:
        """Function names are case-insensitive."""
        query = parser.parse("SELECT sum(sales) FROM data")

        assert query.select_items[0].expr == AggregateExpr(
            AggregateFunc.SUM, ColumnExpr("sales")
        )

    def test_count_star(self, parser: SQLParser) -> None:
        """COUNT(*) has no argument."""
        query = parser.parse("SELECT COUNT(*) FROM data")

        assert query.select_items[0].expr == AggregateExpr(AggregateFunc.COUNT, None)

    def test_sum_star_rejected(self, parser: SQLParser) -> None:
        """Only COUNT accepts *."""
        with pytest.raises(ParseError):
            parser.parse("SELECT SUM(*) FROM data")

    def test_unknown_function(self, parser: SQLParser) -> None:
        """Unknown functions are parse errors."""
        sql = "SELECT UPPER(region) FROM data"
        with pytest.raises(ParseError) as exc_info:
            parser.parse(sql)

        assert exc_info.value.position == sql.index("UPPER")

    def test_group_by(self, parser: SQLParser) -> None:
        """Parse GROUP BY with several columns."""
        query = parser.parse(
            "SELECT category, region, SUM(sales) FROM data GROUP BY category, region"
        )

        assert query.group_by == ("category", "region")


@pytest.mark.unit
class TestSQLParserPredicates:
    """Tests for WHERE predicates."""

    def test_comparison(self, parser: SQLParser) -> None:
        """Parse a simple comparison."""
        query = parser.parse("SELECT * FROM data WHERE sales > 900")

        assert query.where == ComparisonExpr(
            ColumnExpr("sales"), ComparisonOp.GT, LiteralExpr(Value(ValueType.INTEGER, 900))
        )

    @pytest.mark.parametrize(
        ("text", "op"),
        [
            ("=", ComparisonOp.EQ),
            ("!=", ComparisonOp.NE),
            ("<>", ComparisonOp.NE),
            ("<", ComparisonOp.LT),
            ("<=", ComparisonOp.LE),
            (">", ComparisonOp.GT),
            (">=", ComparisonOp.GE),
        ],
    )
    def test_comparison_operators(
        self, parser: SQLParser, text: str, op: ComparisonOp
    ) -> None:
        """Every comparison operator is recognized."""
        query = parser.parse(f"SELECT * FROM data WHERE sales {text} 1")

        assert isinstance(query.where, ComparisonExpr)
        assert query.where.op is op

    def test_literals(self, parser: SQLParser) -> None:
        """String, float, negative, boolean and NULL literals."""
        query = parser.parse(
            "SELECT * FROM data WHERE a = 'x' AND b = 1.5 AND c = -3 AND d = TRUE AND e = NULL"
        )

        assert isinstance(query.where, LogicalExpr)
        literals = [c.right for c in query.where.operands]
        assert literals == [
            LiteralExpr(Value(ValueType.TEXT, "x")),
            LiteralExpr(Value(ValueType.FLOAT, 1.5)),
            LiteralExpr(Value(ValueType.INTEGER, -3)),
            LiteralExpr(TRUE),
            LiteralExpr(NULL),
        ]

    def test_escaped_quote_in_string(self, parser: SQLParser) -> None:
        """Doubled single quotes escape a quote."""
        query = parser.parse("SELECT * FROM data WHERE name = 'it''s'")

        assert query.where.right == LiteralExpr(Value(ValueType.TEXT, "it's"))

    def test_and_binds_tighter_than_or(self, parser: SQLParser) -> None:
        """a OR b AND c parses as a OR (b AND c)."""
        query = parser.parse("SELECT * FROM data WHERE a = 1 OR b = 2 AND c = 3")

        assert query.where.op is LogicalOp.OR
        left, right = query.where.operands
        assert isinstance(left, ComparisonExpr)
        assert right.op is LogicalOp.AND

    def test_not_binds_tighter_than_and(self, parser: SQLParser) -> None:
        """NOT a AND b parses as (NOT a) AND b."""
        query = parser.parse("SELECT * FROM data WHERE NOT a = 1 AND b = 2")

        assert query.where.op is LogicalOp.AND
        assert query.where.operands[0].op is LogicalOp.NOT

    def test_chained_and_is_flat(self, parser: SQLParser) -> None:
        """Repeated AND collects all operands in one node."""
        query = parser.parse("SELECT * FROM data WHERE a = 1 AND b = 2 AND c = 3")

        assert query.where.op is LogicalOp.AND
        assert len(query.where.operands) == 3

    def test_parentheses(self, parser: SQLParser) -> None:
        """Parentheses override precedence."""
        query = parser.parse("SELECT * FROM data WHERE (a = 1 OR b = 2) AND c = 3")

        assert query.where.op is LogicalOp.AND
        assert query.where.operands[0].op is LogicalOp.OR

    def test_is_null(self, parser: SQLParser) -> None:
        """Parse IS NULL and IS NOT NULL."""
        query = parser.parse("SELECT * FROM data WHERE a IS NULL OR b IS NOT NULL")

        first, second = query.where.operands
        assert first == ComparisonExpr(ColumnExpr("a"), ComparisonOp.IS_NULL)
        assert second == ComparisonExpr(ColumnExpr("b"), ComparisonOp.IS_NOT_NULL)

    def test_predicate_string(self, parser: SQLParser) -> None:
        """Predicates render back to readable text."""
        query = parser.parse("SELECT * FROM data WHERE sales > 900 AND region = 'North'")

        assert str(query.where) == "(sales > 900 AND region = 'North')"


@pytest.mark.unit
class TestSQLParserOrderLimit:
    """Tests for ORDER BY and LIMIT."""

    def test_order_by_directions(self, parser: SQLParser) -> None:
        """ASC is the default; DESC is recognized."""
        query = parser.parse("SELECT * FROM data ORDER BY region, sales DESC, category ASC")

        assert [(str(o.expr), o.ascending) for o in query.order_by] == [
            ("region", True),
            ("sales", False),
            ("category", True),
        ]

    def test_order_by_aggregate(self, parser: SQLParser) -> None:
        """ORDER BY may name an aggregate call."""
        query = parser.parse(
            "SELECT category, SUM(sales) FROM data GROUP BY category ORDER BY SUM(sales) DESC"
        )

        assert query.order_by[0].expr == AggregateExpr(AggregateFunc.SUM, ColumnExpr("sales"))
        assert not query.order_by[0].ascending

    def test_limit(self, parser: SQLParser) -> None:
        """Parse LIMIT."""
        query = parser.parse("SELECT * FROM data LIMIT 3")

        assert query.limit == 3

    def test_negative_limit_parses(self, parser: SQLParser) -> None:
        """A negative LIMIT is syntactically valid; planning rejects it."""
        query = parser.parse("SELECT * FROM data LIMIT -1")

        assert query.limit == -1

    def test_fractional_limit_rejected(self, parser: SQLParser) -> None:
        """LIMIT requires an integer."""
        with pytest.raises(ParseError):
            parser.parse("SELECT * FROM data LIMIT 1.5")


@pytest.mark.unit
class TestSQLParserErrors:
    """Tests for malformed input."""

    def test_select_from_where(self, parser: SQLParser) -> None:
        """An empty select list fails at the FROM keyword."""
        with pytest.raises(ParseError) as exc_info:
            parser.parse("SELECT FROM WHERE")

        assert exc_info.value.position == 7
        assert "position 7" in str(exc_info.value)

    def test_unterminated_string(self, parser: SQLParser) -> None:
        """An unterminated string reports the opening quote."""
        sql = "SELECT * FROM data WHERE region = 'North"
        with pytest.raises(ParseError) as exc_info:
            parser.parse(sql)

        assert exc_info.value.position == sql.index("'")

    def test_missing_from(self, parser: SQLParser) -> None:
        """FROM is required."""
        with pytest.raises(ParseError) as exc_info:
            parser.parse("SELECT category")

        assert exc_info.value.position == len("SELECT category")

    def test_trailing_tokens(self, parser: SQLParser) -> None:
        """Input after a complete query is rejected."""
        sql = "SELECT * FROM data LIMIT 1 LIMIT 2"
        with pytest.raises(ParseError) as exc_info:
            parser.parse(sql)

        assert exc_info.value.position == sql.rindex("LIMIT")

    def test_unsupported_statement(self, parser: SQLParser) -> None:
        """Only SELECT is supported."""
        with pytest.raises(ParseError) as exc_info:
            parser.parse("DELETE FROM data")

        assert exc_info.value.position == 0

    def test_aggregate_in_where(self, parser: SQLParser) -> None:
        """Aggregates cannot appear in predicates."""
        with pytest.raises(ParseError):
            parser.parse("SELECT * FROM data WHERE SUM(sales) > 1")

    def test_incomplete_predicate(self, parser: SQLParser) -> None:
        """A comparison needs a right-hand operand."""
        with pytest.raises(ParseError):
            parser.parse("SELECT * FROM data WHERE sales >")

    def test_unclosed_parenthesis(self, parser: SQLParser) -> None:
        """Parentheses must balance."""
        with pytest.raises(ParseError):
            parser.parse("SELECT * FROM data WHERE (sales > 1")

    def test_empty_input(self, parser: SQLParser) -> None:
        """Empty text fails at position 0."""
        with pytest.raises(ParseError) as exc_info:
            parser.parse("")

        assert exc_info.value.position == 0
