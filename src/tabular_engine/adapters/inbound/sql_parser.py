"""SQL parser for the engine's query subset.

Tokenization is delegated to sqlglot's tokenizer; the grammar itself is a
hand-written recursive-descent parser producing an immutable ``Query`` AST.
sqlglot.parse_one is not used: it accepts far more SQL than the engine runs,
and its errors carry line/column pairs rather than a character offset.
The parser performs no schema validation - that happens in plan building.

Grammar::

    query      := SELECT items FROM name [WHERE or_expr]
                  [GROUP BY name (',' name)*]
                  [ORDER BY order_item (',' order_item)*]
                  [LIMIT ['-'] integer] [';']
    items      := item (',' item)*
    item       := '*' | (aggregate | name) [[AS] name]
    aggregate  := (SUM | AVG | COUNT | MIN | MAX) '(' ('*' | name) ')'
    order_item := (aggregate | name) [ASC | DESC]
    or_expr    := and_expr (OR and_expr)*
    and_expr   := not_expr (AND not_expr)*
    not_expr   := NOT not_expr | comparison
    comparison := operand [cmp_op operand | IS [NOT] NULL]
    operand    := '(' or_expr ')' | literal | name

Keywords are case-insensitive; identifiers are case-sensitive and may be
double-quoted.

References:
    - sqlglot tokenizer: https://sqlglot.com/sqlglot/tokens.html
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import sqlglot
from sqlglot.errors import TokenError
from sqlglot.tokens import Token, TokenType

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
from tabular_engine.domain.errors import ParseError
from tabular_engine.domain.value_objects import FALSE, NULL, TRUE, Value, ValueType

RESERVED_WORDS = frozenset(
    {
        "SELECT", "FROM", "WHERE", "GROUP", "ORDER", "BY", "LIMIT", "AND",
        "OR", "NOT", "AS", "ASC", "DESC", "TRUE", "FALSE", "NULL", "IS",
        "DISTINCT", "HAVING", "JOIN",
    }
)

COMPARISON_OPS = {
    "=": ComparisonOp.EQ,
    "!=": ComparisonOp.NE,
    "<>": ComparisonOp.NE,
    "<": ComparisonOp.LT,
    "<=": ComparisonOp.LE,
    ">": ComparisonOp.GT,
    ">=": ComparisonOp.GE,
}

AGGREGATE_FUNCS = {func.value: func for func in AggregateFunc}

_WORD = re.compile(r"[A-Za-z_][A-Za-z0-9_]*\Z")
_INTEGER = re.compile(r"\d+\Z")
_QUOTED = (TokenType.STRING, TokenType.IDENTIFIER)


@dataclass(frozen=True)
class SelectItem:
    """An item in a SELECT list."""

    expr: Expression
    alias: str | None = None

    @property
    def output_name(self) -> str:
        return self.alias or str(self.expr)


@dataclass(frozen=True)
class OrderByItem:
    """An item in an ORDER BY clause."""

    expr: Expression
    ascending: bool = True


@dataclass(frozen=True)
class Query:
    """Parsed SELECT statement."""

    select_items: tuple[SelectItem, ...]
    table_name: str
    where: Expression | None = None
    group_by: tuple[str, ...] = ()
    order_by: tuple[OrderByItem, ...] = ()
    limit: int | None = None

    @property
    def has_aggregates(self) -> bool:
        return any(isinstance(i.expr, AggregateExpr) for i in self.select_items)


class SQLParser:
    """Parses query text into a ``Query`` AST.

    Example:
        >>> parser = SQLParser()
        >>> query = parser.parse("SELECT id, name FROM users WHERE age > 18")
        >>> query.table_name
        'users'
        >>> str(query.where)
        'age > 18'
    """

    def __init__(self, dialect: str = "sqlite") -> None:
        """Initialize the parser.

        Args:
            dialect: sqlglot dialect whose tokenizer rules are used.
        """
        self._dialect = dialect

    def parse(self, sql: str) -> Query:
        """Parse query text.

        Raises:
            ParseError: On malformed input, with the offending position.
        """
        try:
            tokens = sqlglot.tokenize(sql, read=self._dialect)
        except TokenError as e:
            raise ParseError(f"Invalid token: {e}", _unterminated_quote(sql)) from e
        return _Parser(sql, tokens).parse_query()


def _unterminated_quote(sql: str) -> int:
    """Position of an unclosed quote, or the end of the text."""
    quote = None
    start = 0
    i = 0
    while i < len(sql):
        ch = sql[i]
        if quote is None:
            if ch in "'\"`":
                quote, start = ch, i
        elif ch == quote:
            if i + 1 < len(sql) and sql[i + 1] == quote:
                i += 1
            else:
                quote = None
        i += 1
    return start if quote is not None else len(sql)


class _Parser:
    """Recursive-descent parser over one token list."""

    def __init__(self, sql: str, tokens: list[Token]) -> None:
        self._sql = sql
        self._tokens = tokens
        self._pos = 0

    # Token helpers

    def _peek(self, offset: int = 0) -> Token | None:
        index = self._pos + offset
        return self._tokens[index] if index < len(self._tokens) else None

    def _advance(self) -> Token:
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def _error(self, expected: str, token: Token | None = None) -> ParseError:
        token = token if token is not None else self._peek()
        if token is None:
            return ParseError(f"{expected}, found end of input", len(self._sql))
        return ParseError(f"{expected}, found '{token.text}'", token.start)

    @staticmethod
    def _word(token: Token | None) -> str:
        if token is None or token.token_type in _QUOTED:
            return ""
        return " ".join(token.text.upper().split())

    def _keyword_span(self, words: tuple[str, ...]) -> int:
        # sqlglot emits "GROUP BY" and "ORDER BY" as single tokens
        if self._word(self._peek()) == " ".join(words):
            return 1
        if all(self._word(self._peek(i)) == w for i, w in enumerate(words)):
            return len(words)
        return 0

    def _match_keyword(self, *words: str) -> bool:
        span = self._keyword_span(words)
        self._pos += span
        return span > 0

    def _expect_keyword(self, *words: str) -> None:
        if not self._match_keyword(*words):
            raise self._error(f"Expected {' '.join(words)}")

    def _at_symbol(self, symbol: str, offset: int = 0) -> bool:
        token = self._peek(offset)
        return (
            token is not None
            and token.token_type not in _QUOTED
            and token.text == symbol
        )

    def _match_symbol(self, symbol: str) -> bool:
        if self._at_symbol(symbol):
            self._pos += 1
            return True
        return False

    def _expect_symbol(self, symbol: str) -> None:
        if not self._match_symbol(symbol):
            raise self._error(f"Expected '{symbol}'")

    def _at_identifier(self) -> bool:
        token = self._peek()
        if token is None or token.token_type == TokenType.STRING:
            return False
        if token.token_type == TokenType.IDENTIFIER:
            return True
        return bool(_WORD.match(token.text)) and token.text.upper() not in RESERVED_WORDS

    def _expect_identifier(self, what: str) -> str:
        if not self._at_identifier():
            raise self._error(f"Expected {what}")
        return self._advance().text

    def _at_function_call(self) -> bool:
        token = self._peek()
        return (
            token is not None
            and token.token_type not in _QUOTED
            and bool(_WORD.match(token.text))
            and self._at_symbol("(", 1)
        )

    # Grammar

    def parse_query(self) -> Query:
        self._expect_keyword("SELECT")
        items = [self._parse_select_item()]
        while self._match_symbol(","):
            items.append(self._parse_select_item())

        self._expect_keyword("FROM")
        table_name = self._expect_identifier("table name")

        where = None
        if self._match_keyword("WHERE"):
            where = self._parse_or()

        group_by: list[str] = []
        if self._match_keyword("GROUP", "BY"):
            group_by.append(self._expect_identifier("GROUP BY column"))
            while self._match_symbol(","):
                group_by.append(self._expect_identifier("GROUP BY column"))

        order_by: list[OrderByItem] = []
        if self._match_keyword("ORDER", "BY"):
            order_by.append(self._parse_order_item())
            while self._match_symbol(","):
                order_by.append(self._parse_order_item())

        limit = None
        if self._match_keyword("LIMIT"):
            limit = self._parse_limit()

        self._match_symbol(";")
        if self._peek() is not None:
            raise self._error("Expected end of query")

        return Query(
            select_items=tuple(items),
            table_name=table_name,
            where=where,
            group_by=tuple(group_by),
            order_by=tuple(order_by),
            limit=limit,
        )

    def _parse_select_item(self) -> SelectItem:
        if self._match_symbol("*"):
            return SelectItem(expr=StarExpr())

        if self._at_function_call():
            expr: Expression = self._parse_aggregate()
        elif self._at_identifier():
            expr = ColumnExpr(self._advance().text)
        else:
            raise self._error("Expected column, aggregate or '*'")

        alias = None
        if self._match_keyword("AS"):
            alias = self._expect_identifier("alias")
        elif self._at_identifier():
            alias = self._advance().text
        return SelectItem(expr=expr, alias=alias)

    def _parse_aggregate(self) -> AggregateExpr:
        name_token = self._advance()
        func = AGGREGATE_FUNCS.get(name_token.text.upper())
        if func is None:
            raise self._error("Unknown function", name_token)
        self._expect_symbol("(")
        if self._at_symbol("*"):
            if func is not AggregateFunc.COUNT:
                raise self._error(f"{func.value} does not accept '*'")
            self._advance()
            arg = None
        else:
            arg = ColumnExpr(self._expect_identifier(f"{func.value} argument"))
        self._expect_symbol(")")
        return AggregateExpr(func=func, arg=arg)

    def _parse_order_item(self) -> OrderByItem:
        if self._at_function_call():
            expr: Expression = self._parse_aggregate()
        else:
            expr = ColumnExpr(self._expect_identifier("ORDER BY column"))
        ascending = True
        if self._match_keyword("DESC"):
            ascending = False
        else:
            self._match_keyword("ASC")
        return OrderByItem(expr=expr, ascending=ascending)

    def _parse_limit(self) -> int:
        negative = self._match_symbol("-")
        token = self._peek()
        if token is None or token.token_type != TokenType.NUMBER or not _INTEGER.match(token.text):
            raise self._error("Expected integer LIMIT")
        self._advance()
        value = int(token.text)
        return -value if negative else value

    def _parse_or(self) -> Expression:
        operands = [self._parse_and()]
        while self._match_keyword("OR"):
            operands.append(self._parse_and())
        if len(operands) == 1:
            return operands[0]
        return LogicalExpr(op=LogicalOp.OR, operands=tuple(operands))

    def _parse_and(self) -> Expression:
        operands = [self._parse_not()]
        while self._match_keyword("AND"):
            operands.append(self._parse_not())
        if len(operands) == 1:
            return operands[0]
        return LogicalExpr(op=LogicalOp.AND, operands=tuple(operands))

    def _parse_not(self) -> Expression:
        if self._match_keyword("NOT"):
            return LogicalExpr(op=LogicalOp.NOT, operands=(self._parse_not(),))
        return self._parse_comparison()

    def _parse_comparison(self) -> Expression:
        left = self._parse_operand()

        if self._match_keyword("IS"):
            negated = self._match_keyword("NOT")
            self._expect_keyword("NULL")
            op = ComparisonOp.IS_NOT_NULL if negated else ComparisonOp.IS_NULL
            return ComparisonExpr(left=left, op=op)

        token = self._peek()
        if token is not None and token.token_type not in _QUOTED:
            op = COMPARISON_OPS.get(token.text)
            if op is not None:
                self._advance()
                return ComparisonExpr(left=left, op=op, right=self._parse_operand())
        return left

    def _parse_operand(self) -> Expression:
        if self._match_symbol("("):
            expr = self._parse_or()
            self._expect_symbol(")")
            return expr

        literal = self._parse_literal()
        if literal is not None:
            return literal

        if self._at_function_call():
            raise self._error("Aggregate functions are not allowed in predicates")
        if self._at_identifier():
            return ColumnExpr(self._advance().text)
        raise self._error("Expected column, literal or '('")

    def _parse_literal(self) -> LiteralExpr | None:
        token = self._peek()
        if token is None:
            return None

        if token.token_type == TokenType.STRING:
            self._advance()
            return LiteralExpr(Value(ValueType.TEXT, token.text))

        negative = False
        if self._at_symbol("-"):
            following = self._peek(1)
            if following is None or following.token_type != TokenType.NUMBER:
                raise self._error("Expected number after '-'")
            self._advance()
            token = self._peek()
            negative = True

        if token.token_type == TokenType.NUMBER:
            self._advance()
            return LiteralExpr(_number(token, negative))

        word = self._word(token)
        constants = {"TRUE": TRUE, "FALSE": FALSE, "NULL": NULL}
        if word in constants:
            self._advance()
            return LiteralExpr(constants[word])
        return None


def _number(token: Token, negative: bool) -> Value:
    text = token.text
    try:
        if _INTEGER.match(text):
            value: int | float = int(text)
            vtype = ValueType.INTEGER
        else:
            value = float(text)
            vtype = ValueType.FLOAT
    except ValueError as e:
        raise ParseError(f"Invalid number '{text}'", token.start) from e
    return Value(vtype, -value if negative else value)
