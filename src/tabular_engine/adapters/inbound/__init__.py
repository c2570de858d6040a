"""Inbound adapters for the query engine.

Inbound adapters turn incoming requests into internal domain objects.

Exports:
    SQL Parser:
        - SQLParser: Parser that converts query text to a Query AST
        - Query, SelectItem, OrderByItem: AST nodes
"""

from tabular_engine.adapters.inbound.sql_parser import (
    OrderByItem,
    Query,
    SelectItem,
    SQLParser,
)

__all__ = [
    "SQLParser",
    "Query",
    "SelectItem",
    "OrderByItem",
]
