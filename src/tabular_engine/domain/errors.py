"""Error taxonomy for the query engine.

Every error is fatal to the query that raised it only. Tables and the engine
stay valid for subsequent queries.

    EngineError
    ├── ParseError      malformed query text (carries the character position)
    ├── SchemaError     unknown column or table
    ├── QueryTypeError  incompatible comparison or aggregate (also a TypeError)
    ├── PlanError       structurally invalid query
    └── PivotError      reshape of a result that is not a two-key grouping
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all query engine errors."""

    kind = "engine"


class ParseError(EngineError):
    """Query text could not be parsed."""

    kind = "parse"

    def __init__(self, message: str, position: int) -> None:
        super().__init__(f"{message} (at position {position})")
        self.message = message
        self.position = position


class SchemaError(EngineError):
    """A referenced column (or table) does not exist."""

    kind = "schema"

    def __init__(self, column: str, message: str | None = None) -> None:
        super().__init__(message or f"Unknown column '{column}'")
        self.column = column


class QueryTypeError(EngineError, TypeError):
    """Values or columns of incompatible types were combined."""

    kind = "type"


class PlanError(EngineError):
    """The query is well-formed but cannot be turned into a valid plan."""

    kind = "plan"


class PivotError(EngineError):
    """A result table cannot be reshaped into a pivot."""

    kind = "pivot"
