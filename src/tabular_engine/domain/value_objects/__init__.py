"""Value objects for the query engine domain.

Value objects are immutable types that represent domain concepts.
They have no identity - two value objects with the same attributes are equal.

Exports:
    Values:
        - Value: Typed scalar (Integer, Float, Text, Boolean, Null)
        - ValueType: Type tags for values and columns
        - NULL, TRUE, FALSE: Shared constants
        - compare_values, values_equal, coerce_to:
          Coercion-aware operations

    Partitioning:
        - RowRange: Half-open range of row positions
        - split_rows: Contiguous partitioning of a table's rows
"""

from tabular_engine.domain.value_objects.row_range import RowRange, split_rows
from tabular_engine.domain.value_objects.values import (
    FALSE,
    NULL,
    TRUE,
    Value,
    ValueType,
    coerce_to,
    compare_values,
    values_equal,
)

__all__ = [
    # Values
    "Value",
    "ValueType",
    "NULL",
    "TRUE",
    "FALSE",
    "compare_values",
    "values_equal",
    "coerce_to",
    # Partitioning
    "RowRange",
    "split_rows",
]
