"""Pivot reshape of two-key aggregate results.

A pivot is not a plan node. It regroups the flat output of
``GROUP BY row_key, column_key`` into a nested mapping
``row key -> (column key -> value)``. ``flatten`` is its exact inverse, so
``flatten(pivot(t, ...))`` holds the same tuples as ``t``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from tabular_engine.domain.entities.table import ColumnSpec, Schema, Table
from tabular_engine.domain.errors import PivotError
from tabular_engine.domain.value_objects import Value


@dataclass(frozen=True)
class PivotTable:
    """Nested row-key -> column-key -> value mapping.

    Row and column keys keep the order in which they first appear in the
    source table.
    """

    row_key: ColumnSpec
    column_key: ColumnSpec
    value_column: ColumnSpec
    row_values: tuple[Value, ...]
    column_values: tuple[Value, ...]
    cells: dict[Value, dict[Value, Value]] = field(default_factory=dict)

    def get(self, row: Value, column: Value) -> Value | None:
        """Cell value, or None when the combination has no group."""
        return self.cells.get(row, {}).get(column)

    def to_dict(self) -> dict[object, dict[object, object]]:
        """Plain Python nesting for the presentation layer."""
        return {
            r.to_python(): {c.to_python(): v.to_python() for c, v in cols.items()}
            for r, cols in self.cells.items()
        }


def pivot(table: Table, row_key: str, column_key: str, value_column: str) -> PivotTable:
    """Reshape a flat two-key table into a pivot.

    Args:
        table: Result of a group-by over (row_key, column_key)
        row_key: Column whose values become pivot rows
        column_key: Column whose values become pivot columns
        value_column: Column holding the cell values

    Raises:
        SchemaError: If a named column does not exist.
        PivotError: If the same (row, column) pair appears twice.
    """
    schema = table.schema
    names = (row_key, column_key, value_column)
    if len(set(names)) != 3:
        raise PivotError("Row key, column key and value column must be distinct")
    specs = [schema.columns[schema.index_of(n)] for n in names]

    cells: dict[Value, dict[Value, Value]] = {}
    row_values: list[Value] = []
    column_values: list[Value] = []
    for r, c, v in table.iter_rows(names):
        if r not in cells:
            cells[r] = {}
            row_values.append(r)
        if c not in column_values:
            column_values.append(c)
        if c in cells[r]:
            raise PivotError(f"Duplicate cell for row {r} and column {c}")
        cells[r][c] = v

    return PivotTable(
        row_key=specs[0],
        column_key=specs[1],
        value_column=specs[2],
        row_values=tuple(row_values),
        column_values=tuple(column_values),
        cells=cells,
    )


def flatten(pivoted: PivotTable) -> Table:
    """Inverse of ``pivot``: one row per populated cell."""
    schema = Schema((pivoted.row_key, pivoted.column_key, pivoted.value_column))
    rows = [
        (r, c, v)
        for r in pivoted.row_values
        for c, v in pivoted.cells[r].items()
    ]
    return Table.from_rows(schema, rows)
