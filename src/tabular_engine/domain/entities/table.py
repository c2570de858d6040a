"""Columnar table model.

A ``Table`` owns an ordered ``Schema`` and one immutable ``Column`` per schema
entry. Tables are never mutated after construction; every engine operation
produces a new table.

Ingestion from row-shaped records (``Table.from_records``) infers one type per
column: the first non-null value's type wins. A later value that does not fit
is stored as Null and recorded as a ``CellError`` instead of failing the load.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping, Sequence

from tabular_engine.domain.errors import QueryTypeError, SchemaError
from tabular_engine.domain.value_objects import (
    NULL,
    RowRange,
    Value,
    ValueType,
    coerce_to,
)

Row = tuple[Value, ...]


@dataclass(frozen=True, slots=True)
class ColumnSpec:
    """Name and declared type of a column."""

    name: str
    type: ValueType

    def __str__(self) -> str:
        return f"{self.name} {self.type.value}"


@dataclass(frozen=True)
class Schema:
    """Ordered mapping from column name to type.

    Insertion order is the default projection order and is preserved by
    every plan stage.
    """

    columns: tuple[ColumnSpec, ...] = ()

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for spec in self.columns:
            if spec.name in seen:
                raise SchemaError(spec.name, f"Duplicate column '{spec.name}'")
            seen.add(spec.name)

    @classmethod
    def of(cls, *pairs: tuple[str, ValueType]) -> Schema:
        return cls(tuple(ColumnSpec(name, vtype) for name, vtype in pairs))

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.columns)

    def __len__(self) -> int:
        return len(self.columns)

    def __iter__(self) -> Iterator[ColumnSpec]:
        return iter(self.columns)

    def __contains__(self, name: object) -> bool:
        return any(spec.name == name for spec in self.columns)

    def index_of(self, name: str) -> int:
        """Position of a column.

        Raises:
            SchemaError: If the column does not exist.
        """
        for i, spec in enumerate(self.columns):
            if spec.name == name:
                return i
        raise SchemaError(name)

    def type_of(self, name: str) -> ValueType:
        return self.columns[self.index_of(name)].type

    def select(self, names: Iterable[str]) -> Schema:
        """Sub-schema with the given columns, in the given order."""
        return Schema(tuple(self.columns[self.index_of(n)] for n in names))

    def __str__(self) -> str:
        return f"({', '.join(str(c) for c in self.columns)})"


@dataclass(frozen=True, slots=True)
class Column:
    """A named, typed, immutable sequence of values."""

    name: str
    type: ValueType
    values: tuple[Value, ...] = ()

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, index: int) -> Value:
        return self.values[index]


@dataclass(frozen=True, slots=True)
class CellError:
    """A value rejected during ingestion and stored as Null."""

    row: int
    column: str
    message: str


@dataclass(frozen=True)
class Table:
    """Immutable columnar table.

    Attributes:
        schema: Column names and types
        columns: One column per schema entry, all of equal length
        cell_errors: Values rejected during ingestion

    Example:
        >>> t = Table.from_records([{"a": 1}, {"a": 2}])
        >>> t.num_rows
        2
        >>> t.to_records()
        [{'a': 1}, {'a': 2}]
    """

    schema: Schema
    columns: tuple[Column, ...]
    cell_errors: tuple[CellError, ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        if tuple(c.name for c in self.columns) != self.schema.names:
            raise SchemaError(
                ",".join(self.schema.names),
                "Columns do not match schema",
            )
        lengths = {len(c) for c in self.columns}
        if len(lengths) > 1:
            raise ValueError(f"Columns have unequal lengths: {sorted(lengths)}")

    @property
    def num_rows(self) -> int:
        return len(self.columns[0]) if self.columns else 0

    def __len__(self) -> int:
        return self.num_rows

    def column(self, name: str) -> Column:
        return self.columns[self.schema.index_of(name)]

    def iter_rows(
        self,
        names: Sequence[str] | None = None,
        row_range: RowRange | None = None,
    ) -> Iterator[Row]:
        """Iterate rows, optionally restricted to columns and a row range."""
        cols = self.columns if names is None else [self.column(n) for n in names]
        start, stop = (0, self.num_rows) if row_range is None else (
            row_range.start,
            min(row_range.stop, self.num_rows),
        )
        for i in range(start, stop):
            yield tuple(c.values[i] for c in cols)

    @classmethod
    def from_rows(cls, schema: Schema, rows: Iterable[Sequence[Value]]) -> Table:
        """Build a table from row tuples already matching ``schema``."""
        materialized = list(rows)
        columns = tuple(
            Column(
                name=spec.name,
                type=spec.type,
                values=tuple(row[i] for row in materialized),
            )
            for i, spec in enumerate(schema)
        )
        return cls(schema=schema, columns=columns)

    @classmethod
    def empty(cls, schema: Schema) -> Table:
        return cls.from_rows(schema, [])

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> Table:
        """Ingest row-shaped records into a columnar table.

        Column order is the order of first appearance across records; a key
        missing from a record is Null. The first non-null value of a column
        fixes its type; Integer values widen into a Float column.

        Args:
            records: Same-shaped mappings of column name to Python value

        Returns:
            The table, with a ``CellError`` for every rejected value.
        """
        rows = list(records)
        names: list[str] = []
        for record in rows:
            for key in record:
                if key not in names:
                    names.append(key)

        types: dict[str, ValueType] = {name: ValueType.NULL for name in names}
        data: dict[str, list[Value]] = {name: [] for name in names}
        errors: list[CellError] = []

        for row_index, record in enumerate(rows):
            for name in names:
                try:
                    value = Value.of(record.get(name))
                except QueryTypeError as e:
                    errors.append(CellError(row_index, name, str(e)))
                    data[name].append(NULL)
                    continue

                if types[name] is ValueType.NULL and not value.is_null:
                    types[name] = value.type
                stored = coerce_to(value, types[name])
                if stored is None:
                    errors.append(
                        CellError(
                            row_index,
                            name,
                            f"Expected {types[name].value}, got {value.type.value}",
                        )
                    )
                    stored = NULL
                data[name].append(stored)

        schema = Schema(tuple(ColumnSpec(n, types[n]) for n in names))
        columns = tuple(Column(n, types[n], tuple(data[n])) for n in names)
        return cls(schema=schema, columns=columns, cell_errors=tuple(errors))

    def to_records(self) -> list[dict[str, Any]]:
        """Plain Python rows for the presentation layer."""
        names = self.schema.names
        return [
            {name: value.to_python() for name, value in zip(names, row)}
            for row in self.iter_rows()
        ]

    def to_tuples(self) -> list[tuple[Any, ...]]:
        return [tuple(v.to_python() for v in row) for row in self.iter_rows()]
