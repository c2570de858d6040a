"""In-memory registry of queryable tables."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from tabular_engine.domain.entities import Table
from tabular_engine.domain.errors import SchemaError


@dataclass(frozen=True)
class TableInfo:
    """A registered table and the version it was registered at."""

    name: str
    table: Table
    version: int

    @property
    def num_rows(self) -> int:
        return self.table.num_rows


class TableRegistry:
    """Maps table names to immutable tables.

    Registering a name again replaces the table; queries already running keep
    the table they resolved, since tables are never mutated.

    Thread Safety:
        All methods are thread-safe.
    """

    def __init__(self) -> None:
        self._tables: dict[str, TableInfo] = {}
        self._lock = threading.Lock()
        self._version = 0

    def register(self, name: str, table: Table) -> TableInfo:
        """Register (or replace) a table."""
        if not name:
            raise ValueError("Table name must not be empty")
        with self._lock:
            self._version += 1
            info = TableInfo(name=name, table=table, version=self._version)
            self._tables[name] = info
            return info

    def drop(self, name: str) -> bool:
        """Drop a table. Returns False if it was not registered."""
        with self._lock:
            return self._tables.pop(name, None) is not None

    def get(self, name: str) -> TableInfo:
        """Look up a table.

        Raises:
            SchemaError: If no table is registered under ``name``.
        """
        info = self._tables.get(name)
        if info is None:
            raise SchemaError(name, f"Unknown table '{name}'")
        return info

    def table_exists(self, name: str) -> bool:
        return name in self._tables

    def names(self) -> list[str]:
        return sorted(self._tables)
