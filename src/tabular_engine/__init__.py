"""tabular_engine - in-process SQL-like query engine over columnar tables.

Parses a small SQL subset, builds and optimizes a logical plan, and executes
it against immutable in-memory tables, optionally split across row partitions
that run in parallel workers.
"""

__version__ = "0.1.0"
