"""Inbound ports - APIs offered to clients.

Exports:
    - QueryService: Contract of the query engine
    - QueryResult, TraceEntry, PlanStep: Result value objects
"""

from tabular_engine.ports.inbound.query_service import (
    PlanStep,
    QueryResult,
    QueryService,
    TraceEntry,
)

__all__ = [
    "QueryService",
    "QueryResult",
    "TraceEntry",
    "PlanStep",
]
