"""Ports layer - interface definitions following Hexagonal Architecture.

Ports are abstract interfaces (protocols) that define contracts:
- Inbound ports: APIs offered to clients (QueryService)
- Outbound ports: Dependencies on external collaborators (WorkerPool)

Adapters implement these ports with concrete functionality.
"""

from tabular_engine.ports.inbound import (
    PlanStep,
    QueryResult,
    QueryService,
    TraceEntry,
)
from tabular_engine.ports.outbound import WorkerPool

__all__ = [
    # Inbound ports
    "QueryService",
    "QueryResult",
    "TraceEntry",
    "PlanStep",
    # Outbound ports
    "WorkerPool",
]
