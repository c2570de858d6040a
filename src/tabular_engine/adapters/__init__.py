"""Adapters layer - concrete implementations of port interfaces.

Adapters provide the actual implementations:
- Inbound adapters: Turn query text into domain objects (SQL parser)
- Outbound adapters: Implement external collaborators (worker pools)
"""

from tabular_engine.adapters.inbound import SQLParser
from tabular_engine.adapters.outbound import SerialWorkerPool, ThreadWorkerPool

__all__ = [
    # Inbound adapters
    "SQLParser",
    # Outbound adapters
    "SerialWorkerPool",
    "ThreadWorkerPool",
]
