"""Outbound ports - interfaces for external dependencies.

Outbound ports define contracts for collaborators the query engine depends
on, such as the worker pool that runs partitions.
"""

from tabular_engine.ports.outbound.worker_pool import WorkerPool

__all__ = [
    "WorkerPool",
]
