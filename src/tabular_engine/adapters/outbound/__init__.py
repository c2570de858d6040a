"""Outbound adapters - implementations of outbound ports.

These adapters implement the collaborators the engine depends on, such as
the worker pool that runs row partitions.
"""

from tabular_engine.adapters.outbound.thread_worker_pool import (
    SerialWorkerPool,
    ThreadWorkerPool,
)

__all__ = [
    "SerialWorkerPool",
    "ThreadWorkerPool",
]
