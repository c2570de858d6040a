"""Worker pool port for partition execution.

This outbound port is the contract with the parallel-compute collaborator.
The engine hands it one task per partition and waits for every result; how
tasks are scheduled (threads, a serial loop, another process) is up to the
implementation.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Callable, Iterable, Protocol, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class WorkerPool(Protocol):
    """Protocol for running independent tasks and collecting their results.

    Thread Safety:
        Tasks only read shared immutable tables and write their own result,
        so implementations need no locking around them.
    """

    @property
    @abstractmethod
    def max_workers(self) -> int:
        """Upper bound on tasks running at the same time."""
        ...

    @abstractmethod
    def map(self, fn: Callable[[T], R], items: Iterable[T]) -> list[R]:
        """Apply ``fn`` to every item and wait for all results.

        Args:
            fn: Task function.
            items: Task inputs.

        Returns:
            Results in the order of ``items``.

        Raises:
            Exception: The error of the first failing item, in item order.
                No partial result list is returned.
        """
        ...

    @abstractmethod
    def shutdown(self) -> None:
        """Release worker resources. The pool is unusable afterwards."""
        ...
