"""Worker pool implementations.

``ThreadWorkerPool`` runs tasks on a ``concurrent.futures.ThreadPoolExecutor``;
``SerialWorkerPool`` runs them one after another in the calling thread. Both
return results in submission order and raise the error of the first failing
task in that order, so callers observe the same behavior from either.

Thread Safety:
    ``map`` may be called from several threads at once; the executor queues
    their tasks together.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, TypeVar

from tabular_engine.infrastructure.logging import get_logger

T = TypeVar("T")
R = TypeVar("R")

logger = get_logger(__name__)


class SerialWorkerPool:
    """Runs every task in the calling thread."""

    @property
    def max_workers(self) -> int:
        return 1

    def map(self, fn: Callable[[T], R], items: Iterable[T]) -> list[R]:
        return [fn(item) for item in items]

    def shutdown(self) -> None:
        pass


class ThreadWorkerPool:
    """Thread-backed worker pool.

    The executor is created lazily on first use and reused until
    ``shutdown``.

    Example:
        >>> with ThreadWorkerPool(max_workers=4) as pool:
        ...     pool.map(lambda x: x * 2, [1, 2, 3])
        [2, 4, 6]
    """

    def __init__(self, max_workers: int = 4) -> None:
        """Initialize the pool.

        Args:
            max_workers: Number of worker threads.

        Raises:
            ValueError: If max_workers < 1.
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._closed:
                raise RuntimeError("Worker pool has been shut down")
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="tabular-worker",
                )
                logger.debug("worker_pool_started", max_workers=self._max_workers)
            return self._executor

    def map(self, fn: Callable[[T], R], items: Iterable[T]) -> list[R]:
        """Run ``fn`` over ``items`` concurrently.

        Every task is waited for before an error is raised, so no task is
        still running against the caller's data once ``map`` returns.
        """
        executor = self._get_executor()
        futures = [executor.submit(fn, item) for item in items]
        errors = [f.exception() for f in futures]
        for error in errors:
            if error is not None:
                raise error
        return [f.result() for f in futures]

    def shutdown(self) -> None:
        with self._lock:
            self._closed = True
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
            logger.debug("worker_pool_stopped")

    def __enter__(self) -> ThreadWorkerPool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
