"""Executor interfaces for running planned invocations."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Protocol, Sequence

from .task import ExecutionResult

Job = Callable[[], ExecutionResult]


class Executor(Protocol):
    """Abstract execution backend."""

    def submit(self, jobs: Sequence[Job]) -> List[ExecutionResult]:
        """Run a batch of jobs and return their results in submission order."""

    def barrier(self) -> None:
        """Wait until all enqueued work is finished."""

    def shutdown(self) -> None:
        """Tear down resources allocated by the executor."""


class SequentialExecutor:
    """Deterministic executor processing jobs serially."""

    def submit(self, jobs: Sequence[Job]) -> List[ExecutionResult]:
        results: List[ExecutionResult] = []
        for job in jobs:
            results.append(job())
        return results

    def barrier(self) -> None:
        return None

    def shutdown(self) -> None:
        return None


class PooledExecutor:
    """Bounded thread pool; every job is an independent subprocess wait."""

    def __init__(self, max_workers: int) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self._pool: Optional[ThreadPoolExecutor] = None

    def _ensure_pool(self) -> ThreadPoolExecutor:
        if self._pool is None:
            self._pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="polyrun")
        return self._pool

    def submit(self, jobs: Sequence[Job]) -> List[ExecutionResult]:
        pool = self._ensure_pool()
        futures = [pool.submit(job) for job in jobs]
        # Collected by index so completion order never leaks into the report.
        return [future.result() for future in futures]

    def barrier(self) -> None:
        return None

    def shutdown(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None


def make_executor(concurrency: int) -> Executor:
    if concurrency <= 1:
        return SequentialExecutor()
    return PooledExecutor(concurrency)


__all__ = ["Executor", "Job", "PooledExecutor", "SequentialExecutor", "make_executor"]
