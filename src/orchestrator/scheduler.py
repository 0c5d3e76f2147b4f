"""Batch planning and submission."""

from __future__ import annotations

from typing import List, Sequence

from .executor import Executor, Job, SequentialExecutor
from .resolver import CommandResolver
from .runner import TaskRunner
from .task import ExecutionResult, Invocation, Status, SubprojectUnit


def plan(units: Sequence[SubprojectUnit], operation: str, resolver: CommandResolver) -> List[Invocation]:
    """Build one :class:`Invocation` per unit, in manifest order.

    Every command that will run is resolved here, so a missing binding
    raises :class:`~contracts.errors.ConfigurationError` before any unit
    executes.
    """

    spec = resolver.spec(operation)
    invocations: List[Invocation] = []
    for unit in units:
        reason = spec.skip_reason(unit)
        if reason is not None:
            invocations.append(Invocation(unit=unit, operation=operation, command=None, skip_reason=reason))
            continue
        invocations.append(Invocation(unit=unit, operation=operation, command=resolver.resolve_for(unit, operation)))
    return invocations


class Scheduler:
    """Deterministic scheduler with a sequential executor by default."""

    def __init__(self, executor: Executor | None = None) -> None:
        self.executor = executor or SequentialExecutor()

    def _job(self, invocation: Invocation, runner: TaskRunner) -> Job:
        def job() -> ExecutionResult:
            if invocation.command is None:
                return ExecutionResult(
                    unit=invocation.unit.name,
                    operation=invocation.operation,
                    status=Status.SKIPPED,
                    reason=invocation.skip_reason,
                )
            return runner.execute(invocation.unit, invocation.operation, invocation.command)

        return job

    def submit(self, invocations: Sequence[Invocation], runner: TaskRunner) -> List[ExecutionResult]:
        """Submit invocations to the underlying executor."""

        return self.executor.submit([self._job(item, runner) for item in invocations])

    def barrier(self) -> None:
        self.executor.barrier()

    def shutdown(self) -> None:
        self.executor.shutdown()


__all__ = ["Scheduler", "plan"]
