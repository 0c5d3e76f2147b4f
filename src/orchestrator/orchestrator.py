"""Batch orchestration: one operation across every unit of the manifest."""

from __future__ import annotations

import logging
import signal
import threading
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from project_config import ProjectConfig

from .executor import Executor, make_executor
from .log import RunLog
from .manifest import Manifest
from .operations import build_operations
from .report import Reporter, make_printer
from .resolver import CommandResolver
from .runner import TaskRunner
from .scheduler import Scheduler, plan
from .task import BatchOutcome, SubprojectUnit

_LOGGER = logging.getLogger(__name__)

_CANCEL_SIGNALS = tuple(sig for sig in (getattr(signal, "SIGINT", None), getattr(signal, "SIGTERM", None)) if sig)


def build_resolver(config: ProjectConfig) -> CommandResolver:
    """Resolver for the operations and overrides declared in *config*."""

    operations, _warnings = build_operations(config.operations, config.commands)
    return CommandResolver(operations, config.commands, environment=config.environment)


class BatchOrchestrator:
    """Run an operation over every unit and report the ordered outcome.

    Failures never stop the batch; every unit is visited exactly once and the
    outcome lists results in manifest order whatever the concurrency.
    """

    def __init__(
        self,
        config: ProjectConfig,
        *,
        resolver: CommandResolver | None = None,
        executor: Executor | None = None,
        run_log: RunLog | None = None,
        reporter: Reporter | None = None,
        env: Mapping[str, str] | None = None,
        install_signal_handlers: bool = True,
    ) -> None:
        self.config = config
        self.resolver = resolver or build_resolver(config)
        self._executor = executor
        if run_log is None and config.log_dir is not None:
            run_log = RunLog(config.log_dir)
        self.run_log = run_log
        self.reporter = reporter
        self.env = dict(env or {})
        self.install_signal_handlers = install_signal_handlers
        self.cancel_event = threading.Event()
        self._runner: Optional[TaskRunner] = None

    def cancel(self) -> None:
        """Stop the running batch: kill in-flight commands, fail pending ones."""

        if self.cancel_event.is_set():
            return
        self.cancel_event.set()
        runner = self._runner
        if runner is not None:
            stopped = runner.terminate_all()
            _LOGGER.warning("cancelling batch; terminated %d running command(s)", stopped)

    @contextmanager
    def _signals(self) -> Iterator[None]:
        if not self.install_signal_handlers or threading.current_thread() is not threading.main_thread():
            yield
            return

        def handler(signum: int, _frame: Any) -> None:
            _LOGGER.warning("received signal %d", signum)
            self.cancel()

        previous: Dict[int, Any] = {}
        for sig in _CANCEL_SIGNALS:
            previous[sig] = signal.signal(sig, handler)
        try:
            yield
        finally:
            for sig, old in previous.items():
                signal.signal(sig, old)

    def _units(self, source: Union[Manifest, Sequence[SubprojectUnit]]) -> List[SubprojectUnit]:
        if isinstance(source, Manifest):
            return source.units(self.config.layout)
        return list(source)

    def run_operation(self, source: Union[Manifest, Sequence[SubprojectUnit]], operation: str) -> BatchOutcome:
        """Run *operation* for every unit of *source*.

        Raises :class:`~contracts.errors.ConfigurationError` before anything
        executes when the operation is unknown or a command cannot be resolved.
        """

        units = self._units(source)
        invocations = plan(units, operation, self.resolver)
        if not invocations:
            _LOGGER.info("%s: manifest lists no units", operation)
            outcome = BatchOutcome(operation=operation)
            self._post_batch(outcome, units)
            return outcome

        self.cancel_event.clear()
        runner = TaskRunner(
            self.resolver,
            timeout=self.config.timeout,
            env=self.env,
            cancel_event=self.cancel_event,
        )
        scheduler = Scheduler(self._executor or make_executor(min(self.config.concurrency, len(invocations))))
        self._runner = runner
        _LOGGER.info("%s: %d unit(s), concurrency %d", operation, len(invocations), self.config.concurrency)
        try:
            with self._signals():
                results = scheduler.submit(invocations, runner)
                scheduler.barrier()
        finally:
            scheduler.shutdown()
            self._runner = None

        outcome = BatchOutcome(
            operation=operation,
            results=tuple(results),
            cancelled=self.cancel_event.is_set(),
        )
        self._post_batch(outcome, units)
        return outcome

    def _post_batch(self, outcome: BatchOutcome, units: Sequence[SubprojectUnit]) -> None:
        if self.run_log is not None:
            run_id = uuid.uuid4().hex
            try:
                path = self.run_log.record_outcome(outcome, run_id=run_id)
            except OSError as exc:
                _LOGGER.warning("cannot write run log under %s: %s", self.run_log.base_dir, exc)
            else:
                _LOGGER.debug("run %s logged to %s", run_id, path)
        if self.reporter is not None:
            self.reporter(outcome, units)


def run_operation(
    config: ProjectConfig,
    source: Union[Manifest, Sequence[SubprojectUnit]],
    operation: str,
    *,
    report: bool = True,
) -> BatchOutcome:
    """Convenience wrapper printing the banner and summary to stdout."""

    reporter = None
    if report:
        reporter = make_printer(
            root_project=config.root_project,
            environment=config.environment,
            manifest=str(config.manifest_path),
        )
    return BatchOrchestrator(config, reporter=reporter).run_operation(source, operation)


__all__ = ["BatchOrchestrator", "build_resolver", "run_operation"]
