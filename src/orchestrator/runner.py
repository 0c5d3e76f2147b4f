"""Per-unit command execution."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from typing import Dict, Mapping, Optional

from contracts.errors import (
    REASON_CANCELLED,
    REASON_COMMAND_NOT_FOUND,
    REASON_EXIT_STATUS,
    REASON_PERMISSION_DENIED,
    REASON_SPAWN_FAILED,
    REASON_TIMEOUT,
)

from .operations import OperationSpec
from .resolver import CommandResolver
from .task import ExecutionResult, Status, SubprojectUnit

_LOGGER = logging.getLogger(__name__)

# Exit codes POSIX shells use when the command itself could not be started.
_SHELL_NOT_FOUND = 127
_SHELL_NOT_EXECUTABLE = 126


def build_env(overrides: Mapping[str, str] | None = None) -> Dict[str, str]:
    """Merge process environment with optional overrides."""

    env: Dict[str, str] = {str(k): str(v) for k, v in os.environ.items()}
    if overrides:
        env.update({str(k): str(v) for k, v in overrides.items()})
    return env


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _kill_group(proc: subprocess.Popen, sig: int) -> None:
    try:
        if hasattr(os, "killpg"):
            os.killpg(proc.pid, sig)
        else:  # pragma: no cover - non-POSIX
            proc.send_signal(sig)
    except ProcessLookupError:
        pass


class TaskRunner:
    """Run one resolved command for one unit and report it as data.

    A non-zero exit, a spawn failure, a timeout or a cancellation all come
    back as a ``FAILED`` :class:`ExecutionResult`; nothing is raised for them.
    """

    def __init__(
        self,
        resolver: CommandResolver,
        *,
        timeout: Optional[float] = None,
        env: Mapping[str, str] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.resolver = resolver
        self.timeout = timeout
        self.env = build_env(
            {
                "POLYRUN_ENVIRONMENT": resolver.environment,
                "REACT_APP_ENVIRONMENT": resolver.environment,
                **dict(env or {}),
            }
        )
        self.cancel_event = cancel_event or threading.Event()
        self._lock = threading.Lock()
        self._running: Dict[int, subprocess.Popen] = {}

    def run(self, unit: SubprojectUnit, spec: OperationSpec, command: Optional[str] = None) -> ExecutionResult:
        reason = spec.skip_reason(unit)
        if reason is not None:
            _LOGGER.debug("skip %s:%s (%s)", unit.name, spec.name, reason)
            return ExecutionResult(unit=unit.name, operation=spec.name, status=Status.SKIPPED, reason=reason)

        if command is None:
            command = self.resolver.resolve_for(unit, spec.name)
        return self.execute(unit, spec.name, command)

    def execute(self, unit: SubprojectUnit, operation: str, command: str) -> ExecutionResult:
        """Spawn *command* through the shell in the unit root and wait for it."""

        def failed(reason: str, *, exit_code: Optional[int] = None, output: str = "") -> ExecutionResult:
            return ExecutionResult(
                unit=unit.name,
                operation=operation,
                status=Status.FAILED,
                reason=reason,
                exit_code=exit_code,
                command=command,
                output=output,
                duration_ms=_elapsed_ms(started),
            )

        started = time.monotonic()
        if self.cancel_event.is_set():
            return failed(REASON_CANCELLED)

        _LOGGER.info("[%s] $ %s", unit.name, command)
        try:
            proc = subprocess.Popen(
                command,
                shell=True,
                cwd=str(unit.root),
                env=self.env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                start_new_session=True,
            )
        except OSError as exc:
            _LOGGER.warning("[%s] cannot start command: %s", unit.name, exc)
            return failed(REASON_SPAWN_FAILED, output=str(exc))

        with self._lock:
            self._running[proc.pid] = proc
            if self.cancel_event.is_set():
                _kill_group(proc, signal.SIGTERM)
        try:
            try:
                output, _ = proc.communicate(timeout=self.timeout)
            except subprocess.TimeoutExpired:
                _kill_group(proc, signal.SIGKILL)
                output, _ = proc.communicate()
                _LOGGER.warning("[%s] timed out after %ss", unit.name, self.timeout)
                return failed(REASON_TIMEOUT, exit_code=proc.returncode, output=output or "")
        finally:
            with self._lock:
                self._running.pop(proc.pid, None)

        output = output or ""
        code = proc.returncode
        if self.cancel_event.is_set() and code != 0:
            return failed(REASON_CANCELLED, exit_code=code, output=output)
        if code == 0:
            return ExecutionResult(
                unit=unit.name,
                operation=operation,
                status=Status.SUCCESS,
                exit_code=0,
                command=command,
                output=output,
                duration_ms=_elapsed_ms(started),
            )
        if code == _SHELL_NOT_FOUND:
            return failed(REASON_COMMAND_NOT_FOUND, exit_code=code, output=output)
        if code == _SHELL_NOT_EXECUTABLE:
            return failed(REASON_PERMISSION_DENIED, exit_code=code, output=output)
        return failed(REASON_EXIT_STATUS, exit_code=code, output=output)

    def terminate_all(self) -> int:
        """Send SIGTERM to every in-flight process group; return how many."""

        with self._lock:
            running = list(self._running.values())
        for proc in running:
            if proc.poll() is None:
                _kill_group(proc, signal.SIGTERM)
        return len(running)


__all__ = ["TaskRunner", "build_env"]
