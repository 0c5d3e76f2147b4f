from __future__ import annotations

import threading

from contracts.errors import (
    REASON_CANCELLED,
    REASON_COMMAND_NOT_FOUND,
    REASON_EXIT_STATUS,
    REASON_PERMISSION_DENIED,
    REASON_TIMEOUT,
    SKIP_MISSING_MARKER,
)
from orchestrator.classifier import build_unit
from orchestrator.operations import BUILTIN_OPERATIONS
from orchestrator.resolver import CommandResolver
from orchestrator.runner import TaskRunner
from orchestrator.task import Status


def _unit(tmp_path, make_unit, relative="src/lambda/fn1", marker=True):
    make_unit(relative, marker=marker)
    return build_unit(relative.rsplit("/", 1)[-1], relative, tmp_path)


def test_zero_exit_is_success(tmp_path, make_unit):
    unit = _unit(tmp_path, make_unit)
    result = TaskRunner(CommandResolver()).execute(unit, "test", "true")
    assert result.status is Status.SUCCESS
    assert result.exit_code == 0
    assert result.reason is None


def test_non_zero_exit_is_reported_not_raised(tmp_path, make_unit):
    unit = _unit(tmp_path, make_unit)
    result = TaskRunner(CommandResolver()).execute(unit, "test", "echo broken; exit 3")
    assert result.status is Status.FAILED
    assert result.reason == REASON_EXIT_STATUS
    assert result.exit_code == 3
    assert "broken" in result.output


def test_missing_binary_is_command_not_found(tmp_path, make_unit):
    unit = _unit(tmp_path, make_unit)
    result = TaskRunner(CommandResolver()).execute(unit, "test", "polyrun-no-such-binary-xyz")
    assert result.status is Status.FAILED
    assert result.reason == REASON_COMMAND_NOT_FOUND


def test_non_executable_file_is_permission_denied(tmp_path, make_unit):
    unit = _unit(tmp_path, make_unit)
    script = unit.root / "build.sh"
    script.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
    script.chmod(0o644)
    result = TaskRunner(CommandResolver()).execute(unit, "test", "./build.sh")
    assert result.status is Status.FAILED
    assert result.reason == REASON_PERMISSION_DENIED


def test_timeout_kills_the_command(tmp_path, make_unit):
    unit = _unit(tmp_path, make_unit)
    result = TaskRunner(CommandResolver(), timeout=0.2).execute(unit, "test", "sleep 5")
    assert result.status is Status.FAILED
    assert result.reason == REASON_TIMEOUT
    assert result.duration_ms < 5000


def test_cancelled_runner_does_not_start(tmp_path, make_unit):
    unit = _unit(tmp_path, make_unit)
    event = threading.Event()
    event.set()
    marker = unit.root / "started"
    result = TaskRunner(CommandResolver(), cancel_event=event).execute(unit, "test", "touch started")
    assert result.reason == REASON_CANCELLED
    assert not marker.exists()


def test_command_runs_in_unit_root_with_environment(tmp_path, make_unit):
    unit = _unit(tmp_path, make_unit)
    runner = TaskRunner(CommandResolver(environment="staging"))
    command = 'test -f package.json && test "$REACT_APP_ENVIRONMENT" = staging'
    assert runner.execute(unit, "test", command).status is Status.SUCCESS


def test_skip_predicate_prevents_spawning(tmp_path, make_unit):
    unit = _unit(tmp_path, make_unit, "src/lambda/fn2", marker=False)
    result = TaskRunner(CommandResolver(overrides={"install": "touch installed"})).run(
        unit, BUILTIN_OPERATIONS["install"]
    )
    assert result.status is Status.SKIPPED
    assert result.reason == SKIP_MISSING_MARKER
    assert result.command is None
    assert not (unit.root / "installed").exists()


def test_run_resolves_the_command(tmp_path, make_unit):
    unit = _unit(tmp_path, make_unit)
    result = TaskRunner(CommandResolver(overrides={"install": "echo ${unit}"})).run(
        unit, BUILTIN_OPERATIONS["install"]
    )
    assert result.status is Status.SUCCESS
    assert result.command == "echo fn1"
    assert result.output.strip() == "fn1"


class _SetAfterFirstCheck(threading.Event):
    """Reports clear on the first check, then set: a cancel landing mid-spawn."""

    def __init__(self) -> None:
        super().__init__()
        self._checks = 0

    def is_set(self) -> bool:
        self._checks += 1
        return self._checks > 1


def test_cancel_during_spawn_terminates_the_new_process(tmp_path, make_unit):
    unit = _unit(tmp_path, make_unit)
    runner = TaskRunner(CommandResolver(), cancel_event=_SetAfterFirstCheck())
    result = runner.execute(unit, "test", "sleep 5")
    assert result.status is Status.FAILED
    assert result.reason == REASON_CANCELLED
    assert result.duration_ms < 5000
