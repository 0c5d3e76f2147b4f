"""Shared error types and reason codes for polyrun."""

from __future__ import annotations


from dataclasses import dataclass, field
from typing import List

SEVERITY_ERROR = "ERROR"
SEVERITY_WARN = "WARN"

# Failure reasons recorded on ExecutionResult.  These are data, never raised.
REASON_EXIT_STATUS = "exit-status"
REASON_COMMAND_NOT_FOUND = "command-not-found"
REASON_PERMISSION_DENIED = "permission-denied"
REASON_SPAWN_FAILED = "spawn-failed"
REASON_TIMEOUT = "timeout"
REASON_CANCELLED = "cancelled"

# Skip reasons.
SKIP_UNCLASSIFIED = "unclassified"
SKIP_NOT_APPLICABLE = "not-applicable"
SKIP_MISSING_MARKER = "missing-marker"
SKIP_MISSING_FILE = "missing-file"
SKIP_PREDICATE = "predicate"

EXIT_OK = 0
EXIT_EXECUTION_FAILURE = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_IO_ERROR = 3
EXIT_CANCELLED = 130


@dataclass(frozen=True)
class ValidationIssue:
    """Single finding produced while checking a configuration or manifest."""

    code: str
    msg: str
    path: str
    severity: str


@dataclass(frozen=True)
class ValidationReport:
    """Aggregate result of validating one document."""

    ok: bool
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)


def make_error(code: str, msg: str, path: str) -> ValidationIssue:
    """Construct an error-level :class:`ValidationIssue`."""

    return ValidationIssue(code=code, msg=msg, path=path, severity=SEVERITY_ERROR)


def make_warning(code: str, msg: str, path: str) -> ValidationIssue:
    """Construct a warning-level :class:`ValidationIssue`."""

    return ValidationIssue(code=code, msg=msg, path=path, severity=SEVERITY_WARN)


class PolyrunError(RuntimeError):
    """Base class for errors surfaced to the CLI."""

    exit_code = EXIT_EXECUTION_FAILURE


class ConfigurationError(PolyrunError):
    """Missing command binding, malformed override or invalid config file.

    Raised before any unit executes.
    """

    exit_code = EXIT_CONFIGURATION_ERROR

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        path: str | None = None,
        report: ValidationReport | None = None,
    ) -> None:
        self.operation = operation
        self.path = path
        self.report = report
        context = []
        if operation:
            context.append(f"operation={operation}")
        if path:
            context.append(f"path={path}")
        if report is not None:
            context.extend(f"{issue.path}: {issue.msg}" for issue in report.errors)
        detail = f" ({'; '.join(context)})" if context else ""
        super().__init__(f"{message}{detail}")


class WorkspaceIOError(PolyrunError):
    """Reading or writing a persisted file failed."""

    exit_code = EXIT_IO_ERROR

    def __init__(self, message: str, *, path: str | None = None) -> None:
        self.path = path
        suffix = f": {path}" if path else ""
        super().__init__(f"{message}{suffix}")


class ManifestIOError(WorkspaceIOError):
    """The unit manifest could not be read or written."""


class ArtifactIOError(WorkspaceIOError):
    """A coverage or test-result artifact could not be read or merged."""


__all__ = [
    "SEVERITY_ERROR",
    "SEVERITY_WARN",
    "REASON_EXIT_STATUS",
    "REASON_COMMAND_NOT_FOUND",
    "REASON_PERMISSION_DENIED",
    "REASON_SPAWN_FAILED",
    "REASON_TIMEOUT",
    "REASON_CANCELLED",
    "SKIP_UNCLASSIFIED",
    "SKIP_NOT_APPLICABLE",
    "SKIP_MISSING_MARKER",
    "SKIP_MISSING_FILE",
    "SKIP_PREDICATE",
    "EXIT_OK",
    "EXIT_EXECUTION_FAILURE",
    "EXIT_CONFIGURATION_ERROR",
    "EXIT_IO_ERROR",
    "EXIT_CANCELLED",
    "ValidationIssue",
    "ValidationReport",
    "make_error",
    "make_warning",
    "PolyrunError",
    "ConfigurationError",
    "WorkspaceIOError",
    "ManifestIOError",
    "ArtifactIOError",
]
