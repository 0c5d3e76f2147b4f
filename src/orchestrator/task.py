"""Data model shared by the orchestrator components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


class Classification(Enum):
    """Closed set of unit kinds recognised by directory convention."""

    WEB_APP = "web"
    FUNCTION_UNIT = "function"
    UNCLASSIFIED = "unclassified"


class Status(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SubprojectUnit:
    """One independently buildable subproject listed in the manifest."""

    name: str
    path: str
    root: Path
    classification: Classification
    has_marker: bool


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one operation on one unit.

    ``output`` holds the combined stdout/stderr of the command and is kept
    for diagnostics only.
    """

    unit: str
    operation: str
    status: Status
    reason: Optional[str] = None
    exit_code: Optional[int] = None
    command: Optional[str] = None
    output: str = ""
    duration_ms: int = 0

    @property
    def failed(self) -> bool:
        return self.status is Status.FAILED


@dataclass(frozen=True)
class BatchOutcome:
    """Ordered results of one operation across every manifest unit."""

    operation: str
    results: Tuple[ExecutionResult, ...] = field(default_factory=tuple)
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.cancelled and not any(result.failed for result in self.results)

    @property
    def status(self) -> str:
        return "success" if self.succeeded else "failure"

    def count(self, status: Status) -> int:
        return sum(1 for result in self.results if result.status is status)


@dataclass(frozen=True)
class Invocation:
    """Planned execution of an operation for a unit.

    ``command`` is ``None`` exactly when ``skip_reason`` is set.
    """

    unit: SubprojectUnit
    operation: str
    command: Optional[str]
    skip_reason: Optional[str] = None


__all__ = [
    "BatchOutcome",
    "Classification",
    "ExecutionResult",
    "Invocation",
    "Status",
    "SubprojectUnit",
]
