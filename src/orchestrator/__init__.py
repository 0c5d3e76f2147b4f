"""Task orchestration across the units of a multi-package repository."""

from .executor import Executor, PooledExecutor, SequentialExecutor
from .manifest import Manifest, ManifestGenerator, load_manifest
from .orchestrator import BatchOrchestrator, run_operation
from .resolver import CommandResolver
from .runner import TaskRunner
from .scheduler import Scheduler
from .task import BatchOutcome, Classification, ExecutionResult, Status, SubprojectUnit

__all__ = [
    "BatchOrchestrator",
    "BatchOutcome",
    "Classification",
    "CommandResolver",
    "ExecutionResult",
    "Executor",
    "Manifest",
    "ManifestGenerator",
    "PooledExecutor",
    "SequentialExecutor",
    "Scheduler",
    "Status",
    "SubprojectUnit",
    "TaskRunner",
    "load_manifest",
    "run_operation",
]
