"""Workspace housekeeping: cleaning generated files and tool inventories."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from contracts.errors import WorkspaceIOError
from project_config import ProjectConfig

from .task import SubprojectUnit

_LOGGER = logging.getLogger(__name__)

CLEAN_NODE_MODULES = "node-modules"
CLEAN_COVERAGE = "coverage"
CLEAN_REPORTS = "reports"
CLEAN_TARGETS = (CLEAN_NODE_MODULES, CLEAN_COVERAGE, CLEAN_REPORTS)

TOOL_VERSION_COMMANDS: Tuple[Tuple[str, str], ...] = (
    ("git", "git --version"),
    ("npm", "npm -v"),
    ("node", "node -v"),
    ("yarn", "yarn -v"),
    ("tsc", "tsc -v"),
    ("junit-merge", "junit-merge --version"),
)


def _remove(path: Path) -> bool:
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
        else:
            return False
    except OSError as exc:
        raise WorkspaceIOError(f"cannot remove ({exc.strerror})", path=str(path)) from exc
    _LOGGER.info("removed %s", path)
    return True


def clean(config: ProjectConfig, units: Sequence[SubprojectUnit], target: str) -> List[Path]:
    """Delete generated files for *target*; return what was removed.

    Missing files and directories are not an error.
    """

    if target == CLEAN_NODE_MODULES:
        candidates = [path for unit in units for path in (unit.root / "node_modules", unit.root / "node_modules.out")]
    elif target == CLEAN_COVERAGE:
        candidates = [unit.root / "coverage" for unit in units]
    elif target == CLEAN_REPORTS:
        candidates = [config.reports.output_dir]
    else:
        raise ValueError(f"unknown clean target {target!r}; expected one of {', '.join(CLEAN_TARGETS)}")
    return [path for path in candidates if _remove(path)]


def _probe(command: str, cwd: Path) -> Optional[str]:
    try:
        completed = subprocess.run(
            command,
            shell=True,
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=30,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        _LOGGER.debug("%s: %s", command, exc)
        return None
    if completed.returncode != 0:
        return None
    lines = (completed.stdout or "").strip().splitlines()
    return lines[0].strip() if lines else ""


def tool_versions(config: ProjectConfig) -> List[Tuple[str, Optional[str]]]:
    """Report the version of each build tool; ``None`` marks a missing one."""

    commands = list(TOOL_VERSION_COMMANDS)
    if config.tool_versions_extra.strip():
        commands.append((config.tool_versions_extra.split()[0], config.tool_versions_extra))
    return [(name, _probe(command, config.root)) for name, command in commands]


__all__ = [
    "CLEAN_TARGETS",
    "TOOL_VERSION_COMMANDS",
    "clean",
    "tool_versions",
]
