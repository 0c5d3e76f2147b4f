"""Loading and precedence resolution for the polyrun configuration file.

Values are resolved in the order CLI > environment > ``polyrun.toml`` >
built-in default.  The CLI does not talk to this module directly: it encodes
its flags as ``CLI_POLYRUN_*`` keys in the environment mapping handed to
:func:`load_config`, so every layer is expressed the same way.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore[import-untyped]

from contracts import validator
from contracts.errors import ConfigurationError, ValidationIssue

CONFIG_FILENAME = "polyrun.toml"
DEFAULT_MANIFEST = "units.toml"
DEFAULT_ENVIRONMENT = "local"
DEFAULT_REPOSITORIES = ("https://registry.npmjs.org/",)
DEFAULT_TEST_RESULTS_PATH = "coverage/jest/junit.xml"
DEFAULT_COVERAGE_PATH = "coverage/coverage-final.json"
DEFAULT_OUTPUT_DIR = "build"


@dataclass(frozen=True)
class Layout:
    """Directory conventions used to classify and discover units."""

    web_root: str = "react"
    function_root: str = "src/lambda"
    marker: str = "package.json"

    @property
    def web_segments(self) -> Tuple[str, ...]:
        return _segments(self.web_root)

    @property
    def function_segments(self) -> Tuple[str, ...]:
        return _segments(self.function_root)


@dataclass(frozen=True)
class ReportSettings:
    output_dir: Path
    test_results_path: str = DEFAULT_TEST_RESULTS_PATH
    coverage_path: str = DEFAULT_COVERAGE_PATH
    test_results_merge_command: Optional[str] = None
    coverage_merge_command: Optional[str] = None


@dataclass(frozen=True)
class ProjectConfig:
    """Immutable view of the resolved configuration for one run."""

    root: Path
    root_project: str
    manifest_path: Path
    layout: Layout
    reports: ReportSettings
    environment: str = DEFAULT_ENVIRONMENT
    repositories: Tuple[str, ...] = DEFAULT_REPOSITORIES
    tool_versions_extra: str = ""
    concurrency: int = 1
    timeout: Optional[float] = None
    log_dir: Optional[Path] = None
    commands: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    operations: Mapping[str, Mapping[str, Any]] = field(default_factory=lambda: MappingProxyType({}))
    config_path: Optional[Path] = None
    warnings: Tuple[ValidationIssue, ...] = ()


def _segments(value: str) -> Tuple[str, ...]:
    return tuple(part for part in PurePosixPath(value.replace("\\", "/")).parts if part not in ("", "."))


def get_section(data: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Retrieve a nested configuration value using dotted notation."""

    current: Any = data
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return default
    return current


def read_config_file(path: Path) -> Dict[str, Any]:
    """Parse *path* as TOML, raising :class:`ConfigurationError` on failure."""

    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except OSError as exc:
        raise ConfigurationError(f"cannot read configuration ({exc.strerror})", path=str(path)) from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"malformed TOML ({exc})", path=str(path)) from exc


def _first_env(env: Mapping[str, str], *keys: str) -> Optional[Tuple[str, str]]:
    for key in keys:
        value = env.get(key)
        if value is not None and str(value).strip() != "":
            return key, str(value).strip()
    return None


def _resolve_environment(raw: Mapping[str, Any], env: Mapping[str, str]) -> str:
    found = _first_env(env, "CLI_POLYRUN_ENVIRONMENT", "POLYRUN_ENVIRONMENT", "REACT_APP_ENVIRONMENT")
    if found is not None:
        return found[1]
    return str(get_section(raw, "project.environment", DEFAULT_ENVIRONMENT))


def _resolve_concurrency(raw: Mapping[str, Any], env: Mapping[str, str]) -> int:
    found = _first_env(env, "CLI_POLYRUN_CONCURRENCY", "POLYRUN_CONCURRENCY")
    if found is None:
        return int(get_section(raw, "run.concurrency", 1))
    key, value = found
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from exc
    if parsed < 1:
        raise ConfigurationError(f"{key} must be at least 1, got {parsed}")
    return parsed


def _resolve_timeout(raw: Mapping[str, Any], env: Mapping[str, str]) -> Optional[float]:
    found = _first_env(env, "CLI_POLYRUN_TIMEOUT", "POLYRUN_TIMEOUT")
    if found is None:
        value = get_section(raw, "run.timeout")
        return float(value) if value is not None else None
    key, value = found
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number of seconds, got {value!r}") from exc
    if parsed <= 0:
        raise ConfigurationError(f"{key} must be positive, got {value!r}")
    return parsed


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({str(k): _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


def load_config(
    root: str | Path,
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ProjectConfig:
    """Build the :class:`ProjectConfig` for the repository at *root*.

    A missing ``polyrun.toml`` is not an error: every setting has a default.
    An explicitly requested ``config_path`` must exist.
    """

    root_path = Path(root).resolve()
    env_map: Mapping[str, str] = os.environ if env is None else env

    if config_path is not None:
        source: Optional[Path] = Path(config_path)
        if not source.is_absolute():
            source = root_path / source
        if not source.exists():
            raise ConfigurationError("configuration file not found", path=str(source))
    else:
        candidate = root_path / CONFIG_FILENAME
        source = candidate if candidate.exists() else None

    raw: Dict[str, Any] = read_config_file(source) if source is not None else {}
    report = validator.assert_valid(raw, expect_type="Config", source=str(source) if source else None)

    layout = Layout(
        web_root=str(get_section(raw, "layout.web_root", Layout.web_root)),
        function_root=str(get_section(raw, "layout.function_root", Layout.function_root)),
        marker=str(get_section(raw, "layout.marker", Layout.marker)),
    )

    output_dir = root_path / str(get_section(raw, "reports.output_dir", DEFAULT_OUTPUT_DIR))
    reports = ReportSettings(
        output_dir=output_dir,
        test_results_path=str(get_section(raw, "reports.test_results.path", DEFAULT_TEST_RESULTS_PATH)),
        coverage_path=str(get_section(raw, "reports.coverage.path", DEFAULT_COVERAGE_PATH)),
        test_results_merge_command=get_section(raw, "reports.test_results.merge_command") or None,
        coverage_merge_command=get_section(raw, "reports.coverage.merge_command") or None,
    )

    log_dir_raw = get_section(raw, "run.log_dir")
    found_log_dir = _first_env(env_map, "CLI_POLYRUN_LOG_DIR", "POLYRUN_LOG_DIR")
    if found_log_dir is not None:
        log_dir_raw = found_log_dir[1]
    log_dir = root_path / log_dir_raw if log_dir_raw else None

    repositories = get_section(raw, "project.repositories")
    return ProjectConfig(
        root=root_path,
        root_project=str(get_section(raw, "project.name", root_path.name)),
        manifest_path=root_path / str(get_section(raw, "project.manifest", DEFAULT_MANIFEST)),
        layout=layout,
        reports=reports,
        environment=_resolve_environment(raw, env_map),
        repositories=tuple(repositories) if repositories is not None else DEFAULT_REPOSITORIES,
        tool_versions_extra=str(get_section(raw, "project.tool_versions_extra", "")),
        concurrency=_resolve_concurrency(raw, env_map),
        timeout=_resolve_timeout(raw, env_map),
        log_dir=log_dir,
        commands=_freeze(get_section(raw, "commands", {})),
        operations=_freeze(get_section(raw, "operations", {})),
        config_path=source,
        warnings=tuple(report.warnings),
    )


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_MANIFEST",
    "Layout",
    "ProjectConfig",
    "ReportSettings",
    "get_section",
    "load_config",
    "read_config_file",
]
