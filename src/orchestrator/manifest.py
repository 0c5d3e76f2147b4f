"""Unit manifest: loading, regeneration and staleness detection.

The manifest is a small TOML document listing every unit by name and
manifest-relative path, plus the root project name and the package
registries used to resolve dependencies::

    root_project = "multiproject"
    repositories = [
        "https://registry.npmjs.org/",
    ]

    [[units]]
    name = "react"
    path = "react"
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore[import-untyped]

from artifacts import artifact_store
from contracts import validator
from contracts.errors import ConfigurationError, ManifestIOError
from project_config import Layout, ProjectConfig, load_config

from .classifier import build_unit
from .task import SubprojectUnit

_LOGGER = logging.getLogger(__name__)

_HEADER = "# Generated by `polyrun regenerate-manifest`; rerun it after adding or removing units.\n"


@dataclass(frozen=True)
class ManifestEntry:
    name: str
    path: str


@dataclass(frozen=True)
class Manifest:
    root_project: str
    repositories: Tuple[str, ...] = ()
    entries: Tuple[ManifestEntry, ...] = ()
    base_dir: Optional[Path] = None

    @property
    def names(self) -> List[str]:
        return [entry.name for entry in self.entries]

    def units(self, layout: Layout | None = None) -> List[SubprojectUnit]:
        """Classify every entry; order follows the manifest."""

        base = self.base_dir or Path.cwd()
        return [build_unit(entry.name, entry.path, base, layout) for entry in self.entries]


def _check_unique(entries: Sequence[ManifestEntry], source: str | None) -> None:
    seen = set()
    for entry in entries:
        if entry.name in seen:
            raise ConfigurationError(f"duplicate unit name '{entry.name}' in manifest", path=source)
        seen.add(entry.name)


def _quote(value: str) -> str:
    # JSON string escapes are a subset of TOML basic-string escapes.
    return json.dumps(value, ensure_ascii=False)


def render_manifest(manifest: Manifest) -> str:
    """Serialise *manifest* deterministically."""

    lines = [_HEADER.rstrip("\n"), f"root_project = {_quote(manifest.root_project)}"]
    lines.append("repositories = [")
    lines.extend(f"    {_quote(repo)}," for repo in manifest.repositories)
    lines.append("]")
    for entry in manifest.entries:
        lines.append("")
        lines.append("[[units]]")
        lines.append(f"name = {_quote(entry.name)}")
        lines.append(f"path = {_quote(entry.path)}")
    return "\n".join(lines) + "\n"


def load_manifest(path: str | Path) -> Manifest:
    """Parse and validate the manifest at *path*."""

    path = Path(path)
    try:
        with path.open("rb") as fh:
            raw = tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ManifestIOError("manifest not found; run `polyrun regenerate-manifest`", path=str(path)) from exc
    except OSError as exc:
        raise ManifestIOError(f"cannot read manifest ({exc.strerror})", path=str(path)) from exc
    except tomllib.TOMLDecodeError as exc:
        raise ManifestIOError(f"malformed manifest ({exc})", path=str(path)) from exc

    validator.assert_valid(raw, expect_type="Manifest", source=str(path))
    entries = tuple(ManifestEntry(name=item["name"], path=item["path"]) for item in raw.get("units", []))
    _check_unique(entries, str(path))
    return Manifest(
        root_project=raw["root_project"],
        repositories=tuple(raw.get("repositories", [])),
        entries=entries,
        base_dir=path.resolve().parent,
    )


class ManifestGenerator:
    """Rebuild the manifest from the directory layout of the repository."""

    def __init__(self, config: ProjectConfig) -> None:
        self.config = config

    def _relative(self, target: Path) -> str:
        base = self.config.manifest_path.parent
        try:
            return target.relative_to(base).as_posix()
        except ValueError:
            return target.as_posix()

    def scan(self) -> Manifest:
        """Return the manifest the current tree implies, without writing it.

        The web root is included when its directory exists.  Immediate
        children of the function root are included when they hold the marker
        file, sorted by name.
        """

        layout = self.config.layout
        root = self.config.root
        entries: List[ManifestEntry] = []

        web_dir = root.joinpath(*layout.web_segments)
        _LOGGER.debug("web root %s exists: %s", web_dir, web_dir.is_dir())
        if web_dir.is_dir():
            entries.append(ManifestEntry(name=layout.web_segments[-1], path=self._relative(web_dir)))

        function_dir = root.joinpath(*layout.function_segments)
        if function_dir.is_dir():
            children = sorted(
                (child for child in function_dir.iterdir() if child.is_dir() and (child / layout.marker).is_file()),
                key=lambda child: child.name,
            )
            entries.extend(ManifestEntry(name=child.name, path=self._relative(child)) for child in children)

        _check_unique(entries, str(self.config.manifest_path))
        return Manifest(
            root_project=self.config.root_project,
            repositories=tuple(self.config.repositories),
            entries=tuple(entries),
            base_dir=self.config.manifest_path.parent,
        )

    def regenerate(self) -> Manifest:
        """Scan the tree and atomically replace the persisted manifest."""

        manifest = self.scan()
        data = render_manifest(manifest).encode("utf-8")
        artifact_store.write_atomic(self.config.manifest_path, data, error_cls=ManifestIOError)
        _LOGGER.info("wrote %d unit(s) to %s", len(manifest.entries), self.config.manifest_path)
        return manifest

    def is_stale(self) -> bool:
        """``True`` when the persisted manifest differs from a fresh scan."""

        expected = render_manifest(self.scan()).encode("utf-8")
        try:
            current = self.config.manifest_path.read_bytes()
        except FileNotFoundError:
            return True
        except OSError as exc:
            raise ManifestIOError(f"cannot read manifest ({exc.strerror})", path=str(self.config.manifest_path)) from exc
        return current != expected


def regenerate(root: str | Path, config: ProjectConfig | None = None) -> Manifest:
    """Regenerate the manifest for the repository at *root*."""

    return ManifestGenerator(config or load_config(root)).regenerate()


__all__ = [
    "Manifest",
    "ManifestEntry",
    "ManifestGenerator",
    "load_manifest",
    "regenerate",
    "render_manifest",
]
