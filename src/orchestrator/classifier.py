"""Directory-convention classification of manifest units."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Sequence, Tuple

from project_config import Layout

from .task import Classification, SubprojectUnit


def _path_segments(path: str | Path) -> Tuple[str, ...]:
    text = str(path).replace("\\", "/")
    return tuple(part for part in PurePosixPath(text).parts if part not in ("", ".", "/"))


def _contains(haystack: Sequence[str], needle: Sequence[str]) -> bool:
    if not needle:
        return False
    width = len(needle)
    return any(tuple(haystack[i : i + width]) == tuple(needle) for i in range(len(haystack) - width + 1))


def classify(path: str | Path, layout: Layout | None = None) -> Classification:
    """Return the classification of *path* under *layout*.

    Matching works on whole path segments: ``src/lambda/fn1`` is a function
    unit for the default layout while ``src/lambdas/fn1`` is not.  The
    function root is checked first so a function named after the web root
    still classifies as a function.
    """

    layout = layout or Layout()
    segments = _path_segments(path)
    if _contains(segments, layout.function_segments):
        return Classification.FUNCTION_UNIT
    if _contains(segments, layout.web_segments):
        return Classification.WEB_APP
    return Classification.UNCLASSIFIED


def build_unit(name: str, path: str, base_dir: Path, layout: Layout | None = None) -> SubprojectUnit:
    """Create a :class:`SubprojectUnit` for a manifest entry.

    *path* is relative to *base_dir* (the manifest directory) unless it is
    absolute.
    """

    layout = layout or Layout()
    candidate = Path(path)
    root = candidate if candidate.is_absolute() else base_dir / candidate
    root = root.resolve()
    return SubprojectUnit(
        name=name,
        path=PurePosixPath(str(path).replace("\\", "/")).as_posix(),
        root=root,
        classification=classify(path, layout),
        has_marker=(root / layout.marker).is_file(),
    )


__all__ = ["build_unit", "classify"]
