from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable

import pytest


def _make_unit(root: Path, relative: str, *, marker: bool = True, files: Iterable[str] = ()) -> Path:
    unit = root / relative
    unit.mkdir(parents=True, exist_ok=True)
    if marker:
        (unit / "package.json").write_text("{}", encoding="utf-8")
    for name in files:
        (unit / name).write_text("", encoding="utf-8")
    return unit


@pytest.fixture
def make_unit(tmp_path: Path) -> Callable[..., Path]:
    """Create a unit directory under ``tmp_path``; pass ``marker=False`` to omit package.json."""

    def factory(relative: str, *, marker: bool = True, files: Iterable[str] = ()) -> Path:
        return _make_unit(tmp_path, relative, marker=marker, files=files)

    return factory


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[str], Path]:
    def factory(text: str) -> Path:
        path = tmp_path / "polyrun.toml"
        path.write_text(text, encoding="utf-8")
        return path

    return factory
