"""Canonical serialisation and atomic persistence for generated files."""

from __future__ import annotations

import hashlib
import json
import math
import os
import tempfile
import unicodedata
from pathlib import Path
from typing import Any

from contracts.errors import WorkspaceIOError


def _normalize(obj: Any) -> Any:
    """Return a deep-normalised structure suitable for canonical JSON."""

    if isinstance(obj, dict):
        return {str(k): _normalize(v) for k, v in sorted(obj.items(), key=lambda item: str(item[0]))}
    if isinstance(obj, (list, tuple)):
        return [_normalize(item) for item in obj]
    if isinstance(obj, str):
        return unicodedata.normalize("NFC", obj)
    if isinstance(obj, float):
        if not math.isfinite(obj):
            raise ValueError("Non-finite numbers are not allowed in reports")
        return obj
    return obj


def canonicalize(obj: Any, *, indent: int | None = None) -> bytes:
    """Serialise *obj* into canonical JSON bytes.

    Dictionaries are sorted lexicographically by key and strings are
    normalised to NFC.  Without ``indent`` the output has no insignificant
    whitespace; with it the output ends in a newline so files stay diff
    friendly.
    """

    normalised = _normalize(obj)
    if indent is None:
        return json.dumps(normalised, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    text = json.dumps(normalised, sort_keys=True, indent=indent, ensure_ascii=False)
    return (text + "\n").encode("utf-8")


def digest(data: bytes) -> str:
    return f"sha256-{hashlib.sha256(data).hexdigest()}"


def write_atomic(path: Path, data: bytes, *, error_cls: type[WorkspaceIOError] = WorkspaceIOError) -> Path:
    """Replace *path* with *data* without ever exposing a truncated file.

    The payload goes to a temporary file in the target directory, is flushed
    to disk and then renamed over the destination.
    """

    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    except OSError as exc:
        raise error_cls(f"cannot create temporary file ({exc.strerror})", path=str(path)) from exc

    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except OSError as exc:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise error_cls(f"cannot write file ({exc.strerror})", path=str(path)) from exc
    return path


def write_json(path: Path, obj: Any, *, error_cls: type[WorkspaceIOError] = WorkspaceIOError) -> Path:
    """Write *obj* as indented canonical JSON."""

    return write_atomic(path, canonicalize(obj, indent=2), error_cls=error_cls)


def read_json(path: Path, *, error_cls: type[WorkspaceIOError] = WorkspaceIOError) -> Any:
    try:
        return json.loads(Path(path).read_text("utf-8"))
    except OSError as exc:
        raise error_cls(f"cannot read file ({exc.strerror})", path=str(path)) from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise error_cls(f"malformed JSON ({exc})", path=str(path)) from exc


__all__ = [
    "canonicalize",
    "digest",
    "read_json",
    "write_atomic",
    "write_json",
]
