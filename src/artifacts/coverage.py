"""Istanbul ``coverage-final.json`` merging and json-summary roll-up.

A coverage document maps a source path to its file coverage::

    {"/repo/src/a.ts": {"path": "/repo/src/a.ts",
                        "statementMap": {"0": {"start": {"line": 1}, ...}},
                        "fnMap": {...}, "branchMap": {...},
                        "s": {"0": 3}, "f": {...}, "b": {"0": [1, 0]}}}

Merging sums the hit counters of identical paths; the maps of the first
occurrence win.
"""

from __future__ import annotations

import copy
import math
from typing import Any, Dict, Iterable, List, Mapping

from contracts.errors import ArtifactIOError

__all__ = ["merge_coverage", "percent", "summarize", "validate_coverage"]

_METRICS = ("lines", "statements", "functions", "branches")


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_coverage(document: Any, source: str) -> Mapping[str, Any]:
    """Reject documents that are not a mapping of file coverage objects."""

    if not isinstance(document, Mapping):
        raise ArtifactIOError("coverage document must be a JSON object", path=source)
    for key, entry in document.items():
        if not isinstance(entry, Mapping):
            raise ArtifactIOError(f"coverage entry for {key!r} must be an object", path=source)
        for counter in ("s", "f", "b"):
            if counter not in entry:
                continue
            hits = entry[counter]
            if not isinstance(hits, Mapping):
                raise ArtifactIOError(f"coverage counter {counter!r} of {key!r} must be an object", path=source)
            for item_id, value in hits.items():
                valid = _is_count(value) if counter != "b" else (
                    isinstance(value, list) and all(_is_count(hit) for hit in value)
                )
                if not valid:
                    raise ArtifactIOError(
                        f"coverage counter {counter}[{item_id!r}] of {key!r} has a malformed hit count", path=source
                    )
        for mapping in ("statementMap", "fnMap", "branchMap"):
            if mapping in entry and not isinstance(entry[mapping], Mapping):
                raise ArtifactIOError(f"coverage {mapping!r} of {key!r} must be an object", path=source)
    return document


def _sum_counts(target: Dict[str, Any], source: Mapping[str, Any]) -> None:
    for key, value in source.items():
        current = target.get(key)
        if isinstance(value, list):
            if not isinstance(current, list):
                target[key] = list(value)
                continue
            width = max(len(current), len(value))
            padded = current + [0] * (width - len(current))
            target[key] = [padded[i] + (value[i] if i < len(value) else 0) for i in range(width)]
        else:
            target[key] = (current or 0) + value


def merge_coverage(documents: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Merge coverage documents in order, summing counters per file."""

    merged: Dict[str, Any] = {}
    for document in documents:
        for key, entry in document.items():
            existing = merged.get(key)
            if existing is None:
                merged[key] = copy.deepcopy(dict(entry))
                continue
            for counter in ("s", "f", "b"):
                incoming = entry.get(counter)
                if incoming:
                    existing.setdefault(counter, {})
                    _sum_counts(existing[counter], incoming)
            for mapping in ("statementMap", "fnMap", "branchMap"):
                for item_id, location in entry.get(mapping, {}).items():
                    existing.setdefault(mapping, {}).setdefault(item_id, copy.deepcopy(location))
    return merged


def percent(covered: int, total: int) -> float:
    """Percentage truncated to two decimals; an empty metric counts as fully covered."""

    if total <= 0:
        return 100.0
    return math.floor((1000 * 100 * covered / total) / 10) / 100


def _metric(total: int, covered: int, skipped: int = 0) -> Dict[str, Any]:
    return {"total": total, "covered": covered, "skipped": skipped, "pct": percent(covered, total)}


def _file_summary(entry: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    statements = entry.get("s", {})
    statement_map = entry.get("statementMap", {})
    functions = entry.get("f", {})
    branches = entry.get("b", {})

    lines: Dict[int, int] = {}
    for statement_id, count in statements.items():
        location = statement_map.get(statement_id)
        start = location.get("start") if isinstance(location, Mapping) else None
        line = start.get("line") if isinstance(start, Mapping) else None
        if not _is_count(line):
            continue
        if line not in lines or lines[line] < count:
            lines[line] = count

    branch_counts: List[int] = [hit for counts in branches.values() for hit in counts]
    return {
        "lines": _metric(len(lines), sum(1 for hits in lines.values() if hits > 0)),
        "statements": _metric(
            len(statements),
            sum(1 for hits in statements.values() if hits > 0),
            sum(1 for location in statement_map.values() if isinstance(location, Mapping) and location.get("skip")),
        ),
        "functions": _metric(len(functions), sum(1 for hits in functions.values() if hits > 0)),
        "branches": _metric(len(branch_counts), sum(1 for hits in branch_counts if hits > 0)),
    }


def summarize(merged: Mapping[str, Any]) -> Dict[str, Any]:
    """Build a json-summary document: one entry per file plus ``total``."""

    summary: Dict[str, Any] = {}
    totals = {metric: {"total": 0, "covered": 0, "skipped": 0} for metric in _METRICS}
    for key in sorted(merged):
        per_file = _file_summary(merged[key])
        summary[key] = per_file
        for metric in _METRICS:
            for field in ("total", "covered", "skipped"):
                totals[metric][field] += per_file[metric][field]
    summary["total"] = {
        metric: _metric(values["total"], values["covered"], values["skipped"]) for metric, values in totals.items()
    }
    return summary
