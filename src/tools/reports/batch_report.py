"""Aggregation helpers for JSONL run logs."""

from __future__ import annotations

import json
from collections import Counter
from pathlib import Path
from typing import Iterable, List, Mapping

from artifacts.artifact_store import canonicalize
from contracts.errors import WorkspaceIOError

__all__ = ["aggregate", "discover"]


def discover(base_dir: Path) -> List[Path]:
    """Return every ``runs_NN.jsonl`` below *base_dir*, oldest day first."""

    return sorted(Path(base_dir).glob("*/runs_*.jsonl"))


def _load_events(paths: Iterable[Path]) -> Iterable[Mapping[str, object]]:
    for path in paths:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise WorkspaceIOError(f"cannot read run log ({exc.strerror})", path=str(path)) from exc
        for number, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as exc:
                raise WorkspaceIOError(f"malformed run log line {number} ({exc.msg})", path=str(path)) from exc


def aggregate(paths: Iterable[Path], *, top: int = 5) -> Mapping[str, object]:
    statuses = Counter()
    reasons = Counter()
    operations = Counter()
    failing_units = Counter()
    runs = set()
    results = 0
    for event in _load_events(paths):
        if event.get("event") != "unit.completed":
            continue
        results += 1
        runs.add(str(event.get("run_id")))
        status = str(event.get("status", "unknown"))
        statuses[status] += 1
        operations[str(event.get("operation", "unknown"))] += 1
        if status == "failed":
            reasons[str(event.get("reason", "unknown"))] += 1
            failing_units[str(event.get("unit", "unknown"))] += 1

    summary = {
        "total_results": results,
        "runs": len(runs),
        "status": dict(statuses),
        "operations": dict(operations),
        "failure_reasons": dict(reasons),
        "top_failing_units": failing_units.most_common(top),
    }
    # Canonicalise summary for deterministic snapshots
    summary["canonical"] = canonicalize(summary).decode("utf-8")
    return summary
