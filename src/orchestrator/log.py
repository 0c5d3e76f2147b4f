"""Light-weight JSONL run log with rotation support."""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping

from .task import BatchOutcome, ExecutionResult

__all__ = ["RunLog", "result_event"]

_DEFAULT_MAX_BYTES = 10 * 1024 * 1024
_OUTPUT_TAIL_CHARS = 4000


def _date_prefix() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d")


def result_event(result: ExecutionResult, *, run_id: str, index: int) -> Dict[str, Any]:
    """Shape one :class:`ExecutionResult` as a log event."""

    return {
        "event": "unit.completed",
        "run_id": run_id,
        "index": index,
        "unit": result.unit,
        "operation": result.operation,
        "status": result.status.value,
        "reason": result.reason,
        "exit_code": result.exit_code,
        "command": result.command,
        "duration_ms": result.duration_ms,
        "output_tail": result.output[-_OUTPUT_TAIL_CHARS:],
    }


class RunLog:
    """Append-only JSONL files under ``<base_dir>/<YYYYMMDD>/runs_NN.jsonl``."""

    def __init__(self, base_dir: str | Path, *, max_bytes: int | None = None) -> None:
        self.base_dir = Path(base_dir)
        self.max_bytes = max_bytes or _DEFAULT_MAX_BYTES
        self._lock = threading.Lock()
        self._current: Path | None = None

    @property
    def current_path(self) -> Path | None:
        return self._current

    def _resolve_path(self) -> Path:
        date_dir = self.base_dir / _date_prefix()
        date_dir.mkdir(parents=True, exist_ok=True)

        if self._current is not None and self._current.parent == date_dir and self._current.exists():
            if self._current.stat().st_size < self.max_bytes:
                return self._current

        counter = 0
        while True:
            candidate = date_dir / f"runs_{counter:02d}.jsonl"
            if not candidate.exists() or candidate.stat().st_size < self.max_bytes:
                self._current = candidate
                return candidate
            counter += 1

    def append_event(self, event: Mapping[str, Any]) -> Path:
        """Append ``event`` to the active JSONL file and return the file path."""

        payload = dict(event)
        payload.setdefault("ts", datetime.now(timezone.utc).isoformat(timespec="milliseconds"))

        line = json.dumps(payload, sort_keys=True, ensure_ascii=False)
        with self._lock:
            path = self._resolve_path()
            with path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        return path

    def record_outcome(self, outcome: BatchOutcome, *, run_id: str) -> Path:
        for index, result in enumerate(outcome.results):
            self.append_event(result_event(result, run_id=run_id, index=index))
        return self.append_event(
            {
                "event": "batch.completed",
                "run_id": run_id,
                "operation": outcome.operation,
                "status": outcome.status,
                "cancelled": outcome.cancelled,
                "units": len(outcome.results),
            }
        )
