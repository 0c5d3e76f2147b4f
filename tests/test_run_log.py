from __future__ import annotations

import json

from orchestrator.log import RunLog, result_event
from orchestrator.task import BatchOutcome, ExecutionResult, Status


def _outcome() -> BatchOutcome:
    return BatchOutcome(
        operation="test",
        results=(
            ExecutionResult(unit="react", operation="test", status=Status.SUCCESS, exit_code=0, command="true"),
            ExecutionResult(unit="fn1", operation="test", status=Status.FAILED, reason="exit-status", exit_code=1),
        ),
    )


def test_record_outcome_appends_one_event_per_result(tmp_path):
    log = RunLog(tmp_path)
    path = log.record_outcome(_outcome(), run_id="r1")

    events = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [event.get("unit") for event in events[:2]] == ["react", "fn1"]
    assert events[1]["reason"] == "exit-status"
    assert events[-1]["event"] == "batch.completed"
    assert events[-1]["status"] == "failure"
    assert path.name == "runs_00.jsonl"


def test_rotation_starts_a_new_file(tmp_path):
    log = RunLog(tmp_path, max_bytes=200)
    first = log.append_event({"event": "x", "payload": "a" * 300})
    second = log.append_event({"event": "y"})
    assert first != second
    assert second.name == "runs_01.jsonl"


def test_output_is_truncated_to_the_tail():
    result = ExecutionResult(unit="u", operation="o", status=Status.FAILED, output="x" * 10000 + "END")
    event = result_event(result, run_id="r", index=0)
    assert event["output_tail"].endswith("END")
    assert len(event["output_tail"]) < 10000
