#!/usr/bin/env python3
"""Smoke-test that manifest regeneration and report aggregation are repeatable."""

from __future__ import annotations

import json
import sys
import tempfile
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from artifacts.aggregator import ReportAggregator
from artifacts.artifact_store import digest
from orchestrator.manifest import ManifestGenerator
from project_config import load_config

_JUNIT = (
    '<?xml version="1.0"?>\n'
    '<testsuites><testsuite name="{name}" tests="1">'
    '<testcase classname="{name}" name="works" time="0.01"/>'
    "</testsuite></testsuites>\n"
)


def _build_tree(root: Path) -> None:
    (root / "react" / "coverage" / "jest").mkdir(parents=True)
    (root / "react" / "package.json").write_text("{}", encoding="utf-8")
    (root / "react" / "coverage" / "jest" / "junit.xml").write_text(_JUNIT.format(name="react"), encoding="utf-8")
    for name in ("orders", "billing"):
        unit = root / "src" / "lambda" / name
        (unit / "coverage" / "jest").mkdir(parents=True)
        (unit / "package.json").write_text("{}", encoding="utf-8")
        (unit / "coverage" / "jest" / "junit.xml").write_text(_JUNIT.format(name=name), encoding="utf-8")
        coverage = {
            f"/{name}/index.ts": {
                "path": f"/{name}/index.ts",
                "statementMap": {"0": {"start": {"line": 1}, "end": {"line": 1}}},
                "fnMap": {},
                "branchMap": {},
                "s": {"0": 1},
                "f": {},
                "b": {},
            }
        }
        (unit / "coverage" / "coverage-final.json").write_text(json.dumps(coverage), encoding="utf-8")


def _snapshot(paths) -> dict:
    return {str(path): digest(Path(path).read_bytes()) for path in paths}


def main() -> int:
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        _build_tree(root)
        config = load_config(root, env={})
        generator = ManifestGenerator(config)

        generator.regenerate()
        first = _snapshot([config.manifest_path])
        manifest = generator.regenerate()
        if _snapshot([config.manifest_path]) != first:
            print("manifest regeneration is not byte-identical")
            return 1

        aggregator = ReportAggregator(config)
        outputs = [path for report in aggregator.aggregate_all(manifest) for path in report.outputs]
        before = _snapshot(outputs)
        aggregator.aggregate_all(manifest)
        if _snapshot(outputs) != before:
            print("report aggregation is not byte-identical")
            return 1

    print("Determinism smoke-test passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
