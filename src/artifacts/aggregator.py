"""Collect per-unit test results and coverage into repository-wide reports.

Outputs land under the configured report directory:

* ``allMergedTests.xml`` and ``allMergedTests.html`` for test results
* ``coverage/merged-coverage.json`` for the merged Istanbul coverage
* ``coverage-summary/coverage-summary.json`` for the json-summary roll-up

Every input is optional; a unit without artifacts is logged and left out.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from string import Template
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from contracts.errors import ArtifactIOError
from orchestrator.manifest import Manifest
from orchestrator.task import SubprojectUnit
from project_config import ProjectConfig

from . import artifact_store, coverage, junit

_LOGGER = logging.getLogger(__name__)

TEST_RESULTS = "test-results"
COVERAGE = "coverage"
KINDS = (TEST_RESULTS, COVERAGE)

MERGED_TESTS_XML = "allMergedTests.xml"
MERGED_TESTS_HTML = "allMergedTests.html"
MERGED_COVERAGE = "coverage/merged-coverage.json"
COVERAGE_SUMMARY = "coverage-summary/coverage-summary.json"


@dataclass(frozen=True)
class ArtifactSet:
    """Report files a unit produced; ``None`` when the file is absent."""

    unit: str
    test_results: Optional[Path] = None
    coverage: Optional[Path] = None


@dataclass(frozen=True)
class AggregateReport:
    kind: str
    outputs: Tuple[Path, ...] = ()
    included: Tuple[str, ...] = ()
    missing: Tuple[str, ...] = ()
    summary: Mapping[str, Any] = field(default_factory=dict)


class ReportAggregator:
    """Merge the artifacts of every manifest unit, in manifest order."""

    def __init__(self, config: ProjectConfig) -> None:
        self.config = config
        self.output_dir = config.reports.output_dir

    def collect(self, units: Sequence[SubprojectUnit]) -> List[ArtifactSet]:
        settings = self.config.reports
        found: List[ArtifactSet] = []
        for unit in units:
            tests = unit.root / settings.test_results_path
            cov = unit.root / settings.coverage_path
            found.append(
                ArtifactSet(
                    unit=unit.name,
                    test_results=tests if tests.is_file() else None,
                    coverage=cov if cov.is_file() else None,
                )
            )
        return found

    def _units(self, source: Manifest | Sequence[SubprojectUnit]) -> List[SubprojectUnit]:
        if isinstance(source, Manifest):
            return source.units(self.config.layout)
        return list(source)

    def aggregate(self, source: Manifest | Sequence[SubprojectUnit], kind: str) -> AggregateReport:
        if kind not in KINDS:
            raise ValueError(f"unknown report kind {kind!r}; expected one of {', '.join(KINDS)}")

        artifacts = self.collect(self._units(source))
        attr = "test_results" if kind == TEST_RESULTS else "coverage"
        inputs: List[Tuple[str, Path]] = []
        missing: List[str] = []
        for item in artifacts:
            path = getattr(item, attr)
            if path is None:
                _LOGGER.info("%s: no %s artifact, skipping", item.unit, kind)
                missing.append(item.unit)
            else:
                inputs.append((item.unit, path))

        if kind == TEST_RESULTS:
            outputs, summary = self._merge_test_results(inputs)
        else:
            outputs, summary = self._merge_coverage(inputs)

        _LOGGER.info("%s: merged %d unit(s), %d without artifacts", kind, len(inputs), len(missing))
        return AggregateReport(
            kind=kind,
            outputs=tuple(outputs),
            included=tuple(unit for unit, _ in inputs),
            missing=tuple(missing),
            summary=summary,
        )

    def aggregate_all(self, source: Manifest | Sequence[SubprojectUnit]) -> List[AggregateReport]:
        units = self._units(source)
        return [self.aggregate(units, kind) for kind in KINDS]

    def _external_merge(self, template: str, inputs: Sequence[Path], output: Path) -> None:
        """Run a user-supplied merge command; ``${inputs}`` and ``${output}`` are shell-quoted."""

        command = Template(template).safe_substitute(
            inputs=" ".join(shlex.quote(str(path)) for path in inputs),
            output=shlex.quote(str(output)),
        )
        output.parent.mkdir(parents=True, exist_ok=True)
        _LOGGER.info("$ %s", command)
        try:
            completed = subprocess.run(
                command,
                shell=True,
                cwd=str(self.config.root),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise ArtifactIOError(f"cannot start merge command ({exc})", path=str(output)) from exc
        if completed.returncode != 0:
            tail = (completed.stdout or "").strip()[-2000:]
            raise ArtifactIOError(
                f"merge command exited with {completed.returncode}: {tail}", path=str(output)
            )

    def _merge_test_results(self, inputs: Sequence[Tuple[str, Path]]) -> Tuple[List[Path], Mapping[str, Any]]:
        xml_path = self.output_dir / MERGED_TESTS_XML
        html_path = self.output_dir / MERGED_TESTS_HTML
        template = self.config.reports.test_results_merge_command

        if template and inputs:
            self._external_merge(template, [path for _, path in inputs], xml_path)
            suites = junit.read_suites(xml_path)
        else:
            suites = []
            for _, path in inputs:
                suites.extend(junit.read_suites(path))

        root, totals = junit.merge_suites(self.config.root_project, suites)
        if not (template and inputs):
            artifact_store.write_atomic(xml_path, junit.to_bytes(root), error_cls=ArtifactIOError)
        artifact_store.write_atomic(html_path, junit.render_html(root), error_cls=ArtifactIOError)
        summary = {
            "tests": totals.tests,
            "failures": totals.failures,
            "errors": totals.errors,
            "skipped": totals.skipped,
        }
        return [xml_path, html_path], summary

    def _merge_coverage(self, inputs: Sequence[Tuple[str, Path]]) -> Tuple[List[Path], Mapping[str, Any]]:
        merged_path = self.output_dir / MERGED_COVERAGE
        summary_path = self.output_dir / COVERAGE_SUMMARY
        template = self.config.reports.coverage_merge_command

        if template and inputs:
            self._external_merge(template, [path for _, path in inputs], merged_path)
            merged = coverage.validate_coverage(
                artifact_store.read_json(merged_path, error_cls=ArtifactIOError), str(merged_path)
            )
        else:
            documents = [
                coverage.validate_coverage(artifact_store.read_json(path, error_cls=ArtifactIOError), str(path))
                for _, path in inputs
            ]
            merged = coverage.merge_coverage(documents)

        summary = coverage.summarize(merged)
        if not (template and inputs):
            artifact_store.write_json(merged_path, merged, error_cls=ArtifactIOError)
        artifact_store.write_json(summary_path, summary, error_cls=ArtifactIOError)
        return [merged_path, summary_path], summary["total"]


__all__ = [
    "AggregateReport",
    "ArtifactSet",
    "COVERAGE",
    "KINDS",
    "ReportAggregator",
    "TEST_RESULTS",
]
