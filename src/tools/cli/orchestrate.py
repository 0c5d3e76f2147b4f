"""Command line entry point for polyrun workflows."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List

from artifacts.aggregator import KINDS, ReportAggregator
from contracts.errors import EXIT_CANCELLED, EXIT_EXECUTION_FAILURE, EXIT_OK, ConfigurationError, PolyrunError
from orchestrator.housekeeping import CLEAN_TARGETS, clean, tool_versions
from orchestrator.manifest import ManifestGenerator, load_manifest
from orchestrator.orchestrator import BatchOrchestrator
from orchestrator.report import make_printer
from project_config import ProjectConfig, load_config
from tools.reports import batch_report

_LOGGER = logging.getLogger("polyrun")


def _cli_overrides(args: argparse.Namespace) -> Dict[str, str]:
    payload: Dict[str, str] = {}
    if getattr(args, "concurrency", None) is not None:
        payload["CLI_POLYRUN_CONCURRENCY"] = str(args.concurrency)
    if getattr(args, "timeout", None) is not None:
        payload["CLI_POLYRUN_TIMEOUT"] = str(args.timeout)
    if getattr(args, "environment", None):
        payload["CLI_POLYRUN_ENVIRONMENT"] = str(args.environment)
    return payload


def _load(args: argparse.Namespace) -> ProjectConfig:
    env = dict(os.environ)
    env.update(_cli_overrides(args))
    return load_config(args.root, config_path=args.config, env=env)


def cmd_run(args: argparse.Namespace) -> int:
    config = _load(args)
    manifest = load_manifest(config.manifest_path)
    try:
        stale = ManifestGenerator(config).is_stale()
    except ConfigurationError as exc:
        _LOGGER.warning("cannot check whether %s is current: %s", config.manifest_path, exc)
    else:
        if stale:
            _LOGGER.warning("manifest %s is out of date; run `polyrun regenerate-manifest`", config.manifest_path)

    reporter = make_printer(
        root_project=config.root_project,
        environment=config.environment,
        manifest=str(config.manifest_path),
    )
    outcome = BatchOrchestrator(config, reporter=reporter).run_operation(manifest, args.operation)
    if outcome.cancelled:
        return EXIT_CANCELLED
    return EXIT_OK if outcome.succeeded else EXIT_EXECUTION_FAILURE


def cmd_regenerate_manifest(args: argparse.Namespace) -> int:
    config = _load(args)
    generator = ManifestGenerator(config)
    if args.check:
        stale = generator.is_stale()
        print(f"{config.manifest_path}: {'stale' if stale else 'up to date'}")
        return EXIT_EXECUTION_FAILURE if stale else EXIT_OK
    manifest = generator.regenerate()
    for name in manifest.names:
        print(name)
    return EXIT_OK


def cmd_aggregate_reports(args: argparse.Namespace) -> int:
    config = _load(args)
    manifest = load_manifest(config.manifest_path)
    aggregator = ReportAggregator(config)
    if args.kind == "all":
        reports = aggregator.aggregate_all(manifest)
    else:
        reports = [aggregator.aggregate(manifest, args.kind)]
    payload = [
        {
            "kind": report.kind,
            "outputs": [str(path) for path in report.outputs],
            "included": list(report.included),
            "missing": list(report.missing),
            "summary": dict(report.summary),
        }
        for report in reports
    ]
    print(json.dumps(payload, indent=2, sort_keys=True))
    return EXIT_OK


def cmd_clean(args: argparse.Namespace) -> int:
    config = _load(args)
    units = load_manifest(config.manifest_path).units(config.layout) if args.target != "reports" else []
    for path in clean(config, units, args.target):
        print(f"removed {path}")
    return EXIT_OK


def cmd_list(args: argparse.Namespace) -> int:
    config = _load(args)
    for unit in load_manifest(config.manifest_path).units(config.layout):
        marker = "marker" if unit.has_marker else "no-marker"
        print(f"{unit.name}\t{unit.classification.value}\t{marker}\t{unit.path}")
    return EXIT_OK


def cmd_tool_versions(args: argparse.Namespace) -> int:
    config = _load(args)
    for name, version in tool_versions(config):
        print(f"{name}: {version if version is not None else 'not installed'}")
    return EXIT_OK


def cmd_report_runs(args: argparse.Namespace) -> int:
    files = batch_report.discover(Path(args.path))
    if not files:
        raise SystemExit(f"No JSONL run logs found under {args.path}")
    summary = batch_report.aggregate(files, top=args.top)
    print(json.dumps(summary, indent=2, sort_keys=True))
    return EXIT_OK


def _positive_int(value: str) -> int:
    parsed = int(value)
    if parsed < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return parsed


def _positive_float(value: str) -> float:
    parsed = float(value)
    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be positive")
    return parsed


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="polyrun", description="Multi-package task orchestrator")
    parser.add_argument("--root", default=".", help="Repository root (default: current directory)")
    parser.add_argument("--config", default=None, help="Configuration file (default: <root>/polyrun.toml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run an operation across every unit")
    run.add_argument("operation")
    run.add_argument("--concurrency", type=_positive_int, default=None, help="Units run in parallel")
    run.add_argument("--timeout", type=_positive_float, default=None, help="Per-unit timeout in seconds")
    run.add_argument("--environment", default=None, help="Deployment environment (default: local)")
    run.set_defaults(func=cmd_run)

    regen = sub.add_parser("regenerate-manifest", help="Rebuild the unit manifest from the directory layout")
    regen.add_argument("--check", action="store_true", help="Only report whether the manifest is stale")
    regen.set_defaults(func=cmd_regenerate_manifest)

    aggregate = sub.add_parser("aggregate-reports", help="Merge test results and coverage of all units")
    aggregate.add_argument("kind", choices=[*KINDS, "all"])
    aggregate.set_defaults(func=cmd_aggregate_reports)

    clean_cmd = sub.add_parser("clean", help="Delete generated files")
    clean_cmd.add_argument("target", choices=CLEAN_TARGETS)
    clean_cmd.set_defaults(func=cmd_clean)

    list_cmd = sub.add_parser("list", help="Show manifest units and their classification")
    list_cmd.set_defaults(func=cmd_list)

    versions = sub.add_parser("tool-versions", help="Print the versions of the build tools")
    versions.set_defaults(func=cmd_tool_versions)

    report = sub.add_parser("report-runs", help="Aggregate JSONL run logs")
    report.add_argument("path", help="Directory containing JSONL run logs")
    report.add_argument("--top", type=int, default=5)
    report.set_defaults(func=cmd_report_runs)

    return parser


def main(argv: List[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except PolyrunError as exc:
        print(f"polyrun: {exc}", file=sys.stderr)
        return exc.exit_code


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
