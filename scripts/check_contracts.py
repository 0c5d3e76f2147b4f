#!/usr/bin/env python3
"""Validate the configuration and manifest of a repository offline."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from contracts import validator
from contracts.errors import PolyrunError
from orchestrator.manifest import ManifestGenerator, load_manifest
from project_config import CONFIG_FILENAME, load_config, read_config_file


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    target = Path(args[0]) if args else Path.cwd()
    failures: list[str] = []

    config_file = target / CONFIG_FILENAME
    if config_file.exists():
        report = validator.validate(read_config_file(config_file), expect_type="Config")
        for issue in report.errors:
            failures.append(f"{config_file.name}: {issue.path}: {issue.msg}")
        for issue in report.warnings:
            print(f"{config_file.name}: warn: {issue.path}: {issue.msg}")

    if failures:
        for line in failures:
            print(line)
        return 1

    try:
        config = load_config(target)
        manifest = load_manifest(config.manifest_path)
        stale = ManifestGenerator(config).is_stale()
    except PolyrunError as exc:
        print(exc)
        return exc.exit_code

    print(f"{config.manifest_path.name}: {len(manifest.entries)} unit(s)")
    if stale:
        print(f"{config.manifest_path.name} is stale; run `polyrun regenerate-manifest`")
        return 1

    print("Configuration and manifest are valid.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
