"""Post-batch reporting: banner and summary table."""

from __future__ import annotations

from typing import Callable, List, Sequence, TextIO

from .task import BatchOutcome, ExecutionResult, Status, SubprojectUnit

Reporter = Callable[[BatchOutcome, Sequence[SubprojectUnit]], None]

_RULE = "=" * 72


def render_banner(*, root_project: str, environment: str, manifest: str, units: Sequence[SubprojectUnit]) -> str:
    names = ", ".join(unit.name for unit in units) or "(none)"
    return "\n".join(
        [
            _RULE,
            f"  project      : {root_project}",
            f"  environment  : {environment}",
            f"  manifest     : {manifest}",
            f"  units        : {names}",
            _RULE,
        ]
    )


def _detail(result: ExecutionResult) -> str:
    if result.status is Status.SUCCESS:
        return ""
    if result.exit_code is not None and result.reason is not None:
        return f"{result.reason} (exit {result.exit_code})"
    return result.reason or ""


def render_summary(outcome: BatchOutcome) -> str:
    """Tabulate *outcome* one line per unit, in manifest order."""

    rows: List[tuple] = [("unit", "status", "detail", "time")]
    for result in outcome.results:
        seconds = f"{result.duration_ms / 1000:.1f}s" if result.status is not Status.SKIPPED else "-"
        rows.append((result.unit, result.status.value, _detail(result), seconds))

    widths = [max(len(str(row[col])) for row in rows) for col in range(4)]
    lines = [f"{outcome.operation}:"]
    for row in rows:
        lines.append("  " + "  ".join(str(cell).ljust(width) for cell, width in zip(row, widths)).rstrip())

    verdict = outcome.status.upper()
    if outcome.cancelled:
        verdict += " (cancelled)"
    lines.append(
        f"{verdict}: {outcome.count(Status.SUCCESS)} succeeded, "
        f"{outcome.count(Status.FAILED)} failed, {outcome.count(Status.SKIPPED)} skipped"
    )
    return "\n".join(lines)


def make_printer(*, root_project: str, environment: str, manifest: str, stream: TextIO | None = None) -> Reporter:
    """Return a reporter printing the banner and summary to *stream*."""

    def report(outcome: BatchOutcome, units: Sequence[SubprojectUnit]) -> None:
        banner = render_banner(root_project=root_project, environment=environment, manifest=manifest, units=units)
        print(banner, file=stream)
        print(render_summary(outcome), file=stream)

    return report


__all__ = ["Reporter", "make_printer", "render_banner", "render_summary"]
