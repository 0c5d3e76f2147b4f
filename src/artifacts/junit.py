"""JUnit XML merging and HTML rendering."""

from __future__ import annotations

import html
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Tuple

from contracts.errors import ArtifactIOError

__all__ = ["SuiteTotals", "merge_suites", "read_suites", "render_html", "suite_totals", "to_bytes"]


@dataclass(frozen=True)
class SuiteTotals:
    tests: int = 0
    failures: int = 0
    errors: int = 0
    skipped: int = 0
    time: float = 0.0

    def __add__(self, other: "SuiteTotals") -> "SuiteTotals":
        return SuiteTotals(
            tests=self.tests + other.tests,
            failures=self.failures + other.failures,
            errors=self.errors + other.errors,
            skipped=self.skipped + other.skipped,
            time=self.time + other.time,
        )


def read_suites(path: Path) -> List[ET.Element]:
    """Return the ``<testsuite>`` elements of the report at *path*."""

    try:
        root = ET.parse(str(path)).getroot()
    except OSError as exc:
        raise ArtifactIOError(f"cannot read test results ({exc.strerror})", path=str(path)) from exc
    except ET.ParseError as exc:
        raise ArtifactIOError(f"malformed test results ({exc})", path=str(path)) from exc

    if root.tag == "testsuite":
        return [root]
    if root.tag == "testsuites":
        return root.findall("testsuite")
    raise ArtifactIOError(f"unexpected root element <{root.tag}>", path=str(path))


def _int(value: str | None) -> int:
    try:
        return int(value or 0)
    except ValueError:
        return 0


def _float(value: str | None) -> float:
    try:
        return float(value or 0)
    except ValueError:
        return 0.0


def _case_outcome(case: ET.Element) -> str:
    if case.find("failure") is not None:
        return "failure"
    if case.find("error") is not None:
        return "error"
    if case.find("skipped") is not None:
        return "skipped"
    return "passed"


def suite_totals(suite: ET.Element) -> SuiteTotals:
    """Count a suite from its test cases, or from its attributes when it has none."""

    cases = suite.findall("testcase")
    if not cases:
        return SuiteTotals(
            tests=_int(suite.get("tests")),
            failures=_int(suite.get("failures")),
            errors=_int(suite.get("errors")),
            skipped=_int(suite.get("skipped")),
            time=_float(suite.get("time")),
        )
    outcomes = [_case_outcome(case) for case in cases]
    time = _float(suite.get("time")) if suite.get("time") else sum(_float(case.get("time")) for case in cases)
    return SuiteTotals(
        tests=len(cases),
        failures=outcomes.count("failure"),
        errors=outcomes.count("error"),
        skipped=outcomes.count("skipped"),
        time=time,
    )


def _apply_totals(element: ET.Element, totals: SuiteTotals) -> None:
    element.set("tests", str(totals.tests))
    element.set("failures", str(totals.failures))
    element.set("errors", str(totals.errors))
    element.set("skipped", str(totals.skipped))
    element.set("time", f"{totals.time:.3f}")


def merge_suites(name: str, suites: Sequence[ET.Element]) -> Tuple[ET.Element, SuiteTotals]:
    """Wrap *suites* in one ``<testsuites>`` element with recomputed totals."""

    root = ET.Element("testsuites", {"name": name})
    totals = SuiteTotals()
    for suite in suites:
        counted = suite_totals(suite)
        _apply_totals(suite, counted)
        root.append(suite)
        totals = totals + counted
    _apply_totals(root, totals)
    return root, totals


def to_bytes(root: ET.Element) -> bytes:
    ET.indent(root, space="  ")
    return ET.tostring(root, encoding="utf-8", xml_declaration=True) + b"\n"


_STYLE = (
    "body{font-family:sans-serif;margin:2em}"
    "table{border-collapse:collapse;width:100%;margin-bottom:2em}"
    "td,th{border:1px solid #ccc;padding:4px 8px;text-align:left}"
    ".passed{color:#2a7d2a}.failure,.error{color:#b00020}.skipped{color:#888}"
    "pre{white-space:pre-wrap;margin:0}"
)


def render_html(root: ET.Element) -> bytes:
    """Render a merged ``<testsuites>`` document as a standalone HTML page."""

    esc = html.escape
    title = esc(root.get("name", "tests"))
    parts = [
        "<!DOCTYPE html>",
        "<html><head><meta charset=\"utf-8\">",
        f"<title>{title}</title><style>{_STYLE}</style></head><body>",
        f"<h1>{title}</h1>",
        "<p>"
        f"tests: {esc(root.get('tests', '0'))}, failures: {esc(root.get('failures', '0'))}, "
        f"errors: {esc(root.get('errors', '0'))}, skipped: {esc(root.get('skipped', '0'))}, "
        f"time: {esc(root.get('time', '0'))}s"
        "</p>",
    ]
    for suite in root.iter("testsuite"):
        parts.append(f"<h2>{esc(suite.get('name', ''))}</h2>")
        parts.append("<table><tr><th>test</th><th>class</th><th>result</th><th>time</th></tr>")
        for case in suite.findall("testcase"):
            outcome = _case_outcome(case)
            detail = ""
            node = case.find(outcome) if outcome != "passed" else None
            if node is not None:
                text = node.get("message") or (node.text or "")
                if text.strip():
                    detail = f"<pre>{esc(text.strip())}</pre>"
            parts.append(
                "<tr>"
                f"<td>{esc(case.get('name', ''))}</td>"
                f"<td>{esc(case.get('classname', ''))}</td>"
                f"<td class=\"{outcome}\">{outcome}{detail}</td>"
                f"<td>{esc(case.get('time', ''))}</td>"
                "</tr>"
            )
        parts.append("</table>")
    parts.append("</body></html>")
    return ("\n".join(parts) + "\n").encode("utf-8")
