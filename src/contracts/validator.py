"""Public facade for document validation."""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping

import jsonschema

from . import loader
from .errors import ConfigurationError, ValidationIssue, ValidationReport, make_error


def _jsonschema_path(error: jsonschema.ValidationError) -> str:
    path = list(error.absolute_path)
    if not path:
        return "$"
    components: List[str] = ["$"]
    for part in path:
        if isinstance(part, int):
            components.append(f"[{part}]")
        else:
            components.append(f".{part}")
    return "".join(components)


def _schema_issues(payload: Mapping[str, Any], expect_type: str) -> Iterable[ValidationIssue]:
    validator = loader.compile_validator(expect_type)
    errors = sorted(validator.iter_errors(payload), key=lambda err: (list(err.absolute_path), err.message))
    for error in errors:
        code = f"schema.{error.validator}"
        yield make_error(code, error.message, _jsonschema_path(error))


def validate(
    payload: Mapping[str, Any],
    *,
    expect_type: str,
    extra: Iterable[ValidationIssue] = (),
) -> ValidationReport:
    """Validate *payload* against the schema registered for *expect_type*.

    ``extra`` carries findings from semantic checks done by the caller; they
    are sorted into errors and warnings alongside the schema findings.
    """

    errors: List[ValidationIssue] = list(_schema_issues(payload, expect_type))
    warnings: List[ValidationIssue] = []
    for issue in extra:
        if issue.severity == "WARN":
            warnings.append(issue)
        else:
            errors.append(issue)
    return ValidationReport(ok=not errors, errors=errors, warnings=warnings)


def assert_valid(
    payload: Mapping[str, Any],
    *,
    expect_type: str,
    source: str | None = None,
    extra: Iterable[ValidationIssue] = (),
) -> ValidationReport:
    """Validate and raise :class:`ConfigurationError` on any error finding."""

    report = validate(payload, expect_type=expect_type, extra=extra)
    if not report.ok:
        raise ConfigurationError(f"{expect_type} document is invalid", path=source, report=report)
    return report


__all__ = ["assert_valid", "validate"]
