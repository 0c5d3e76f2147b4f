"""Schemas, validation and error taxonomy for polyrun."""

from __future__ import annotations

from .errors import (
    ArtifactIOError,
    ConfigurationError,
    ManifestIOError,
    PolyrunError,
    ValidationIssue,
    ValidationReport,
    WorkspaceIOError,
)
from .validator import assert_valid, validate

__all__ = [
    "ArtifactIOError",
    "ConfigurationError",
    "ManifestIOError",
    "PolyrunError",
    "ValidationIssue",
    "ValidationReport",
    "WorkspaceIOError",
    "assert_valid",
    "validate",
]
