"""Operation definitions: default commands and skip predicates."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Tuple

from contracts.errors import (
    SKIP_MISSING_FILE,
    SKIP_MISSING_MARKER,
    SKIP_NOT_APPLICABLE,
    SKIP_PREDICATE,
    SKIP_UNCLASSIFIED,
    ValidationIssue,
    make_warning,
)

from .task import Classification, SubprojectUnit

_LOGGER = logging.getLogger(__name__)

WEB = Classification.WEB_APP
FUNCTION = Classification.FUNCTION_UNIT
UNCLASSIFIED = Classification.UNCLASSIFIED

_CLASSIFIED: FrozenSet[Classification] = frozenset({WEB, FUNCTION})


@dataclass(frozen=True)
class OperationSpec:
    """Defaults and applicability rules for one operation.

    ``requires_marker`` skips units without the layout marker file,
    ``requires`` lists files that must all exist at the unit root and
    ``requires_any`` files of which at least one must exist.  Configured
    ``requires`` lists replace the marker requirement.
    """

    name: str
    defaults: Mapping[Classification, str] = field(default_factory=lambda: MappingProxyType({}))
    description: str = ""
    requires: Tuple[str, ...] = ()
    requires_any: Tuple[str, ...] = ()
    classifications: FrozenSet[Classification] = _CLASSIFIED
    include_unclassified: bool = False
    requires_marker: bool = True
    predicate: Optional[Callable[[SubprojectUnit], bool]] = None

    def skip_reason(self, unit: SubprojectUnit) -> Optional[str]:
        """Return why *unit* is skipped for this operation, or ``None``."""

        if unit.classification is UNCLASSIFIED:
            if not self.include_unclassified:
                return SKIP_UNCLASSIFIED
        elif unit.classification not in self.classifications:
            return SKIP_NOT_APPLICABLE
        if self.requires_marker and not unit.has_marker:
            return SKIP_MISSING_MARKER
        for name in self.requires:
            if not (unit.root / name).exists():
                return SKIP_MISSING_FILE
        if self.requires_any and not any((unit.root / name).exists() for name in self.requires_any):
            return SKIP_MISSING_FILE
        if self.predicate is not None and self.predicate(unit):
            return SKIP_PREDICATE
        return None

    def default_for(self, classification: Classification) -> Optional[str]:
        return self.defaults.get(classification)


def _defaults(web: Optional[str] = None, function: Optional[str] = None) -> Mapping[Classification, str]:
    table: Dict[Classification, str] = {}
    if web is not None:
        table[WEB] = web
    if function is not None:
        table[FUNCTION] = function
    return MappingProxyType(table)


_BUILTINS: Tuple[OperationSpec, ...] = (
    OperationSpec(
        name="install",
        description="Install dependencies",
        defaults=_defaults(web="npm install", function="yarn"),
    ),
    OperationSpec(
        name="installProduction",
        description="Package the production dependencies",
        defaults=_defaults(web="npm run build", function="yarn --production"),
    ),
    OperationSpec(
        name="test",
        description="Run the tests with coverage",
        defaults=_defaults(web="npm run test-coverage", function="yarn test --testTimeout=10000"),
    ),
    OperationSpec(
        name="lint",
        description="Lint the code",
        defaults=_defaults(web="npm run lint-ts", function="yarn run lint"),
        requires_any=(".eslintrc", ".eslintrc.js"),
    ),
    OperationSpec(
        name="typecheck",
        description="Run tsc on function units that have a tsconfig.json",
        defaults=_defaults(function="yarn run tsc"),
        classifications=frozenset({FUNCTION}),
        requires=("tsconfig.json",),
        requires_marker=False,
    ),
    OperationSpec(
        name="run",
        description="Start the web application for the selected environment",
        defaults=_defaults(web="npm run start-${environment}"),
        classifications=frozenset({WEB}),
        requires_marker=False,
    ),
    OperationSpec(
        name="buildStyles",
        description="Build the web application stylesheets",
        defaults=_defaults(web="npm run build-css"),
        classifications=frozenset({WEB}),
        requires_marker=False,
    ),
    OperationSpec(
        name="listModules",
        description="Record the installed node modules into node_modules.out",
        defaults=_defaults(web="ls -w1 node_modules > node_modules.out", function="ls -w1 node_modules > node_modules.out"),
    ),
)

BUILTIN_OPERATIONS: Mapping[str, OperationSpec] = MappingProxyType({spec.name: spec for spec in _BUILTINS})

_CLASSIFICATION_KEYS = {item.value: item for item in Classification}


def _apply_definition(base: OperationSpec, definition: Mapping[str, Any]) -> OperationSpec:
    defaults = dict(base.defaults)
    for key, classification in _CLASSIFICATION_KEYS.items():
        command = definition.get(key)
        if command:
            defaults[classification] = str(command)

    changes: Dict[str, Any] = {"defaults": MappingProxyType(defaults)}
    if "description" in definition:
        changes["description"] = str(definition["description"])
    if "requires" in definition:
        changes["requires"] = tuple(str(item) for item in definition["requires"])
        changes["requires_marker"] = False
    if "requires_any" in definition:
        changes["requires_any"] = tuple(str(item) for item in definition["requires_any"])
    if "classifications" in definition:
        selected = frozenset(_CLASSIFICATION_KEYS[str(item)] for item in definition["classifications"])
        changes["classifications"] = selected - {UNCLASSIFIED}
        if UNCLASSIFIED in selected:
            changes["include_unclassified"] = True
    if "include_unclassified" in definition:
        changes["include_unclassified"] = bool(definition["include_unclassified"])
    return replace(base, **changes)


def build_operations(
    definitions: Mapping[str, Mapping[str, Any]] | None = None,
    commands: Mapping[str, Any] | None = None,
) -> Tuple[Mapping[str, OperationSpec], Tuple[ValidationIssue, ...]]:
    """Overlay configured operation tables onto the built-ins.

    Returns the operation registry and warnings for ``[commands]`` keys that
    name no known operation; those overrides are ignored.
    """

    registry: Dict[str, OperationSpec] = dict(BUILTIN_OPERATIONS)
    for name, definition in (definitions or {}).items():
        base = registry.get(name) or OperationSpec(name=name)
        registry[name] = _apply_definition(base, definition)

    warnings = []
    for key in sorted(commands or {}):
        if key not in registry:
            issue = make_warning(
                "commands.unknown-operation",
                f"override for unknown operation '{key}' is ignored",
                f"$.commands.{key}",
            )
            _LOGGER.warning("%s: %s", issue.path, issue.msg)
            warnings.append(issue)
    return MappingProxyType(registry), tuple(warnings)


__all__ = ["BUILTIN_OPERATIONS", "OperationSpec", "build_operations"]
