"""Command resolution for (operation, classification) pairs."""

from __future__ import annotations

from dataclasses import dataclass
from string import Template
from typing import Any, Mapping, Optional

from contracts.errors import ConfigurationError

from .operations import BUILTIN_OPERATIONS, OperationSpec
from .task import Classification, SubprojectUnit


@dataclass(frozen=True)
class ResolvedCommand:
    """Command chosen for an operation and where the decision came from."""

    operation: str
    classification: Classification
    template: str
    decision_source: str


class CommandResolver:
    """Resolve shell commands from overrides first, then built-in defaults.

    Overrides map an operation name either to a command string, applied to
    every classification, or to a table keyed by ``web``/``function``/
    ``unclassified``.  The resolver holds no mutable state.
    """

    def __init__(
        self,
        operations: Mapping[str, OperationSpec] | None = None,
        overrides: Mapping[str, Any] | None = None,
        *,
        environment: str = "local",
    ) -> None:
        self._operations: Mapping[str, OperationSpec] = operations if operations is not None else BUILTIN_OPERATIONS
        self._overrides: Mapping[str, Any] = overrides or {}
        self.environment = environment

    @property
    def operations(self) -> Mapping[str, OperationSpec]:
        return self._operations

    def spec(self, operation: str) -> OperationSpec:
        try:
            return self._operations[operation]
        except KeyError:
            known = ", ".join(sorted(self._operations))
            raise ConfigurationError(
                f"unknown operation '{operation}' (known: {known})", operation=operation
            ) from None

    def _override(self, operation: str, classification: Classification, overrides: Mapping[str, Any]) -> Optional[str]:
        raw = overrides.get(operation)
        if raw is None:
            return None
        if isinstance(raw, str):
            if not raw.strip():
                raise ConfigurationError("override command is empty", operation=operation)
            return raw
        if isinstance(raw, Mapping):
            value = raw.get(classification.value)
            if value is None:
                return None
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(
                    f"override for '{classification.value}' must be a non-empty string", operation=operation
                )
            return value
        raise ConfigurationError(
            f"override must be a string or a table, got {type(raw).__name__}", operation=operation
        )

    def describe(
        self,
        operation: str,
        classification: Classification,
        overrides: Mapping[str, Any] | None = None,
    ) -> ResolvedCommand:
        table = self._overrides if overrides is None else overrides
        override = self._override(operation, classification, table)
        if override is not None:
            return ResolvedCommand(operation, classification, override, "override")

        spec = self.spec(operation)
        default = spec.default_for(classification)
        if default is None:
            raise ConfigurationError(
                f"no command bound for classification '{classification.value}' and no override supplied",
                operation=operation,
            )
        return ResolvedCommand(operation, classification, default, "default")

    def resolve(
        self,
        operation: str,
        classification: Classification,
        overrides: Mapping[str, Any] | None = None,
    ) -> str:
        """Return the command template for *operation* on *classification*."""

        return self.describe(operation, classification, overrides).template

    def render(self, template: str, unit: SubprojectUnit) -> str:
        """Expand ``${environment}``, ``${unit}``, ``${path}`` and ``${classification}``.

        Unknown ``$names`` are left alone so shell variables pass through.
        """

        return Template(template).safe_substitute(
            environment=self.environment,
            unit=unit.name,
            path=unit.path,
            classification=unit.classification.value,
        )

    def resolve_for(self, unit: SubprojectUnit, operation: str) -> str:
        return self.render(self.resolve(operation, unit.classification), unit)


__all__ = ["CommandResolver", "ResolvedCommand"]
