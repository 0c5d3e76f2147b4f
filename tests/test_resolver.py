from __future__ import annotations

import pytest

from contracts.errors import ConfigurationError
from orchestrator.classifier import build_unit
from orchestrator.operations import build_operations
from orchestrator.resolver import CommandResolver
from orchestrator.task import Classification

WEB = Classification.WEB_APP
FUNCTION = Classification.FUNCTION_UNIT


def test_default_command_without_overrides():
    resolver = CommandResolver()
    assert resolver.resolve("test", FUNCTION, {}) == "yarn test --testTimeout=10000"
    assert resolver.resolve("test", WEB, {}) == "npm run test-coverage"


def test_override_string_wins_for_every_classification():
    resolver = CommandResolver()
    assert resolver.resolve("test", FUNCTION, {"test": "custom-cmd"}) == "custom-cmd"
    assert resolver.resolve("test", WEB, {"test": "custom-cmd"}) == "custom-cmd"


def test_override_table_binds_per_classification():
    resolver = CommandResolver(overrides={"install": {"web": "npm ci"}})
    assert resolver.resolve("install", WEB) == "npm ci"
    assert resolver.resolve("install", FUNCTION) == "yarn"


def test_describe_reports_decision_source():
    resolver = CommandResolver(overrides={"lint": "eslint ."})
    assert resolver.describe("lint", WEB).decision_source == "override"
    assert resolver.describe("install", WEB).decision_source == "default"


def test_unknown_operation_is_configuration_error():
    with pytest.raises(ConfigurationError) as excinfo:
        CommandResolver().resolve("deploy", WEB)
    assert excinfo.value.operation == "deploy"


def test_missing_binding_is_configuration_error():
    resolver = CommandResolver()
    with pytest.raises(ConfigurationError):
        resolver.resolve("typecheck", WEB)
    with pytest.raises(ConfigurationError):
        resolver.resolve("install", Classification.UNCLASSIFIED)


def test_empty_override_is_rejected():
    with pytest.raises(ConfigurationError):
        CommandResolver(overrides={"test": "  "}).resolve("test", WEB)


def test_malformed_override_is_rejected():
    with pytest.raises(ConfigurationError):
        CommandResolver(overrides={"test": 42}).resolve("test", WEB)


def test_resolution_is_side_effect_free():
    overrides = {"test": "custom-cmd"}
    resolver = CommandResolver(overrides=overrides)
    first = resolver.resolve("test", FUNCTION)
    second = resolver.resolve("test", FUNCTION)
    assert first == second == "custom-cmd"
    assert overrides == {"test": "custom-cmd"}


def test_environment_is_substituted(tmp_path, make_unit):
    make_unit("react")
    unit = build_unit("react", "react", tmp_path)
    resolver = CommandResolver(environment="staging")
    assert resolver.resolve_for(unit, "run") == "npm run start-staging"


def test_shell_variables_pass_through(tmp_path, make_unit):
    make_unit("src/lambda/fn1")
    unit = build_unit("fn1", "src/lambda/fn1", tmp_path)
    resolver = CommandResolver(overrides={"test": "echo $HOME ${unit}"})
    assert resolver.resolve_for(unit, "test") == "echo $HOME fn1"


def test_configured_operation_is_resolvable():
    operations, warnings = build_operations({"e2e": {"web": "npm run e2e"}}, {})
    resolver = CommandResolver(operations)
    assert resolver.resolve("e2e", WEB) == "npm run e2e"
    assert warnings == ()
