from __future__ import annotations

from contracts.errors import (
    SKIP_MISSING_FILE,
    SKIP_MISSING_MARKER,
    SKIP_NOT_APPLICABLE,
    SKIP_PREDICATE,
    SKIP_UNCLASSIFIED,
)
from orchestrator.classifier import build_unit
from orchestrator.operations import BUILTIN_OPERATIONS, OperationSpec, build_operations
from orchestrator.task import Classification


def test_unit_without_marker_is_skipped_for_install(tmp_path, make_unit):
    make_unit("src/lambda/fn2", marker=False)
    unit = build_unit("fn2", "src/lambda/fn2", tmp_path)
    assert BUILTIN_OPERATIONS["install"].skip_reason(unit) == SKIP_MISSING_MARKER


def test_unclassified_units_are_skipped(tmp_path, make_unit):
    make_unit("tools/scripts")
    unit = build_unit("scripts", "tools/scripts", tmp_path)
    for spec in BUILTIN_OPERATIONS.values():
        assert spec.skip_reason(unit) == SKIP_UNCLASSIFIED


def test_lint_needs_an_eslint_config(tmp_path, make_unit):
    make_unit("src/lambda/plain")
    make_unit("src/lambda/linted", files=[".eslintrc.js"])
    lint = BUILTIN_OPERATIONS["lint"]
    assert lint.skip_reason(build_unit("plain", "src/lambda/plain", tmp_path)) == SKIP_MISSING_FILE
    assert lint.skip_reason(build_unit("linted", "src/lambda/linted", tmp_path)) is None


def test_typecheck_only_applies_to_functions_with_tsconfig(tmp_path, make_unit):
    make_unit("react", files=["tsconfig.json"])
    make_unit("src/lambda/ts", marker=False, files=["tsconfig.json"])
    make_unit("src/lambda/js")
    typecheck = BUILTIN_OPERATIONS["typecheck"]
    assert typecheck.skip_reason(build_unit("react", "react", tmp_path)) == SKIP_NOT_APPLICABLE
    assert typecheck.skip_reason(build_unit("ts", "src/lambda/ts", tmp_path)) is None
    assert typecheck.skip_reason(build_unit("js", "src/lambda/js", tmp_path)) == SKIP_MISSING_FILE


def test_predicate_can_skip(tmp_path, make_unit):
    make_unit("react")
    spec = OperationSpec(name="custom", predicate=lambda unit: unit.name == "react")
    assert spec.skip_reason(build_unit("react", "react", tmp_path)) == SKIP_PREDICATE


def test_configured_requires_replaces_marker(tmp_path, make_unit):
    make_unit("react", marker=False, files=["cypress.json"])
    operations, _ = build_operations({"e2e": {"web": "npm run e2e", "requires": ["cypress.json"]}})
    assert operations["e2e"].skip_reason(build_unit("react", "react", tmp_path)) is None


def test_configured_operation_can_extend_a_builtin():
    operations, _ = build_operations({"install": {"unclassified": "make deps"}})
    install = operations["install"]
    assert install.default_for(Classification.WEB_APP) == "npm install"
    assert install.default_for(Classification.UNCLASSIFIED) == "make deps"


def test_unknown_command_keys_produce_warnings():
    _, warnings = build_operations({}, {"deploy": "make deploy", "test": "yarn test"})
    assert [issue.code for issue in warnings] == ["commands.unknown-operation"]
    assert warnings[0].path == "$.commands.deploy"
