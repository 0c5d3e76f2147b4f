from __future__ import annotations

import pytest

from contracts.errors import ConfigurationError
from project_config import load_config

_TOML = """
[project]
environment = "dev"

[run]
concurrency = 2
timeout = 30
"""


def test_config_precedence_defaults(tmp_path) -> None:
    config = load_config(tmp_path, env={})
    assert config.environment == "local"
    assert config.concurrency == 1
    assert config.timeout is None
    assert config.manifest_path == tmp_path.resolve() / "units.toml"
    assert config.layout.web_root == "react"
    assert config.layout.function_root == "src/lambda"
    assert config.reports.output_dir == tmp_path.resolve() / "build"
    assert config.config_path is None


def test_toml_overrides_defaults(tmp_path, write_config) -> None:
    write_config(_TOML)
    config = load_config(tmp_path, env={})
    assert config.environment == "dev"
    assert config.concurrency == 2
    assert config.timeout == 30.0


def test_environment_overrides_toml(tmp_path, write_config) -> None:
    write_config(_TOML)
    config = load_config(tmp_path, env={"POLYRUN_ENVIRONMENT": "qa", "POLYRUN_CONCURRENCY": "6"})
    assert config.environment == "qa"
    assert config.concurrency == 6


def test_react_app_environment_is_honoured(tmp_path) -> None:
    config = load_config(tmp_path, env={"REACT_APP_ENVIRONMENT": "staging"})
    assert config.environment == "staging"


def test_cli_overrides_environment(tmp_path, write_config) -> None:
    write_config(_TOML)
    env = {
        "POLYRUN_ENVIRONMENT": "qa",
        "POLYRUN_TIMEOUT": "10",
        "CLI_POLYRUN_ENVIRONMENT": "prod",
        "CLI_POLYRUN_TIMEOUT": "5",
    }
    config = load_config(tmp_path, env=env)
    assert config.environment == "prod"
    assert config.timeout == 5.0


def test_invalid_environment_value_is_configuration_error(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        load_config(tmp_path, env={"POLYRUN_CONCURRENCY": "many"})


def test_schema_violation_is_configuration_error(tmp_path, write_config) -> None:
    write_config("[run]\nconcurrency = \"four\"\n")
    with pytest.raises(ConfigurationError) as excinfo:
        load_config(tmp_path, env={})
    assert "$.run.concurrency" in str(excinfo.value)


def test_malformed_override_table_is_configuration_error(tmp_path, write_config) -> None:
    write_config("[commands]\ninstall = { server = \"make\" }\n")
    with pytest.raises(ConfigurationError):
        load_config(tmp_path, env={})


def test_missing_explicit_config_file(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        load_config(tmp_path, config_path="missing.toml", env={})


def test_config_is_immutable(tmp_path, write_config) -> None:
    write_config("[commands]\ntest = \"yarn test\"\n")
    config = load_config(tmp_path, env={})
    with pytest.raises(TypeError):
        config.commands["test"] = "other"  # type: ignore[index]
