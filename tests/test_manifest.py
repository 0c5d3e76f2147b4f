from __future__ import annotations

import pytest

from contracts.errors import ConfigurationError, ManifestIOError
from orchestrator.manifest import ManifestGenerator, load_manifest, regenerate
from orchestrator.task import Classification
from project_config import load_config


def test_regenerate_lists_web_first_then_sorted_functions(tmp_path, make_unit):
    make_unit("react")
    make_unit("src/lambda/zeta")
    make_unit("src/lambda/alpha")
    make_unit("src/lambda/nomarker", marker=False)

    manifest = regenerate(tmp_path, load_config(tmp_path, env={}))

    assert manifest.names == ["react", "alpha", "zeta"]
    assert [entry.path for entry in manifest.entries] == ["react", "src/lambda/alpha", "src/lambda/zeta"]


def test_no_web_directory(tmp_path, make_unit):
    make_unit("src/lambda/b")
    make_unit("src/lambda/a")

    manifest = regenerate(tmp_path, load_config(tmp_path, env={}))

    assert manifest.names == ["a", "b"]


def test_regeneration_is_byte_identical(tmp_path, make_unit):
    make_unit("react")
    make_unit("src/lambda/fn1")
    config = load_config(tmp_path, env={})

    ManifestGenerator(config).regenerate()
    first = config.manifest_path.read_bytes()
    ManifestGenerator(config).regenerate()

    assert config.manifest_path.read_bytes() == first
    assert list(tmp_path.glob(".units.toml.*")) == []


def test_round_trip_through_load(tmp_path, make_unit, write_config):
    write_config('[project]\nname = "multiproject"\nrepositories = ["https://example.test/npm/"]\n')
    make_unit("react")
    make_unit("src/lambda/fn1")
    config = load_config(tmp_path, env={})
    written = ManifestGenerator(config).regenerate()

    loaded = load_manifest(config.manifest_path)

    assert loaded.root_project == "multiproject"
    assert loaded.repositories == ("https://example.test/npm/",)
    assert loaded.entries == written.entries
    units = loaded.units(config.layout)
    assert [unit.classification for unit in units] == [Classification.WEB_APP, Classification.FUNCTION_UNIT]
    assert all(unit.has_marker for unit in units)


def test_is_stale_detects_new_units(tmp_path, make_unit):
    make_unit("src/lambda/fn1")
    config = load_config(tmp_path, env={})
    generator = ManifestGenerator(config)

    assert generator.is_stale() is True
    generator.regenerate()
    assert generator.is_stale() is False

    make_unit("src/lambda/fn2")
    assert generator.is_stale() is True


def test_missing_manifest_is_io_error(tmp_path):
    with pytest.raises(ManifestIOError):
        load_manifest(tmp_path / "units.toml")


def test_malformed_manifest_is_io_error(tmp_path):
    path = tmp_path / "units.toml"
    path.write_text("root_project = [\n", encoding="utf-8")
    with pytest.raises(ManifestIOError):
        load_manifest(path)


def test_duplicate_unit_names_are_rejected(tmp_path):
    path = tmp_path / "units.toml"
    path.write_text(
        'root_project = "x"\n'
        '[[units]]\nname = "fn"\npath = "src/lambda/fn"\n'
        '[[units]]\nname = "fn"\npath = "other/fn"\n',
        encoding="utf-8",
    )
    with pytest.raises(ConfigurationError):
        load_manifest(path)


def test_schema_violation_is_configuration_error(tmp_path):
    path = tmp_path / "units.toml"
    path.write_text('root_project = "x"\n[[units]]\nname = "fn"\n', encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_manifest(path)


def test_names_with_quotes_survive_rendering(tmp_path, make_unit, write_config):
    write_config('[project]\nname = "odd \\"name\\""\n')
    make_unit("react")
    config = load_config(tmp_path, env={})
    ManifestGenerator(config).regenerate()

    assert load_manifest(config.manifest_path).root_project == 'odd "name"'
