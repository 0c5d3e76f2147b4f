from __future__ import annotations

from orchestrator.housekeeping import clean, tool_versions
from orchestrator.manifest import ManifestGenerator
from project_config import load_config


def _units(tmp_path, make_unit):
    react = make_unit("react")
    fn1 = make_unit("src/lambda/fn1")
    (react / "node_modules" / "left-pad").mkdir(parents=True)
    (react / "node_modules.out").write_text("left-pad\n", encoding="utf-8")
    (fn1 / "coverage").mkdir()
    config = load_config(tmp_path, env={})
    return config, ManifestGenerator(config).scan().units(config.layout)


def test_clean_node_modules(tmp_path, make_unit):
    config, units = _units(tmp_path, make_unit)
    removed = clean(config, units, "node-modules")
    assert sorted(path.name for path in removed) == ["node_modules", "node_modules.out"]
    assert not (tmp_path / "react" / "node_modules").exists()
    assert clean(config, units, "node-modules") == []


def test_clean_coverage_and_reports(tmp_path, make_unit):
    config, units = _units(tmp_path, make_unit)
    (tmp_path / "build").mkdir()
    assert [path.parent.name for path in clean(config, units, "coverage")] == ["fn1"]
    assert clean(config, units, "reports") == [config.reports.output_dir]
    assert not config.reports.output_dir.exists()


def test_tool_versions_tolerates_missing_binaries(tmp_path, write_config):
    write_config('[project]\ntool_versions_extra = "polyrun-missing-tool --version"\n')
    versions = dict(tool_versions(load_config(tmp_path, env={})))
    assert versions["polyrun-missing-tool"] is None
    assert "git" in versions
