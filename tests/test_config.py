"""
Tests for Configuration Loading and CLI Parameter Parsing.
"""

import pytest
from pydantic import BaseModel, ValidationError

from rails2js.config import RuntimeConfig, parse_cli_key_values
from rails2js.enums import ImportMode, TargetEnvironment


def test_defaults():
  cfg = RuntimeConfig()
  assert cfg.import_mode == ImportMode.EJECT
  assert cfg.target_env == TargetEnvironment.BROWSER
  assert cfg.filters is None
  assert cfg.strict_mode is False


def test_enum_values_are_normalized():
  cfg = RuntimeConfig(import_mode=" Virtual ", target_env="EDGE")
  assert cfg.import_mode == ImportMode.VIRTUAL
  assert cfg.target_env == TargetEnvironment.EDGE


def test_invalid_import_mode_raises_validation_error():
  with pytest.raises(ValidationError) as excinfo:
    RuntimeConfig(import_mode="bundled")
  assert "import_mode" in str(excinfo.value)


def test_filter_names_are_validated():
  cfg = RuntimeConfig(filters=[" Model ", "LOGGER"])
  assert cfg.filters == ["model", "logger"]

  with pytest.raises(ValidationError) as excinfo:
    RuntimeConfig(filters=["model", "ghost"])
  assert "ghost" in str(excinfo.value)


def test_load_reads_pyproject_table(tmp_path):
  (tmp_path / "pyproject.toml").write_text(
    "\n".join(
      [
        "[tool.rails2js]",
        'import_mode = "VIRTUAL"',
        'target_env = "node"',
        "strict_mode = true",
        'plugin_paths = ["plugins"]',
        "",
        "[tool.rails2js.plugin_settings]",
        "flag = 1",
      ]
    )
  )
  nested = tmp_path / "app" / "models"
  nested.mkdir(parents=True)

  cfg = RuntimeConfig.load(plugin_settings={"extra": True}, search_path=nested)

  assert cfg.import_mode == ImportMode.VIRTUAL
  assert cfg.target_env == TargetEnvironment.NODE
  assert cfg.strict_mode is True
  assert cfg.plugin_settings == {"flag": 1, "extra": True}
  assert cfg.plugin_paths == [(tmp_path / "plugins").resolve()]


def test_cli_arguments_override_pyproject(tmp_path):
  (tmp_path / "pyproject.toml").write_text('[tool.rails2js]\nimport_mode = "virtual"\nstrict_mode = true\n')
  cfg = RuntimeConfig.load(import_mode="eject", strict_mode=False, search_path=tmp_path)
  assert cfg.import_mode == ImportMode.EJECT
  assert cfg.strict_mode is False


def test_broken_pyproject_falls_back_to_defaults(tmp_path):
  (tmp_path / "pyproject.toml").write_text("[tool.rails2js\nimport_mode = ")
  cfg = RuntimeConfig.load(search_path=tmp_path)
  assert cfg.import_mode == ImportMode.EJECT


def test_cli_key_values_infer_types():
  parsed = parse_cli_key_values(["depth=2", "ratio=0.5", "on=true", "off=False", "name=blog", "broken"])
  assert parsed == {"depth": 2, "ratio": 0.5, "on": True, "off": False, "name": "blog"}
  assert parse_cli_key_values(None) == {}


def test_plugin_settings_schema():
  class ShoutSettings(BaseModel):
    level: int = 1

  cfg = RuntimeConfig(plugin_settings=parse_cli_key_values(["level=3", "ignored=x"]))
  assert cfg.parse_plugin_settings(ShoutSettings).level == 3

  bad = RuntimeConfig(plugin_settings={"level": "loud"})
  with pytest.raises(ValueError):
    bad.parse_plugin_settings(ShoutSettings)
