"""
Runtime Configuration Store.

Holds the opaque flags the filters consult (import mode, target environment)
plus pipeline selection and plugin settings. Values come from the
``[tool.rails2js]`` table of the nearest ``pyproject.toml`` and are overridden
by CLI arguments.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar, Tuple
from pydantic import BaseModel, Field, ValidationError, field_validator

from rails2js.enums import ImportMode, TargetEnvironment
from rails2js.utils.console import log_warning

if sys.version_info >= (3, 11):
  import tomllib
else:
  import tomli as tomllib

T = TypeVar("T", bound=BaseModel)

TOOL_SECTION = "rails2js"


class RuntimeConfig(BaseModel):
  """
  Global configuration container for the rewrite engine.
  """

  import_mode: ImportMode = Field(ImportMode.EJECT, description="Generated import style ('eject' or 'virtual').")
  target_env: TargetEnvironment = Field(
    TargetEnvironment.BROWSER, description="Runtime targeted by broadcast lowering."
  )
  filters: Optional[List[str]] = Field(None, description="Ordered filter names to run. None enables all filters.")
  strict_mode: bool = Field(False, description="If True, filter exceptions abort the run instead of being recorded.")
  plugin_settings: Dict[str, Any] = Field(default_factory=dict, description="Configuration passed to filters.")
  plugin_paths: List[Path] = Field(default_factory=list, description="External directories to scan for filters.")

  @field_validator("import_mode", "target_env", mode="before")
  @classmethod
  def normalize_enum(cls, v: Any) -> Any:
    """
    Accepts enum values case-insensitively.

    Args:
        v: Raw value from TOML or CLI.

    Returns:
        The lower-cased string (or the value unchanged if not a string).
    """
    if isinstance(v, str):
      return v.lower().strip()
    return v

  @field_validator("filters")
  @classmethod
  def validate_filters(cls, v: Optional[List[str]]) -> Optional[List[str]]:
    """
    Ensures every named filter is registered.

    Raises:
        ValueError: If a filter name is unknown.
    """
    if v is None:
      return v
    from rails2js.core.hooks import available_filters

    known = available_filters()
    cleaned = [name.lower().strip() for name in v]
    unknown = [name for name in cleaned if name not in known]
    if known and unknown:
      raise ValueError(f"Unknown filter(s): {unknown}. Available filters: {known}")
    return cleaned

  def parse_plugin_settings(self, schema: Type[T]) -> T:
    """
    Validates the raw plugin settings dictionary against a specific Pydantic model.

    Args:
        schema (Type[T]): The Pydantic model class defining expected settings.

    Returns:
        T: An instance of the schema model populated with runtime values.
    """
    try:
      return schema.model_validate(self.plugin_settings)
    except ValidationError as e:
      raise ValueError(f"Plugin configuration validation failed: {e}")

  @classmethod
  def load(
    cls,
    import_mode: Optional[str] = None,
    target_env: Optional[str] = None,
    filters: Optional[List[str]] = None,
    strict_mode: Optional[bool] = None,
    plugin_settings: Optional[Dict[str, Any]] = None,
    search_path: Optional[Path] = None,
  ) -> "RuntimeConfig":
    """
    Loads configuration from pyproject.toml and overrides with CLI arguments.

    Args:
        import_mode (Optional[str]): Override for the import mode.
        target_env (Optional[str]): Override for the target environment.
        filters (Optional[List[str]]): Override for the enabled filter list.
        strict_mode (Optional[bool]): Override for strict mode setting.
        plugin_settings (Optional[Dict]): Additional CLI plugin settings.
        search_path (Optional[Path]): Directory to start searching for TOML config.

    Returns:
        RuntimeConfig: The fully resolved configuration object.
    """
    start_dir = search_path or Path.cwd()
    toml_config, toml_dir = _load_toml_settings(start_dir)

    # 1. Flags consumed by filters
    final_mode = import_mode or toml_config.get("import_mode", ImportMode.EJECT.value)
    final_env = target_env or toml_config.get("target_env", TargetEnvironment.BROWSER.value)

    # 2. Pipeline selection
    final_filters = filters if filters is not None else toml_config.get("filters")

    # 3. Strict Mode
    if strict_mode is not None:
      final_strict = strict_mode
    else:
      final_strict = toml_config.get("strict_mode", False)

    # 4. Plugin Settings
    toml_plugins = toml_config.get("plugin_settings", {})
    cli_plugins = plugin_settings or {}
    final_plugins = {**toml_plugins, **cli_plugins}

    # 5. External filter directories, relative to the TOML file
    raw_paths = toml_config.get("plugin_paths", [])
    if toml_dir:
      final_plugin_paths = [(toml_dir / Path(p)).resolve() for p in raw_paths]
    else:
      final_plugin_paths = [Path(p).resolve() for p in raw_paths]

    return cls(
      import_mode=final_mode,
      target_env=final_env,
      filters=final_filters,
      strict_mode=final_strict,
      plugin_settings=final_plugins,
      plugin_paths=final_plugin_paths,
    )


def _load_toml_settings(start_path: Path) -> Tuple[Dict[str, Any], Optional[Path]]:
  """
  Recursively searches parents for 'pyproject.toml' and extracts config.

  Args:
      start_path (Path): Directory to start search from.

  Returns:
      Tuple[Dict, Optional[Path]]: The config dict and the directory definition was found in.
  """
  current = start_path.resolve()

  for parent in [current, *current.parents]:
    toml_path = parent / "pyproject.toml"
    if toml_path.exists() and toml_path.is_file():
      try:
        with open(toml_path, "rb") as f:
          data = tomllib.load(f)
      except (OSError, tomllib.TOMLDecodeError):
        return {}, None

      tool_section = data.get("tool", {})
      return tool_section.get(TOOL_SECTION, {}), parent

  return {}, None


def parse_cli_key_values(items: Optional[List[str]]) -> Dict[str, Any]:
  """
  Parses a list of 'key=value' strings into a dictionary.

  Types are inferred (int, float, bool, or string).

  Args:
      items (Optional[List[str]]): List of raw CLI strings directly from argparse.

  Returns:
      Dict[str, Any]: Parsed dictionary.
  """
  if not items:
    return {}

  config = {}
  for item in items:
    if "=" not in item:
      log_warning(f"Ignoring invalid config format: '{item}'. Expected 'key=value'.")
      continue

    key, val_str = item.split("=", 1)
    key = key.strip()
    val_str = val_str.strip()

    final_val: Any = val_str

    if val_str.lower() == "true":
      final_val = True
    elif val_str.lower() == "false":
      final_val = False
    else:
      try:
        if "." in val_str or "e" in val_str:
          final_val = float(val_str)
        else:
          final_val = int(val_str)
      except ValueError:
        pass

    config[key] = final_val

  return config
