"""
Expander Configuration Store.

Settings are read from the ``[tool.tested_trait]`` table of the nearest
``pyproject.toml`` and may be overridden by explicit arguments (usually CLI
flags).
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from tested_trait.markers import DEFAULT_ALIASES

if sys.version_info >= (3, 11):
  import tomllib
else:
  try:
    import tomli as tomllib
  except ImportError:
    tomllib = None  # type: ignore

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
  """A configuration file exists but cannot be read."""


class ExpanderConfig(BaseModel):
  """
  Configuration for both expansions and the tooling around them.
  """

  test_prefix: str = Field(
    "test_",
    description="Name prefix that makes a synthesized function discoverable by pytest.",
  )
  module_aliases: List[str] = Field(
    default_factory=lambda: list(DEFAULT_ALIASES),
    description="Module names markers may be qualified with (e.g. 'tt' for '@tt.test').",
  )
  log_level: str = Field("WARNING", description="Level of the 'tested_trait' logger.")

  @field_validator("test_prefix")
  @classmethod
  def validate_prefix(cls, v: str) -> str:
    """
    Ensures the prefix still yields a name pytest collects.

    Args:
        v (str): The configured prefix.

    Returns:
        str: The prefix, unchanged.

    Raises:
        ValueError: If the prefix does not start with 'test' or cannot start an identifier.
    """
    if not v.startswith("test") or not f"{v}x".isidentifier():
      raise ValueError(f"test_prefix must be an identifier prefix starting with 'test', got '{v}'")
    return v

  @field_validator("module_aliases")
  @classmethod
  def validate_aliases(cls, v: List[str]) -> List[str]:
    for alias in v:
      if not all(part.isidentifier() for part in alias.split(".")):
        raise ValueError(f"Invalid module alias: '{alias}'")
    return v

  @field_validator("log_level")
  @classmethod
  def validate_log_level(cls, v: str) -> str:
    level = v.upper().strip()
    if level not in _LOG_LEVELS:
      raise ValueError(f"Unknown log level: '{v}'. Expected one of {list(_LOG_LEVELS)}")
    return level

  @classmethod
  def load(
    cls,
    test_prefix: Optional[str] = None,
    module_aliases: Optional[List[str]] = None,
    log_level: Optional[str] = None,
    search_path: Optional[Path] = None,
  ) -> "ExpanderConfig":
    """
    Loads configuration from pyproject.toml and applies explicit overrides.

    Args:
        test_prefix (Optional[str]): Override for the discovery prefix.
        module_aliases (Optional[List[str]]): Override for marker module aliases.
        log_level (Optional[str]): Override for the logger level.
        search_path (Optional[Path]): Directory to start searching for TOML config.

    Returns:
        ExpanderConfig: The resolved configuration.

    Raises:
        pydantic.ValidationError: If a value (from TOML or override) is invalid.
        ConfigError: If the pyproject.toml found is not valid TOML.
    """
    toml_config, _ = _load_toml_settings(search_path or Path.cwd())

    values: Dict[str, Any] = dict(toml_config)
    if test_prefix is not None:
      values["test_prefix"] = test_prefix
    if module_aliases is not None:
      values["module_aliases"] = module_aliases
    if log_level is not None:
      values["log_level"] = log_level

    return cls.model_validate(values)


def _load_toml_settings(start_path: Path) -> Tuple[Dict[str, Any], Optional[Path]]:
  """
  Searches the start directory and its parents for 'pyproject.toml'.

  Args:
      start_path (Path): Directory (or file) to start search from.

  Returns:
      Tuple[Dict, Optional[Path]]: The ``[tool.tested_trait]`` table and the
      directory it was found in.

  Raises:
      ConfigError: If the pyproject.toml found is not valid TOML.
  """
  if not tomllib:
    return {}, None

  current = start_path.resolve()
  if current.is_file():
    current = current.parent

  for parent in [current, *current.parents]:
    toml_path = parent / "pyproject.toml"
    if toml_path.is_file():
      try:
        with open(toml_path, "rb") as f:
          data = tomllib.load(f)
      except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed {toml_path}: {e}") from e
      return data.get("tool", {}).get("tested_trait", {}), parent

  return {}, None
