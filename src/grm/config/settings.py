"""
Application settings for grm.

This module handles loading and validating the settings of the grm
command-line tool itself (where the configuration lives, how verbose
logging is, where exports are written). Settings are read from a YAML file
with support for environment variable overrides.

Settings are loaded from ~/.grm.yaml by default, with the path overridable
via the GRM_SETTINGS environment variable. The remote definitions and
credentials are not settings; they live in the configuration store under
<home_dir>/github-release-monitor/config.
"""

import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

CONFIG_DIR_NAME = "github-release-monitor"
CONFIG_FILE_NAME = "config"
EXPORT_SUFFIX = ".config"

DEFAULT_SETTINGS_FILE = Path.home() / ".grm.yaml"


@dataclass
class Settings:
    """
    Settings of the grm command-line tool.

    Attributes:
        home_dir: Base directory; the configuration is stored in
                  <home_dir>/github-release-monitor/config.
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        export_dir: Directory where exported remote definitions are written.
    """

    home_dir: str = str(Path.home())
    log_level: str = "WARNING"
    export_dir: str = "."

    @property
    def config_dir(self) -> Path:
        return Path(self.home_dir) / CONFIG_DIR_NAME

    @property
    def config_path(self) -> Path:
        return self.config_dir / CONFIG_FILE_NAME


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded or stored."""

    pass


def get_settings_path() -> Path:
    """
    Get the settings file path.

    Returns the path from GRM_SETTINGS environment variable if set,
    otherwise returns the default path (~/.grm.yaml).
    """
    env_path = os.environ.get("GRM_SETTINGS")
    if env_path:
        return Path(env_path)
    return DEFAULT_SETTINGS_FILE


def load_settings(settings_path: Path | None = None) -> Settings:
    """
    Load settings from YAML file.

    A missing settings file is not an error; defaults are used. Environment
    variable overrides are applied afterwards and the result is validated.

    Args:
        settings_path: Optional path to the settings file. If not provided,
                       uses GRM_SETTINGS environment variable or default path.

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If the settings file cannot be read or
                            contains invalid settings.
    """
    if settings_path is None:
        settings_path = get_settings_path()

    settings = Settings()

    if settings_path.exists():
        try:
            with open(settings_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in settings file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read settings file: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Settings file must contain a mapping, got {type(data).__name__}"
            )
        settings = _apply_settings_data(settings, data)

    settings = _apply_environment_overrides(settings)

    _validate_settings(settings)

    return settings


def _apply_settings_data(settings: Settings, data: dict[str, Any]) -> Settings:
    """Apply settings data from parsed YAML."""
    grm_data = data.get("grm") or {}

    if "home_dir" in grm_data:
        settings.home_dir = str(Path(str(grm_data["home_dir"])).expanduser())
    if "log_level" in grm_data:
        settings.log_level = str(grm_data["log_level"]).upper()
    if "export_dir" in grm_data:
        settings.export_dir = str(Path(str(grm_data["export_dir"])).expanduser())

    return settings


def _apply_environment_overrides(settings: Settings) -> Settings:
    """Apply environment variable overrides to settings."""
    env_map: dict[str, tuple[str, Callable[[str], Any]]] = {
        "GRM_HOME": ("home_dir", lambda x: str(Path(x).expanduser())),
        "GRM_LOG_LEVEL": ("log_level", lambda x: x.upper()),
        "GRM_EXPORT_DIR": ("export_dir", lambda x: str(Path(x).expanduser())),
    }

    for env_var, (attr, converter) in env_map.items():
        value = os.environ.get(env_var)
        if value:
            setattr(settings, attr, converter(value))

    return settings


def _validate_settings(settings: Settings) -> None:
    """
    Validate settings.

    Raises:
        ConfigurationError: If settings are invalid.
    """
    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if settings.log_level not in valid_log_levels:
        raise ConfigurationError(
            f"Invalid log_level: {settings.log_level}. "
            f"Must be one of: {', '.join(sorted(valid_log_levels))}"
        )

    if not settings.home_dir:
        raise ConfigurationError("home_dir must not be empty")
