"""
Configuration loader for Taskpilot.

Loads and merges configuration from multiple sources:
1. Default values
2. Global config (~/.taskpilot/config.yaml)
3. Project config (./.taskpilot/project.yaml)
4. Environment variables (TASKPILOT_*)
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from taskpilot.config.merger import deep_merge, set_nested_value
from taskpilot.config.schema import Config
from taskpilot.storage.paths import find_project_config, get_global_config_path

ENV_PREFIX = "TASKPILOT_"

# Handled elsewhere, never treated as config keys
RESERVED_ENV = {"TASKPILOT_HOME"}


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed configuration dictionary.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {path}")
    return content


def apply_env_overrides(
    config: dict[str, Any],
    environ: dict[str, str] | None = None,
) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Environment variables follow the pattern:
    TASKPILOT_<SECTION>__<KEY>=<value>
    TASKPILOT_<KEY>=<value> (top-level keys)

    A double underscore separates nesting levels so keys may contain single
    underscores (TASKPILOT_TASK__ASK_TIMEOUT sets task.ask_timeout).

    Args:
        config: Configuration dictionary to modify.
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        Configuration with environment overrides applied.
    """
    environ = os.environ if environ is None else environ

    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX) or key in RESERVED_ENV:
            continue

        config_key = ".".join(part.lower() for part in key[len(ENV_PREFIX) :].split("__"))
        if not config_key:
            continue

        config = set_nested_value(config, config_key, _parse_env_value(value))

    return config


def _parse_env_value(value: str) -> Any:
    """
    Parse an environment variable value to the appropriate type.

    Args:
        value: String value from environment.

    Returns:
        Parsed value (int, float, bool, list, or string).
    """
    if re.match(r"^-?\d+$", value):
        return int(value)

    if re.match(r"^-?\d+\.\d+$", value):
        return float(value)

    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    # List (comma-separated)
    if "," in value:
        return [item.strip() for item in value.split(",") if item.strip()]

    return value


def load_config(
    project_path: Path | None = None,
    skip_project: bool = False,
    skip_env: bool = False,
) -> Config:
    """
    Load and merge configuration from all sources.

    Loading order (later overrides earlier):
    1. Default values from Config model
    2. Global config (~/.taskpilot/config.yaml)
    3. Project config (./.taskpilot/project.yaml) if found
    4. Environment variables (TASKPILOT_*)

    Args:
        project_path: Starting path to search for project config. Defaults to cwd.
        skip_project: Skip loading project configuration.
        skip_env: Skip environment variable overrides.

    Returns:
        Merged and validated Config object.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    config_dict = Config().model_dump(mode="json")

    global_path = get_global_config_path()
    if global_path.exists():
        config_dict = deep_merge(config_dict, load_yaml_file(global_path))

    if not skip_project:
        project_config_path = find_project_config(project_path)
        if project_config_path and project_config_path.exists():
            config_dict = deep_merge(config_dict, load_yaml_file(project_config_path))

    if not skip_env:
        config_dict = apply_env_overrides(config_dict)

    try:
        return Config.model_validate(config_dict)
    except Exception as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e
