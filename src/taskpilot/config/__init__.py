"""Configuration schema and loading for Taskpilot."""

from taskpilot.config.loader import (
    ConfigurationError,
    apply_env_overrides,
    load_config,
    load_yaml_file,
)
from taskpilot.config.merger import deep_merge, set_nested_value
from taskpilot.config.schema import Config, LoggingConfig, ProviderConfig, StorageConfig

__all__ = [
    "Config",
    "ConfigurationError",
    "LoggingConfig",
    "ProviderConfig",
    "StorageConfig",
    "apply_env_overrides",
    "deep_merge",
    "load_config",
    "load_yaml_file",
    "set_nested_value",
]
