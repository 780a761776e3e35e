"""Configuration models and loaders for the integrity tool."""

from .loader import ConfigError, DEFAULT_CONFIG_PATH, dump_example_config, load_config
from .models import HashingConfig, IntegrityConfig, LoggingConfig, RuntimeConfig

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "HashingConfig",
    "IntegrityConfig",
    "LoggingConfig",
    "RuntimeConfig",
    "dump_example_config",
    "load_config",
]
