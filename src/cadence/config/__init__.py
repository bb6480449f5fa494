"""Configuration module."""

from cadence.config.loader import get_default_config, load_config
from cadence.config.models import (
    CadenceConfig,
    ConfigError,
    LoggingConfig,
    SchedulerSettings,
)
from cadence.config.paths import get_cadence_home, get_config_path, get_logs_path

__all__ = [
    "CadenceConfig",
    "ConfigError",
    "LoggingConfig",
    "SchedulerSettings",
    "get_cadence_home",
    "get_config_path",
    "get_default_config",
    "get_logs_path",
    "load_config",
]
