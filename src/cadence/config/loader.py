"""Configuration loading from TOML files and environment variables."""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from cadence.config.models import CadenceConfig, ConfigError
from cadence.config.paths import get_config_path

# Environment variable -> scheduler setting
ENV_OVERRIDES = {
    "CADENCE_AUTO_START": "auto_start",
    "CADENCE_TICK_INTERVAL": "tick_interval",
    "CADENCE_TIME_BIAS": "time_bias",
    "CADENCE_THROW_ON_UNKNOWN": "throw_on_unknown",
    "CADENCE_TIMEZONE": "timezone",
}


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("cadence.toml"),  # Current directory
        get_config_path(),  # ~/.cadence/config.toml (or CADENCE_HOME)
        Path("/etc/cadence/config.toml"),  # System-wide
    ]


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Overlay CADENCE_* environment variables onto the scheduler section."""
    section = config.setdefault("scheduler", {})
    if not isinstance(section, dict):
        raise ConfigError("[scheduler] must be a table")
    for env_var, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value is not None and value != "":
            section[key] = value
    return config


def _validate(raw_config: dict[str, Any], source: str) -> CadenceConfig:
    try:
        return CadenceConfig.model_validate(raw_config)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {source}: {e}") from e


def load_config(path: Path | None = None) -> CadenceConfig:
    """Load configuration from TOML file.

    Args:
        path: Explicit path to config file. If None, searches default locations.

    Returns:
        Validated CadenceConfig instance.

    Raises:
        FileNotFoundError: If no config file is found.
        ConfigError: If config file is invalid.
    """
    config_path: Path | None = None

    default_paths = _get_default_config_paths()

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for default_path in default_paths:
            expanded = default_path.expanduser()
            if expanded.exists():
                config_path = expanded
                break

    if config_path is None:
        raise FileNotFoundError(
            f"No config file found. Searched: {', '.join(str(p) for p in default_paths)}"
        )

    try:
        with config_path.open("rb") as f:
            raw_config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    raw_config = _apply_env_overrides(raw_config)

    return _validate(raw_config, str(config_path))


def get_default_config() -> CadenceConfig:
    """Get a default configuration with environment overrides applied."""
    return _validate(_apply_env_overrides({}), "environment")
