"""Configuration models using Pydantic."""

from datetime import timedelta
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cadence.timing.duration import parse_duration


class ConfigError(Exception):
    """Configuration error."""

    pass


def _signed_duration_seconds(value: str) -> float | None:
    """Parse "1h", "-30m", "+2s" into seconds."""
    text = value.strip()
    sign = 1
    if text[:1] in ("-", "+"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    seconds = parse_duration(text, "s")
    return None if seconds is None else sign * seconds


class SchedulerSettings(BaseModel):
    """Settings shared by every task attached to a scheduler context.

    Durations may be given as numbers (seconds) or as duration strings
    such as "500ms", "1h" or "-30m".
    """

    model_config = ConfigDict(validate_assignment=True)

    auto_start: bool = True
    tick_interval: float = Field(default=1.0, gt=0)  # seconds
    time_bias: timedelta = timedelta(0)
    throw_on_unknown: bool = True
    # IANA timezone for the default task clocks; None = system local time
    timezone: str | None = None

    @field_validator("tick_interval", mode="before")
    @classmethod
    def _parse_tick_interval(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                pass
            seconds = parse_duration(value, "s")
            if seconds is None:
                raise ValueError(f"Invalid tick interval: {value!r}")
            return seconds
        return value

    @field_validator("time_bias", mode="before")
    @classmethod
    def _parse_time_bias(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip():
            seconds = _signed_duration_seconds(value)
            if seconds is not None:
                return timedelta(seconds=seconds)
        return value

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value!r}") from e
        return value


class LoggingConfig(BaseModel):
    """Configuration for log output."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None
    use_rich: bool = True
    log_to_file: bool = False
    retention_days: int = Field(default=7, ge=1)


class CadenceConfig(BaseModel):
    """Root configuration model."""

    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
