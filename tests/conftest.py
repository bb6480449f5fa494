"""Shared test fixtures and factories."""

import logging
from collections.abc import AsyncGenerator, Iterator
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from typer.testing import CliRunner

from cadence.config.loader import ENV_OVERRIDES
from cadence.config.models import SchedulerSettings
from cadence.config.paths import ENV_VAR, get_cadence_home
from cadence.scheduler import SchedulerContext
from cadence.timing.clock import start_of_day


class FrozenClock:
    """A controllable clock usable as a Task's `now` accessor."""

    def __init__(self, current: datetime):
        self.current = current

    def __call__(self) -> datetime:
        return self.current

    def midnight(self) -> datetime:
        return start_of_day(self.current)

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


# =============================================================================
# Clock Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen at midnight on 2020-01-30."""
    return FrozenClock(datetime(2020, 1, 30, 0, 0, 0))


# =============================================================================
# Scheduler Fixtures
# =============================================================================


@pytest.fixture
def settings() -> SchedulerSettings:
    """Settings that never start the loop on their own."""
    return SchedulerSettings(auto_start=False, tick_interval=0.02)


@pytest.fixture
def context(settings: SchedulerSettings) -> SchedulerContext:
    return SchedulerContext(settings)


@pytest.fixture
async def running_context(
    settings: SchedulerSettings,
) -> AsyncGenerator[SchedulerContext, None]:
    """A started context that is closed after the test."""
    ctx = SchedulerContext(settings)
    ctx.start()
    yield ctx
    await ctx.aclose()


# =============================================================================
# CLI Fixtures
# =============================================================================


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A config file with a fast tick and a one hour bias."""
    path = tmp_path / "config.toml"
    path.write_text(
        """
[scheduler]
tick_interval = "250ms"
time_bias = "1h"
throw_on_unknown = false

[logging]
level = "DEBUG"
"""
    )
    return path


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point CADENCE_HOME at a temp dir and clear overrides from the env."""
    home = tmp_path / "cadence-home"
    monkeypatch.setenv(ENV_VAR, str(home))
    for env_var in ENV_OVERRIDES:
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.delenv("CADENCE_LOG_LEVEL", raising=False)
    monkeypatch.chdir(tmp_path)
    get_cadence_home.cache_clear()
    yield home
    get_cadence_home.cache_clear()


@pytest.fixture
def restore_root_logger() -> Iterator[logging.Logger]:
    """Undo configure_logging() changes to the root logger."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
