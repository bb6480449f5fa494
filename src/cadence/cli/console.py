"""Shared console utilities for CLI commands."""

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cadence.config import CadenceConfig, ConfigError, get_default_config, load_config
from cadence.logging import configure_logging

# Shared console instance for all CLI commands
console = Console()


def error(msg: str) -> None:
    """Print an error message in red."""
    console.print(f"[red]{escape(msg)}[/red]")


def dim(msg: str) -> None:
    """Print a dimmed message."""
    console.print(f"[dim]{escape(msg)}[/dim]")


def create_table(title: str, columns: list[tuple[str, str]]) -> Table:
    """Create a table from (name, style) column pairs."""
    table = Table(title=title)
    for name, style in columns:
        table.add_column(name, style=style or None)
    return table


def get_config(path: Path | None) -> CadenceConfig:
    """Load config from `path`, the default locations, or built-in defaults.

    Exits with status 1 on an unreadable or invalid config file.
    """
    try:
        if path is not None:
            return load_config(path)
        try:
            return load_config()
        except FileNotFoundError:
            return get_default_config()
    except (FileNotFoundError, ConfigError) as e:
        error(str(e))
        raise typer.Exit(1) from None


def setup_logging(config: CadenceConfig, verbose: bool = False) -> None:
    """Configure logging from the [logging] section; --verbose forces DEBUG."""
    settings = config.logging
    configure_logging(
        level="DEBUG" if verbose else settings.level,
        use_rich=settings.use_rich,
        log_to_file=settings.log_to_file,
        retention_days=settings.retention_days,
    )
