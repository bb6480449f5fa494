"""CLI command modules."""

from cadence.cli.commands import next_due, run

__all__ = ["next_due", "run"]
