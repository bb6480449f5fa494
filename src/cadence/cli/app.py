"""Main CLI application."""

import typer

from cadence.cli.commands import next_due, run

app = typer.Typer(
    name="cadence",
    help="cadence - human-readable schedules on a shared tick loop",
    no_args_is_help=True,
)

next_due.register(app)
run.register(app)


if __name__ == "__main__":
    app()
