"""Preview when an expression list will next fire."""

from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from cadence.cli.console import (
    console,
    create_table,
    error,
    get_config,
    setup_logging,
)
from cadence.errors import SchedulingError
from cadence.scheduler import SchedulerContext
from cadence.task import Task
from cadence.timing import (
    classify,
    format_duration,
    resolve_expression,
    split_expressions,
    start_of_day,
    wall_clock,
)


def _parse_at(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        error(f"Invalid --at value (expected ISO 8601): {value}")
        raise typer.Exit(1) from None
    return parsed.replace(tzinfo=None)


def register(app: typer.Typer) -> None:
    """Register the next command."""

    @app.command("next")
    def next_due(
        expressions: Annotated[
            str,
            typer.Argument(help="Comma-separated expressions, e.g. '9am, every 4h'"),
        ],
        at: Annotated[
            str | None,
            typer.Option("--at", help="Resolve as if it were this ISO 8601 time"),
        ] = None,
        lenient: Annotated[
            bool,
            typer.Option("--lenient", help="Ignore unparseable expressions"),
        ] = False,
        bias: Annotated[
            str | None,
            typer.Option("--bias", help="Time bias to apply, e.g. '1h' or '-30s'"),
        ] = None,
        config: Annotated[
            Path | None,
            typer.Option("--config", "-c", help="Path to configuration file"),
        ] = None,
        verbose: Annotated[
            bool,
            typer.Option("--verbose", "-v", help="Enable debug logging"),
        ] = False,
    ) -> None:
        """Show each expression's next candidate and the selected due time.

        Examples:
            cadence next "12pm, every 1h45m"
            cadence next "0 0 */3 * * *" --at 2020-01-30T00:00:00
        """
        cadence_config = get_config(config)
        setup_logging(cadence_config, verbose)
        settings = cadence_config.scheduler.model_copy()
        settings.auto_start = False
        if lenient:
            settings.throw_on_unknown = False
        if bias is not None:
            try:
                settings.time_bias = bias
            except ValueError:
                error(f"Invalid --bias value: {bias}")
                raise typer.Exit(1) from None

        now = _parse_at(at) if at else wall_clock(settings.timezone)
        midnight = start_of_day(now)
        parsed = split_expressions(expressions)

        table = create_table(
            "Expressions",
            [("Expression", "cyan"), ("Grammar", "dim"), ("Next candidate", "")],
        )
        for expression in parsed:
            candidate = resolve_expression(
                expression, now=now, midnight=midnight, timezone=settings.timezone
            )
            table.add_row(
                escape(expression),
                classify(expression).value,
                candidate.isoformat(sep=" ") if candidate else "[red]invalid[/red]",
            )
        console.print(table)

        context = SchedulerContext(settings)
        try:
            task = Task(context, parsed, now=lambda: now, midnight=lambda: midnight)
        except SchedulingError as e:
            error(str(e))
            raise typer.Exit(1) from None

        next_due = task.next_due
        if next_due is None:
            error("No upcoming occurrence")
            raise typer.Exit(1)
        wait = format_duration((next_due - now).total_seconds())
        console.print(f"Next due: [bold]{next_due.isoformat(sep=' ')}[/bold] (in {wait})")
