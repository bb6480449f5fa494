"""Run a command on a schedule until interrupted."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer

from cadence.cli.console import console, dim, error, get_config, setup_logging
from cadence.errors import SchedulingError
from cadence.scheduler import SchedulerContext
from cadence.task import Task

logger = logging.getLogger(__name__)


class CommandJob:
    """Runs an external command each time its task fires."""

    def __init__(self, argv: list[str], max_runs: int | None = None):
        self.argv = argv
        self.max_runs = max_runs
        self.runs = 0
        self.done = asyncio.Event()

    async def execute(self) -> int:
        self.runs += 1
        logger.info(
            "command_started",
            extra={"command.argv": self.argv, "command.run": self.runs},
        )
        try:
            process = await asyncio.create_subprocess_exec(*self.argv)
            returncode = await process.wait()
        finally:
            if self.max_runs is not None and self.runs >= self.max_runs:
                self.done.set()

        if returncode != 0:
            logger.warning(
                "command_failed",
                extra={"command.argv": self.argv, "command.returncode": returncode},
            )
        return returncode


async def run_schedule(
    context: SchedulerContext, expressions: str, job: CommandJob
) -> int:
    """Attach `job` to `context` and tick until it finishes or is cancelled."""
    task = Task(context, expressions, job, name=" ".join(job.argv))
    dim(f"Next run: {task.next_due.isoformat(sep=' ') if task.next_due else '?'}")
    context.start()
    try:
        await job.done.wait()
    finally:
        task.stop()
        await context.aclose()
    return job.runs


def register(app: typer.Typer) -> None:
    """Register the run command."""

    @app.command(
        "run",
        context_settings={"allow_interspersed_args": False},
    )
    def run(
        expressions: Annotated[
            str,
            typer.Argument(help="Comma-separated expressions, e.g. 'every 30s'"),
        ],
        command: Annotated[
            list[str],
            typer.Argument(help="Command to execute when due"),
        ],
        max_runs: Annotated[
            int | None,
            typer.Option("--max-runs", "-n", help="Exit after this many runs", min=1),
        ] = None,
        interval: Annotated[
            str | None,
            typer.Option("--interval", help="Tick interval, e.g. '1s' or '250ms'"),
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
        """Execute COMMAND whenever EXPRESSIONS come due.

        Examples:
            cadence run "every 5m" -- ./sync.sh
            cadence run "9am, 5pm" -n 2 -- echo hello
        """
        cadence_config = get_config(config)
        setup_logging(cadence_config, verbose)
        settings = cadence_config.scheduler.model_copy()
        settings.auto_start = False
        if interval is not None:
            try:
                settings.tick_interval = interval
            except ValueError:
                error(f"Invalid --interval value: {interval}")
                raise typer.Exit(1) from None

        job = CommandJob(command, max_runs=max_runs)

        async def main() -> int:
            context = SchedulerContext(settings)
            return await run_schedule(context, expressions, job)

        try:
            runs = asyncio.run(main())
        except SchedulingError as e:
            error(str(e))
            raise typer.Exit(1) from None
        except KeyboardInterrupt:
            runs = job.runs
            console.print()

        dim(f"Finished after {runs} run(s)")
