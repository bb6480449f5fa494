"""Tasks: timing expressions plus the work to run when they come due."""

import inspect
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, NoReturn, Protocol, runtime_checkable

from cadence.errors import (
    MissingCallbackError,
    SchedulingError,
    UninitializedTaskError,
)
from cadence.events import Subscription
from cadence.timing.clock import Clock, start_of_day, wall_clock
from cadence.timing.resolve import resolve_next_due, split_expressions

if TYPE_CHECKING:
    from cadence.scheduler import SchedulerContext

logger = logging.getLogger(__name__)


@runtime_checkable
class TaskJob(Protocol):
    """The work a task performs. The return value is ignored."""

    def execute(self) -> Any: ...


@dataclass
class CallbackJob:
    """Adapts a plain function or coroutine function to TaskJob."""

    fn: Callable[[], Any]

    async def execute(self) -> Any:
        result = self.fn()
        if inspect.isawaitable(result):
            result = await result
        return result


class UnsetJob:
    """Placeholder job for tasks that have no callback yet."""

    def execute(self) -> NoReturn:
        raise UninitializedTaskError()


class Task:
    """A unit of work fired by a SchedulerContext when its timing comes due.

    Timing is one or more expressions; the earliest upcoming instant among
    them becomes ``next_due``. Installing a callback attaches the task to
    the context's tick stream, and each tick that finds ``now() >= next_due``
    recomputes ``next_due`` and then runs the callback. A task whose
    expressions yield no further occurrence runs that last due firing and
    then detaches itself.

    Example:
        task = Task(scheduler, "9am, every 4h", send_digest, name="digest")
        ...
        task.stop()

    ``now`` and ``midnight`` are the clocks used for resolution and may be
    replaced (or passed to the constructor) to freeze time in tests.
    """

    def __init__(
        self,
        context: "SchedulerContext",
        expressions: str | Sequence[str] | None = None,
        callback: Callable[[], Any] | TaskJob | None = None,
        *,
        name: str | None = None,
        now: Clock | None = None,
        midnight: Clock | None = None,
    ):
        self.context = context
        self.name = name
        self.expressions: list[str] = []
        self.job: TaskJob = UnsetJob()
        self.next_due: datetime | None = None
        self.fire_count = 0
        self.last_fired: datetime | None = None
        self._subscription: Subscription | None = None
        if now is not None:
            self.now = now  # type: ignore[method-assign]
        if midnight is not None:
            self.midnight = midnight  # type: ignore[method-assign]

        if expressions:
            self.set_expressions(expressions)
        if callback:
            self.set_callback(callback)

    def now(self) -> datetime:
        """Current wall-clock time in the context's timezone."""
        return wall_clock(self.context.settings.timezone)

    def midnight(self) -> datetime:
        """Start of the current day."""
        return start_of_day(self.now())

    @property
    def attached(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def set_expressions(self, expressions: str | Sequence[str]) -> "Task":
        """Set the timing expressions and recompute ``next_due``.

        Args:
            expressions: A sequence of expressions, or a single string that
                is split on commas. Cron expressions that contain commas
                ("0 0,12 * * *") must be passed inside a sequence.

        Raises:
            ExpressionParseError: An expression is unparseable and the
                context is configured to reject unknown expressions.
            NoCandidateError: No expression yields a usable instant.
        """
        parsed = split_expressions(expressions)
        self.next_due = self._resolve(parsed)
        self.expressions = parsed
        return self

    def set_callback(self, callback: Callable[[], Any] | TaskJob) -> "Task":
        """Install the work to run and attach the task to the tick stream.

        Accepts a plain function, a coroutine function, or any object with
        an ``execute()`` method. Replacing the callback of an attached task
        keeps its single subscription.

        Raises:
            MissingCallbackError: If `callback` is empty.
        """
        if not callback:
            raise MissingCallbackError()
        if callable(callback):
            self.job = CallbackJob(callback)
        elif isinstance(callback, TaskJob):
            self.job = callback
        else:
            raise TypeError(f"Task callback must be callable, got {callback!r}")

        if not self.attached:
            self._subscription = self.context.subscribe(self._on_tick)
            logger.info(
                "task_attached",
                extra={"task.name": self.name, "task.expressions": self.expressions},
            )
        return self

    def recompute(self) -> "Task":
        """Resolve ``next_due`` from the current expressions and clocks.

        Called automatically when expressions change and before each
        firing, so calling it directly is rarely needed.
        """
        self.next_due = self._resolve(self.expressions)
        return self

    def _resolve(self, expressions: list[str]) -> datetime:
        settings = self.context.settings
        next_due = resolve_next_due(
            expressions,
            now=self.now(),
            midnight=self.midnight(),
            time_bias=settings.time_bias,
            throw_on_unknown=settings.throw_on_unknown,
            timezone=settings.timezone,
        )
        logger.debug(f"Task {self.name or '?'} scheduled for {next_due.isoformat()}")
        return next_due

    def is_due(self) -> bool:
        return self.next_due is not None and self.now() >= self.next_due

    def stop(self) -> "Task":
        """Detach from the tick stream. No further firings occur."""
        if self._subscription is not None and self._subscription.release():
            logger.info(
                "task_detached",
                extra={"task.name": self.name, "task.fire_count": self.fire_count},
            )
        self._subscription = None
        return self

    async def _on_tick(self, tick_at: datetime) -> None:
        if not self.is_due():
            return

        # Reschedule before running so a slow or failing job is not seen
        # as still due on the next tick
        try:
            self.recompute()
        except SchedulingError as e:
            # No occurrence after this one: deliver it, then detach
            self.next_due = None
            logger.info(
                "task_unschedulable",
                extra={"task.name": self.name, "error.message": str(e)},
            )
            self.stop()
        self.fire_count += 1
        self.last_fired = self.now()
        logger.debug(
            f"Task {self.name or '?'} firing (#{self.fire_count}), "
            f"next at {self.next_due.isoformat() if self.next_due else 'never'}"
        )

        await self.run()

    async def run(self) -> Any:
        """Run the job now, outside the schedule.

        Raises:
            UninitializedTaskError: If no callback was ever installed.
        """
        result = self.job.execute()
        if inspect.isawaitable(result):
            result = await result
        return result

    def __repr__(self) -> str:
        label = f" {self.name!r}" if self.name else ""
        due = self.next_due.isoformat() if self.next_due else "unscheduled"
        return f"<Task{label} {', '.join(self.expressions)!r} next={due}>"
