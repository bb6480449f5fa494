"""Scheduler context: the shared tick loop.

A context owns one one-shot timer on the running asyncio loop. When it
fires, the context broadcasts a "tick" event to every subscriber, waits
for all of them to finish, and only then arms the next timer. Ticks never
overlap, at the cost of each cycle lasting ``tick_interval`` plus the time
subscribers spend handling it.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from cadence.config.models import SchedulerSettings
from cadence.events import EventChannel, Listener, Subscription

if TYPE_CHECKING:
    from cadence.task import Task

logger = logging.getLogger(__name__)

TICK = "tick"

# Heartbeat log every N ticks (~5 min at the default 1s interval)
HEARTBEAT_INTERVAL = 300


class SchedulerState(Enum):
    STOPPED = "stopped"
    ARMED = "armed"
    TICKING = "ticking"


class SchedulerContext:
    """Drives periodic evaluation of tasks through a shared tick.

    Example:
        async def main():
            scheduler = SchedulerContext(SchedulerSettings(tick_interval=1))
            scheduler.task("every 5m, 9am", refresh_cache)
            scheduler.start()
            ...
            await scheduler.aclose()

    State transitions:
        start:      STOPPED -> ARMED (no-op otherwise); during a tick, the
                    timer is armed only once that tick settles
        tick-begin: ARMED -> TICKING
        tick-end:   TICKING -> ARMED (unless paused during the tick)
        pause:      any -> STOPPED
    """

    def __init__(
        self,
        settings: SchedulerSettings | None = None,
        *,
        channel: EventChannel | None = None,
    ):
        self.settings = settings or SchedulerSettings()
        self.channel = channel or EventChannel()
        self._state = SchedulerState.STOPPED
        self._timer: asyncio.TimerHandle | None = None
        self._tick_task: asyncio.Task | None = None
        # A tick is being broadcast; independent of _state, which pause()
        # and start() may change mid-tick
        self._in_tick = False
        self._rearm_after_tick = False
        self._tick_count = 0
        self._last_tick_at: datetime | None = None
        self._auto_start_pending = False

        if self.settings.auto_start:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                # Started by the first subscription made inside a loop
                self._auto_start_pending = True
            else:
                self.start()

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is not SchedulerState.STOPPED

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_tick_at(self) -> datetime | None:
        return self._last_tick_at

    def start(self) -> "SchedulerContext":
        """Arm the tick timer. Does nothing if already running.

        Raises:
            RuntimeError: If called outside a running event loop.
        """
        self._auto_start_pending = False
        if self._state is not SchedulerState.STOPPED:
            return self
        if self._in_tick:
            # The tick in flight arms the timer once it settles
            self._rearm_after_tick = True
            self._state = SchedulerState.TICKING
        else:
            self._arm()
        logger.info(
            "scheduler_started",
            extra={"scheduler.tick_interval": self.settings.tick_interval},
        )
        return self

    def pause(self) -> "SchedulerContext":
        """Stop ticking until the next start(). Tasks stay attached."""
        if self._state is SchedulerState.STOPPED:
            return self
        self._cancel_timer()
        self._rearm_after_tick = False
        self._state = SchedulerState.STOPPED
        logger.info("scheduler_paused", extra={"tick.count": self._tick_count})
        return self

    async def tick(self) -> None:
        """Run one tick cycle and re-arm the timer if the loop is running."""
        if self._in_tick:
            logger.debug("Tick already in progress, skipping")
            return

        self._rearm_after_tick = self._state is SchedulerState.ARMED
        self._cancel_timer()
        self._in_tick = True
        self._state = SchedulerState.TICKING
        self._tick_count += 1
        tick_at = datetime.now(UTC)
        self._last_tick_at = tick_at

        if self._tick_count % HEARTBEAT_INTERVAL == 0:
            logger.info(
                "scheduler_heartbeat",
                extra={
                    "tick.count": self._tick_count,
                    "scheduler.subscribers": self.channel.listener_count(TICK),
                },
            )

        try:
            logger.debug(f"Tick! {tick_at.isoformat()}")
            failures = await self.channel.emit(TICK, tick_at)
            logger.debug(f"Tick complete ({failures} failed)")
        finally:
            self._in_tick = False
            if self._rearm_after_tick:
                self._arm()
            else:
                self._state = SchedulerState.STOPPED

    async def aclose(self) -> None:
        """Pause and wait for any tick still in flight."""
        self.pause()
        task = self._tick_task
        if task is None or task.done() or task is asyncio.current_task():
            self._tick_task = None
            return
        await asyncio.gather(task, return_exceptions=True)
        self._tick_task = None

    def subscribe(self, listener: Listener) -> Subscription:
        """Attach a listener to the tick stream.

        Completes a deferred auto start when called inside a running loop.
        """
        subscription = self.channel.on(TICK, listener)
        if self._auto_start_pending:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                pass
            else:
                self.start()
        return subscription

    def task(
        self,
        expressions: str | Sequence[str] | None = None,
        callback: Callable[[], Any] | None = None,
        *,
        name: str | None = None,
    ) -> "Task":
        """Create a task bound to this context."""
        from cadence.task import Task

        return Task(self, expressions, callback, name=name)

    def _arm(self) -> None:
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.settings.tick_interval, self._on_timer)
        self._state = SchedulerState.ARMED

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        self._tick_task = asyncio.ensure_future(self.tick())

    def __repr__(self) -> str:
        return (
            f"<SchedulerContext {self._state.value} "
            f"interval={self.settings.tick_interval}s ticks={self._tick_count}>"
        )
