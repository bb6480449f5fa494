"""Tests for the scheduler context and tick loop."""

import asyncio
import logging
from datetime import datetime

import pytest

from cadence.config.models import SchedulerSettings
from cadence.scheduler import TICK, SchedulerContext, SchedulerState
from cadence.task import Task


def frozen_task(context, clock, expressions, callback, **kwargs):
    return Task(
        context, expressions, callback, now=clock, midnight=clock.midnight, **kwargs
    )


class TestStateMachine:
    """Tests for start/pause/tick state transitions."""

    def test_starts_stopped(self, context):
        assert context.state is SchedulerState.STOPPED
        assert not context.running

    @pytest.mark.asyncio
    async def test_start_arms(self, context):
        assert context.start() is context
        assert context.state is SchedulerState.ARMED
        await context.aclose()
        assert context.state is SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, running_context):
        timer = running_context._timer
        running_context.start()
        assert running_context._timer is timer

    @pytest.mark.asyncio
    async def test_pause_is_idempotent(self, running_context):
        running_context.pause()
        assert running_context.pause() is running_context
        assert running_context.state is SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_tick_rearms(self, running_context):
        await running_context.tick()
        assert running_context.state is SchedulerState.ARMED
        assert running_context.tick_count == 1
        assert running_context.last_tick_at is not None

    @pytest.mark.asyncio
    async def test_manual_tick_does_not_start(self, context):
        await context.tick()
        assert context.state is SchedulerState.STOPPED
        assert context.tick_count == 1

    @pytest.mark.asyncio
    async def test_pause_during_tick_prevents_rearm(self, running_context):
        running_context.subscribe(lambda at: running_context.pause())
        await running_context.tick()
        assert running_context.state is SchedulerState.STOPPED
        assert running_context._timer is None

    @pytest.mark.asyncio
    async def test_pause_and_start_during_tick(self, running_context):
        def restart(at):
            running_context.pause()
            running_context.start()

        running_context.subscribe(restart)
        await running_context.tick()
        assert running_context.state is SchedulerState.ARMED

    @pytest.mark.asyncio
    async def test_reentrant_tick_skipped(self, context):
        seen = []

        async def nested(at):
            seen.append(context.state)
            await context.tick()

        context.subscribe(nested)
        await context.tick()

        assert seen == [SchedulerState.TICKING]
        assert context.tick_count == 1

    @pytest.mark.asyncio
    async def test_ticks_do_not_overlap(self, running_context):
        active = 0
        peak = 0

        async def slow(at):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.05)
            active -= 1

        running_context.subscribe(slow)
        await asyncio.sleep(0.2)

        assert running_context.tick_count >= 2
        assert peak == 1

    @pytest.mark.asyncio
    async def test_restart_from_slow_listener_does_not_overlap(self, running_context):
        active = 0
        peak = 0
        restarted = False

        async def slow(at):
            nonlocal active, peak, restarted
            active += 1
            peak = max(peak, active)
            if not restarted:
                restarted = True
                running_context.pause()
                running_context.start()
            await asyncio.sleep(0.1)
            active -= 1

        running_context.subscribe(slow)
        await asyncio.sleep(0.4)

        assert running_context.tick_count >= 2
        assert peak == 1
        assert running_context.state in (SchedulerState.ARMED, SchedulerState.TICKING)

    @pytest.mark.asyncio
    async def test_restart_during_tick_arms_after_tick(self, running_context):
        states = []

        async def restart(at):
            running_context.pause()
            running_context.start()
            states.append(running_context.state)
            states.append(running_context._timer)
            await asyncio.sleep(0)

        running_context.subscribe(restart)
        await running_context.tick()

        assert states == [SchedulerState.TICKING, None]
        assert running_context.state is SchedulerState.ARMED
        assert running_context._timer is not None


class TestAutoStart:
    """Tests for the auto_start setting."""

    @pytest.mark.asyncio
    async def test_starts_inside_loop(self):
        context = SchedulerContext(SchedulerSettings(tick_interval=0.02))
        assert context.state is SchedulerState.ARMED
        await context.aclose()

    def test_deferred_outside_loop(self):
        context = SchedulerContext(SchedulerSettings(tick_interval=0.02))
        assert context.state is SchedulerState.STOPPED

        async def attach():
            context.subscribe(lambda at: None)
            state = context.state
            await context.aclose()
            return state

        assert asyncio.run(attach()) is SchedulerState.ARMED

    def test_subscribe_outside_loop_stays_stopped(self):
        context = SchedulerContext(SchedulerSettings())
        context.subscribe(lambda at: None)
        assert context.state is SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_disabled(self, settings):
        context = SchedulerContext(settings)
        context.subscribe(lambda at: None)
        assert context.state is SchedulerState.STOPPED


class TestFiring:
    """Tests for tasks firing from ticks."""

    @pytest.mark.asyncio
    async def test_fires_once_when_due(self, context, clock):
        fired = []
        task = frozen_task(context, clock, "every 2m", lambda: fired.append(clock()))

        await context.tick()
        assert fired == []

        clock.advance(minutes=2)
        await context.tick()
        await context.tick()

        assert len(fired) == 1
        assert task.fire_count == 1
        assert task.last_fired == clock()
        assert task.next_due == datetime(2020, 1, 30, 0, 4)

    @pytest.mark.asyncio
    async def test_next_due_recomputed_before_callback(self, context, clock):
        seen = []
        task = None

        def record():
            seen.append(task.next_due)

        task = frozen_task(context, clock, "every 2m", record)
        clock.advance(minutes=2)
        await context.tick()

        assert seen == [datetime(2020, 1, 30, 0, 4)]

    @pytest.mark.asyncio
    async def test_stopped_task_does_not_fire(self, context, clock):
        fired = []
        task = frozen_task(context, clock, "every 2m", lambda: fired.append(1))
        task.stop()

        clock.advance(minutes=5)
        await context.tick()

        assert fired == []

    @pytest.mark.asyncio
    async def test_failing_task_does_not_block_others(self, context, clock, caplog):
        fired = []

        def broken():
            raise RuntimeError("broken job")

        failing = frozen_task(context, clock, "every 1m", broken, name="broken")
        frozen_task(context, clock, "every 1m", lambda: fired.append(1))

        clock.advance(minutes=1)
        with caplog.at_level(logging.ERROR, logger="cadence.events"):
            await context.tick()

        assert fired == [1]
        assert failing.fire_count == 1
        assert any(r.getMessage() == "event_listener_failed" for r in caplog.records)
        # Rescheduled despite the failure
        assert not failing.is_due()

    @pytest.mark.asyncio
    async def test_exhausted_task_detaches(self, context, clock, caplog):
        fired = []
        task = frozen_task(
            context, clock, ["2020-01-30T08:30:00"], lambda: fired.append(1)
        )

        clock.advance(days=1, hours=8, minutes=30, seconds=1)
        with caplog.at_level(logging.INFO):
            for _ in range(3):
                await context.tick()

        messages = [r.getMessage() for r in caplog.records]
        assert fired == [1]
        assert messages.count("task_unschedulable") == 1
        assert "event_listener_failed" not in messages
        assert not task.attached
        assert task.next_due is None
        assert context.channel.listener_count(TICK) == 0

    @pytest.mark.asyncio
    async def test_one_shot_instant_fires_once(self, context, clock):
        fired = []
        task = frozen_task(
            context, clock, "2020-01-30T08:30:00", lambda: fired.append(clock())
        )

        clock.advance(hours=8, minutes=30, seconds=1)
        await context.tick()
        await context.tick()

        assert fired == [datetime(2020, 1, 30, 8, 30, 1)]
        assert task.fire_count == 1
        assert not task.attached

    @pytest.mark.asyncio
    async def test_listener_receives_tick_time(self, context):
        seen = []
        context.subscribe(seen.append)
        await context.tick()
        assert seen == [context.last_tick_at]
        assert context.channel.listener_count(TICK) == 1


class TestRealLoop:
    """End-to-end tests on a running loop with the wall clock."""

    @pytest.mark.asyncio
    async def test_interval_fires_repeatedly(self, running_context):
        fired = []
        task = running_context.task("every 50ms", lambda: fired.append(1))

        await asyncio.sleep(0.4)
        assert len(fired) >= 2

        task.stop()
        count = len(fired)
        await asyncio.sleep(0.15)
        assert len(fired) == count

    @pytest.mark.asyncio
    async def test_pause_and_resume(self, running_context):
        fired = []
        running_context.task("every 20ms", lambda: fired.append(1))

        running_context.pause()
        await asyncio.sleep(0.15)
        assert fired == []

        running_context.start()
        await asyncio.sleep(0.3)
        assert fired

    @pytest.mark.asyncio
    async def test_async_callback(self, running_context):
        done = asyncio.Event()

        async def job():
            await asyncio.sleep(0)
            done.set()

        running_context.task("every 10ms", job)
        await asyncio.wait_for(done.wait(), timeout=2)

    @pytest.mark.asyncio
    async def test_aclose_waits_for_tick(self, running_context):
        finished = []

        async def slow(at):
            await asyncio.sleep(0.05)
            finished.append(at)

        running_context.subscribe(slow)
        await asyncio.sleep(0.04)
        await running_context.aclose()

        assert running_context.state is SchedulerState.STOPPED
        assert len(finished) == running_context.tick_count
