"""Tests for the periodic scheduler."""

import asyncio

import pytest

from relaybridge.bridge.scheduler import PeriodicScheduler, PeriodicTask
from relaybridge.logging import LogLevel


class ManualSleep:
    """Sleep replacement that records intervals and yields to the loop."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)
        await asyncio.sleep(0)


async def wait_until(predicate, timeout=2.0):
    async def poll():
        while not predicate():
            await asyncio.sleep(0)

    await asyncio.wait_for(poll(), timeout)


class TestPeriodicTask:
    """Test a single periodic task."""

    def test_interval_must_be_positive(self):
        """Test a non-positive interval is rejected."""
        async def callback():
            pass

        with pytest.raises(ValueError):
            PeriodicTask("bad", 0, callback)

    @pytest.mark.asyncio
    async def test_run_cycle_contains_errors(self, log_capture):
        """Test a failed cycle is logged, not raised."""
        async def callback():
            raise RuntimeError("cycle failed")

        task = PeriodicTask("poller", 15, callback)
        await task.run_cycle()
        assert task.runs == 1
        assert task.failures == 1
        errors = log_capture.get_entries(LogLevel.ERROR)
        assert errors[0].context.metadata == {"task": "poller"}

    @pytest.mark.asyncio
    async def test_loop_continues_after_failure(self):
        """Test the loop continues after a failed cycle."""
        sleep = ManualSleep()
        calls = []

        async def callback():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first cycle")

        task = PeriodicTask("reconciler", 10, callback, sleep=sleep)
        task.start()
        await wait_until(lambda: len(calls) >= 3)
        await task.stop()

        assert task.failures == 1
        assert set(sleep.calls) == {10}
        assert not task.is_running

    @pytest.mark.asyncio
    async def test_delayed_first_run(self):
        """Test a task that waits one interval before its first run."""
        sleep = ManualSleep()
        calls = []

        async def callback():
            calls.append(len(sleep.calls))

        task = PeriodicTask("audit", 300, callback, sleep=sleep, run_immediately=False)
        task.start()
        await wait_until(lambda: calls)
        await task.stop()
        assert calls[0] == 1


class TestPeriodicScheduler:
    """Test the scheduler owning several tasks."""

    @pytest.mark.asyncio
    async def test_tasks_run_independently(self):
        """Test a stuck task does not block the others."""
        sleep = ManualSleep()
        scheduler = PeriodicScheduler(sleep=sleep)
        poll_calls, reconcile_calls = [], []
        blocker = asyncio.Event()

        async def poll():
            poll_calls.append(1)
            await blocker.wait()

        async def reconcile():
            reconcile_calls.append(1)

        scheduler.add_task("poller", 15, poll)
        scheduler.add_task("reconciler", 10, reconcile)
        await scheduler.start()
        assert scheduler.is_running

        # the poller is stuck in its first cycle but the reconciler keeps going
        await wait_until(lambda: len(reconcile_calls) >= 3)
        assert len(poll_calls) == 1

        blocker.set()
        await scheduler.stop()
        assert not scheduler.is_running
        assert scheduler.task_names() == ["poller", "reconciler"]

    def test_duplicate_name_rejected(self):
        """Test duplicate task names are rejected."""
        async def callback():
            pass

        scheduler = PeriodicScheduler()
        scheduler.add_task("poller", 15, callback)
        with pytest.raises(ValueError):
            scheduler.add_task("poller", 15, callback)

    @pytest.mark.asyncio
    async def test_stop_cancels_sleeping_tasks(self):
        """Test stopping cancels sleeping tasks."""
        calls = []

        async def callback():
            calls.append(1)

        scheduler = PeriodicScheduler()
        scheduler.add_task("poller", 3600, callback)
        await scheduler.start()
        await wait_until(lambda: calls)
        await asyncio.wait_for(scheduler.stop(), timeout=1.0)
        assert calls == [1]
