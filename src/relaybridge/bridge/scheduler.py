"""Periodic task scheduler.

Every registered callback runs in its own asyncio task, so a slow poller
never delays the reconciler. A callback failure is logged and the loop goes
on with its next cycle.
"""

import asyncio
from typing import Awaitable, Callable, Dict, List, Optional

from ..logging import LogContext, get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class PeriodicTask:
    """One callback run every ``interval`` seconds."""

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[object]],
        sleep: Sleep = asyncio.sleep,
        run_immediately: bool = True,
    ):
        if interval <= 0:
            raise ValueError(f"Interval of {name} must be positive")
        self.name = name
        self.interval = interval
        self.callback = callback
        self.run_immediately = run_immediately
        self.runs = 0
        self.failures = 0
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_cycle(self) -> None:
        """Run the callback once, logging instead of raising."""
        context = LogContext(component="scheduler", metadata={"task": self.name})
        try:
            await self.callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            logger.error(f"Periodic task {self.name} failed: {e}", context=context, exception=e)
        finally:
            self.runs += 1

    async def _loop(self) -> None:
        if not self.run_immediately:
            await self._sleep(self.interval)
        while self._running:
            await self.run_cycle()
            await self._sleep(self.interval)

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name=f"periodic-{self.name}")

    async def stop(self) -> None:
        self._running = False
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


class PeriodicScheduler:
    """Owns the named periodic tasks of the service."""

    def __init__(self, sleep: Sleep = asyncio.sleep):
        self._sleep = sleep
        self.tasks: Dict[str, PeriodicTask] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def add_task(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[object]],
        run_immediately: bool = True,
    ) -> PeriodicTask:
        if name in self.tasks:
            raise ValueError(f"Periodic task {name} already registered")
        task = PeriodicTask(name, interval, callback, self._sleep, run_immediately)
        self.tasks[name] = task
        if self._running:
            task.start()
        return task

    def task_names(self) -> List[str]:
        return list(self.tasks)

    async def start(self) -> None:
        if self._running:
            logger.warning("Scheduler is already running")
            return
        self._running = True
        for task in self.tasks.values():
            task.start()
        logger.info(f"Scheduler started {len(self.tasks)} periodic task(s)")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        await asyncio.gather(*(task.stop() for task in self.tasks.values()))
        logger.info("Scheduler stopped")
