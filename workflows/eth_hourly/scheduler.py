"""
Scheduler — named periodic asyncio tasks.

Each PeriodicTask runs its coroutine, then sleeps for its interval, so a
task never overlaps itself. A failing run is logged and the loop carries on
with the next tick; cancellation stops the loop. Every task can be stopped
on its own, ``Scheduler.stop()`` cancels them all.

Usage:
    scheduler = Scheduler()
    scheduler.add("evaluate", 5, strategy.evaluate)
    scheduler.start()
    ...
    await scheduler.stop()
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

TaskFn = Callable[[], Awaitable[object]]


class PeriodicTask:
    """One named loop: run, sleep ``interval`` seconds, repeat."""

    def __init__(
        self,
        name: str,
        interval: float,
        fn: TaskFn,
        *,
        run_immediately: bool = True,
    ):
        if interval <= 0:
            raise ValueError(f"Interval for task '{name}' must be positive")
        self.name = name
        self.interval = interval
        self._fn = fn
        self._run_immediately = run_immediately
        self._task: asyncio.Task | None = None
        self.runs = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("task_stopped", task=self.name, runs=self.runs)

    async def run_once(self) -> None:
        """Run the coroutine once; failures are logged, not raised."""
        self.runs += 1
        try:
            await self._fn()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            logger.exception(
                "task_failed",
                task=self.name,
                error=str(e),
                failures=self.failures,
            )

    async def _loop(self) -> None:
        if not self._run_immediately:
            await asyncio.sleep(self.interval)
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval)


class Scheduler:
    """Owns a set of PeriodicTasks by name."""

    def __init__(self):
        self._tasks: dict[str, PeriodicTask] = {}

    def add(
        self,
        name: str,
        interval: float,
        fn: TaskFn,
        *,
        run_immediately: bool = True,
    ) -> PeriodicTask:
        if name in self._tasks:
            raise ValueError(f"Task '{name}' already scheduled")
        task = PeriodicTask(name, interval, fn, run_immediately=run_immediately)
        self._tasks[name] = task
        return task

    def get(self, name: str) -> PeriodicTask:
        return self._tasks[name]

    @property
    def names(self) -> list[str]:
        return list(self._tasks)

    @property
    def running(self) -> bool:
        return any(t.running for t in self._tasks.values())

    def start(self) -> None:
        for task in self._tasks.values():
            task.start()
        logger.info(
            "scheduler_started",
            tasks={t.name: t.interval for t in self._tasks.values()},
        )

    async def cancel(self, name: str) -> None:
        await self._tasks[name].stop()

    async def stop(self) -> None:
        for task in self._tasks.values():
            await task.stop()
        logger.info("scheduler_stopped")
