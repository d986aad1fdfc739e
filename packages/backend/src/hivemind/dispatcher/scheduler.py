"""Scheduler — cancellable delayed and periodic jobs on the running loop.

Learn: The orchestrator never calls asyncio.create_task() or sleeps on
its own. Everything deferred goes through here, so there is a single
place that owns outstanding jobs: shutdown cancels them, and tests can
`await scheduler.drain()` to wait for every dispatched task to finish.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger()

JobFactory = Callable[[], Awaitable[Any]]


class ScheduledJob:
    """Handle for one scheduled coroutine."""

    def __init__(self, name: str, task: asyncio.Task):
        self.name = name
        self._task = task

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> bool:
        return self._task.cancel()

    def __await__(self):
        return self._task.__await__()


class Scheduler:
    def __init__(self):
        self._jobs: set[asyncio.Task] = set()
        self._periodic: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._jobs)

    def call_later(self, delay: float, factory: JobFactory, name: str = "job") -> ScheduledJob:
        """Run `factory()` after `delay` seconds. Must be called from the loop."""

        async def runner():
            if delay > 0:
                await asyncio.sleep(delay)
            return await factory()

        task = asyncio.get_running_loop().create_task(runner(), name=name)
        self._jobs.add(task)
        task.add_done_callback(self._on_done)
        return ScheduledJob(name, task)

    def every(
        self,
        interval: float,
        fn: Callable[[], Any],
        name: str = "periodic",
        initial_delay: Optional[float] = None,
    ) -> ScheduledJob:
        """Call `fn` every `interval` seconds until cancelled."""

        async def loop():
            await asyncio.sleep(interval if initial_delay is None else initial_delay)
            while True:
                try:
                    result = fn()
                    if asyncio.iscoroutine(result):
                        await result
                except Exception:
                    logger.exception("scheduler.periodic_failed", job=name)
                await asyncio.sleep(interval)

        job = self.call_later(0, loop, name=name)
        self._periodic.add(job._task)
        return job

    @staticmethod
    async def sleep(delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)

    def _on_done(self, task: asyncio.Task) -> None:
        self._jobs.discard(task)
        self._periodic.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("scheduler.job_failed", job=task.get_name(), error=str(exc))

    async def drain(self) -> None:
        """Wait until no one-shot job is outstanding (including ones they spawn)."""
        while True:
            pending = [
                t for t in self._jobs if not t.done() and t not in self._periodic
            ]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel every outstanding job and wait for them to unwind."""
        jobs = list(self._jobs)
        for task in jobs:
            task.cancel()
        if jobs:
            await asyncio.gather(*jobs, return_exceptions=True)
        logger.info("scheduler.stopped", cancelled=len(jobs))
