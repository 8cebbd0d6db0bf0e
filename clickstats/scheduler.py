"""Interval scheduler for background jobs.

Fires a coroutine function once at startup and then every
``interval_seconds``. Each firing runs as its own task and is not awaited by
the loop, so a slow job never delays the next tick. Overlap handling is the
job's business.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class JobScheduler:
    def __init__(
        self,
        task: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        sleep: Sleep = asyncio.sleep,
        run_on_start: bool = True,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.task = task
        self.interval_seconds = interval_seconds
        self.sleep = sleep
        self.run_on_start = run_on_start
        self._loop_task: asyncio.Task | None = None
        self._in_flight: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> None:
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._loop())
        logger.info("Scheduler started, interval %ss", self.interval_seconds)

    def fire(self) -> asyncio.Task:
        """Launch one run of the job without waiting for it."""
        job = asyncio.create_task(self._run_job())
        self._in_flight.add(job)
        job.add_done_callback(self._in_flight.discard)
        return job

    async def stop(self) -> None:
        """Stop ticking and wait for runs already in flight."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)
        logger.info("Scheduler stopped")

    async def _loop(self) -> None:
        if self.run_on_start:
            self.fire()
        while True:
            await self.sleep(self.interval_seconds)
            self.fire()

    async def _run_job(self) -> None:
        try:
            await self.task()
        except Exception:
            logger.exception("Scheduled job failed")
