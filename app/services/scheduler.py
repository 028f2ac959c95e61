from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Awaitable[object]]


@dataclass(slots=True)
class Job:
    name: str
    interval: float
    func: JobFunc
    task: Optional[asyncio.Task] = field(default=None, repr=False)
    runs: int = 0
    failures: int = 0


class PeriodicScheduler:
    """
    Single owner of background polling. One job per name: registering a name
    again replaces the earlier job instead of running two pollers.
    """

    def __init__(self, on_stop: Optional[Callable[[], None]] = None):
        self._jobs: dict[str, Job] = {}
        self._running = False
        self._on_stop = on_stop

    @property
    def running(self) -> bool:
        return self._running

    @property
    def jobs(self) -> dict[str, Job]:
        return dict(self._jobs)

    def register(self, name: str, interval: float, func: JobFunc) -> Job:
        if interval <= 0:
            raise ValueError("Job interval must be positive")
        previous = self._jobs.pop(name, None)
        if previous is not None:
            logger.info("Replacing scheduled job %s", name)
            if previous.task is not None:
                previous.task.cancel()
        job = Job(name=name, interval=interval, func=func)
        self._jobs[name] = job
        if self._running:
            job.task = asyncio.create_task(self._loop(job), name=f"scheduler:{name}")
        return job

    async def run_once(self, name: str) -> object:
        job = self._jobs[name]
        try:
            return await job.func()
        finally:
            job.runs += 1

    async def _loop(self, job: Job) -> None:
        while True:
            await asyncio.sleep(job.interval)
            try:
                await self.run_once(job.name)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                job.failures += 1
                logger.error("Scheduled job %s failed: %s", job.name, e)

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        for job in self._jobs.values():
            job.task = asyncio.create_task(self._loop(job), name=f"scheduler:{job.name}")
        logger.info("Scheduler started with %s job(s)", len(self._jobs))

    async def stop(self) -> None:
        tasks = [job.task for job in self._jobs.values() if job.task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for job in self._jobs.values():
            job.task = None
        self._running = False
        if self._on_stop is not None:
            self._on_stop()
        logger.info("Scheduler stopped")
