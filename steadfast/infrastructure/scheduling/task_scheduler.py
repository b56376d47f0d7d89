"""Periodic job scheduler built on asyncio tasks.

Each registered job runs in its own task on a fixed-rate schedule. Handler
exceptions are logged and counted; they never stop the job or affect other
jobs.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Union

from steadfast.domain.models.common import JobInfo, JobName

logger = logging.getLogger(__name__)

JobHandler = Callable[[], Union[Awaitable[Any], Any]]


def format_interval(seconds: float) -> str:
    """Formats an interval for logs, e.g. 300 -> '5min'."""
    if seconds >= 86400:
        return f"{round(seconds / 86400)}d"
    if seconds >= 3600:
        return f"{round(seconds / 3600)}h"
    if seconds >= 60:
        return f"{round(seconds / 60)}min"
    if seconds >= 1:
        return f"{round(seconds)}s"
    return f"{round(seconds * 1000)}ms"


@dataclass
class ScheduledJob:
    """A registered job and its run bookkeeping."""
    name: JobName
    handler: JobHandler
    interval_seconds: float
    runs: int = 0
    failures: int = 0
    last_error: Optional[BaseException] = None
    task: Optional["asyncio.Task[None]"] = field(default=None, repr=False)


class TaskScheduler:
    """Registry of periodic jobs."""

    def __init__(self):
        self._jobs: List[ScheduledJob] = []

    def register(
        self,
        name: str,
        handler: JobHandler,
        interval_seconds: float,
        run_immediately: bool = False,
    ) -> ScheduledJob:
        """Starts running handler every interval_seconds.

        Must be called from within a running event loop.

        Args:
            name: Job name used in logs.
            handler: Sync or async callable taking no arguments.
            interval_seconds: Time between runs.
            run_immediately: Also run once right away.
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        if any(job.name == name for job in self._jobs):
            logger.warning(f"A job named '{name}' is already registered; adding another")

        job = ScheduledJob(name=JobName(name), handler=handler, interval_seconds=interval_seconds)
        job.task = asyncio.get_running_loop().create_task(
            self._run_job(job, run_immediately), name=f"job:{name}"
        )
        self._jobs.append(job)
        logger.info(f"Registered job '{name}' every {format_interval(interval_seconds)}")
        return job

    async def _invoke(self, job: ScheduledJob) -> None:
        job.runs += 1
        try:
            result = job.handler()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            job.failures += 1
            job.last_error = e
            logger.error(f"Error in job '{job.name}': {e}", exc_info=True)

    async def _run_job(self, job: ScheduledJob, run_immediately: bool) -> None:
        loop = asyncio.get_running_loop()
        if run_immediately:
            await self._invoke(job)
        next_run = loop.time() + job.interval_seconds
        while True:
            await asyncio.sleep(max(0.0, next_run - loop.time()))
            await self._invoke(job)
            # Fixed rate; skip missed slots instead of bursting to catch up
            next_run += job.interval_seconds
            now = loop.time()
            if next_run < now:
                next_run = now + job.interval_seconds

    def list(self) -> List[JobInfo]:
        return [
            JobInfo(
                name=job.name,
                interval_seconds=job.interval_seconds,
                interval=format_interval(job.interval_seconds),
            )
            for job in self._jobs
        ]

    def get(self, name: str) -> Optional[ScheduledJob]:
        return next((job for job in self._jobs if job.name == name), None)

    def stop_all(self) -> None:
        """Cancels every job and empties the registry."""
        count = len(self._jobs)
        for job in self._jobs:
            if job.task is not None:
                job.task.cancel()
        self._jobs.clear()
        logger.info(f"Stopped {count} job(s)")

    async def shutdown(self) -> None:
        """Stops all jobs and waits for their tasks to finish cancelling."""
        tasks = [job.task for job in self._jobs if job.task is not None]
        self.stop_all()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
