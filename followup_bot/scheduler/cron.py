"""Single-loop cron scheduler for the batch jobs."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from croniter import croniter

logger = logging.getLogger(__name__)


@dataclass
class CronJob:
    """A coroutine function run on a cron schedule."""

    name: str
    expression: str
    func: Callable[[], Awaitable[Any]]

    def next_run(self, after: datetime) -> datetime:
        return croniter(self.expression, after).get_next(datetime)


class CronScheduler:
    """Runs cron jobs in local civil time from one loop.

    Jobs due at the same moment run one after another in registration
    order, and a job never starts while another is running. A failing job
    is logged and the loop carries on.
    """

    def __init__(
        self,
        jobs: List[CronJob],
        timezone: str,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize scheduler.

        Args:
            jobs: Jobs to run.
            timezone: IANA zone the cron expressions are written in.
            clock: Returns the current aware time; defaults to the wall clock.
        """
        for job in jobs:
            if not croniter.is_valid(job.expression):
                raise ValueError(f"Invalid cron expression for {job.name}: {job.expression!r}")
        self.jobs = jobs
        self.zone = ZoneInfo(timezone)
        self._clock = clock or (lambda: datetime.now(self.zone))

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    def next_due(self, after: datetime) -> Tuple[datetime, List[CronJob]]:
        """The next fire time after ``after`` and the jobs due then."""
        after = after.astimezone(self.zone)
        upcoming = [(job.next_run(after), job) for job in self.jobs]
        when = min(t for t, _ in upcoming)
        return when, [job for t, job in upcoming if t == when]

    async def run_jobs(self, jobs: List[CronJob]) -> None:
        """Run jobs sequentially, isolating failures."""
        for job in jobs:
            logger.info(f"Running scheduled job {job.name}")
            try:
                await job.func()
                logger.info(f"Scheduled job {job.name} complete")
            except Exception as e:
                logger.exception(f"Scheduled job {job.name} failed: {e}")

    async def _loop(self) -> None:
        logger.info(
            "Cron scheduler started: "
            + ", ".join(f"{j.name}={j.expression}" for j in self.jobs)
        )
        cursor = self._clock()
        while self._running:
            when, due = self.next_due(max(self._clock(), cursor))
            wait_seconds = max((when - self._clock()).total_seconds(), 0)
            logger.debug(
                f"Next cron run at {when.isoformat()} ({wait_seconds:.0f}s): "
                f"{[j.name for j in due]}"
            )

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=wait_seconds)
                break
            except asyncio.TimeoutError:
                pass

            await self.run_jobs(due)
            cursor = when

        logger.info("Cron scheduler stopped")

    def start(self) -> Optional[asyncio.Task]:
        """Start the scheduler loop, unless there are no jobs."""
        if not self.jobs:
            logger.info("No scheduled jobs configured")
            return None
        self._running = True
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop())
        return self._task

    async def stop(self) -> None:
        self._running = False
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
