"""Tests for the cron scheduler."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from conftest import TZ

from followup_bot.scheduler.cron import CronJob, CronScheduler


def make_scheduler(*jobs: CronJob) -> CronScheduler:
    return CronScheduler(list(jobs), "America/New_York")


class TestCronScheduler:
    """Tests for CronScheduler."""

    def test_invalid_expression(self):
        with pytest.raises(ValueError):
            make_scheduler(CronJob("broken", "not a cron", AsyncMock()))

    def test_next_due_groups_simultaneous_jobs(self):
        """Jobs due at the same instant are returned together, in order."""
        daily = CronJob("daily_scan", "0 9 * * *", AsyncMock())
        weekly = CronJob("weekly_summary", "0 9 * * 1", AsyncMock())
        scheduler = make_scheduler(daily, weekly)

        when, due = scheduler.next_due(datetime(2026, 10, 19, 8, 0, tzinfo=TZ))
        assert when == datetime(2026, 10, 19, 9, 0, tzinfo=TZ)
        assert [j.name for j in due] == ["daily_scan", "weekly_summary"]

        when, due = scheduler.next_due(datetime(2026, 10, 19, 9, 0, tzinfo=TZ))
        assert when == datetime(2026, 10, 20, 9, 0, tzinfo=TZ)
        assert [j.name for j in due] == ["daily_scan"]

    def test_next_due_uses_local_time(self):
        """A UTC reference is converted before matching."""
        scheduler = make_scheduler(CronJob("daily_scan", "0 9 * * *", AsyncMock()))
        when, _ = scheduler.next_due(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))
        assert when == datetime(2026, 10, 19, 9, 0, tzinfo=TZ)
        assert when.hour == 9

    @pytest.mark.asyncio
    async def test_run_jobs_isolates_failures(self):
        """One failing job does not stop the next."""
        failing = CronJob("daily_scan", "0 9 * * *", AsyncMock(side_effect=RuntimeError("x")))
        passing = CronJob("weekly_summary", "0 9 * * 1", AsyncMock())
        await make_scheduler(failing, passing).run_jobs([failing, passing])
        passing.func.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        scheduler = make_scheduler(CronJob("daily_scan", "0 9 * * *", AsyncMock()))
        task = scheduler.start()
        await asyncio.sleep(0)
        await scheduler.stop()
        assert task.done()
        scheduler.jobs[0].func.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_jobs_no_task(self):
        assert make_scheduler().start() is None

    @pytest.mark.asyncio
    async def test_loop_runs_due_job(self):
        """A job due now runs on the first pass of the loop."""
        fired = asyncio.Event()

        async def job() -> None:
            fired.set()

        now = datetime(2026, 10, 19, 8, 59, 59, 999000, tzinfo=TZ)
        scheduler = CronScheduler(
            [CronJob("daily_scan", "0 9 * * *", job)],
            "America/New_York",
            clock=lambda: now,
        )
        scheduler.start()
        await asyncio.wait_for(fired.wait(), timeout=2)
        await scheduler.stop()
