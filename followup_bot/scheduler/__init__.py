"""Time-triggered batch jobs."""

from followup_bot.scheduler.cron import CronJob, CronScheduler
from followup_bot.scheduler.jobs import ScheduledJobs

__all__ = ["CronJob", "CronScheduler", "ScheduledJobs"]
