"""Durable follow-up reminders."""

from followup_bot.reminders.checker import ReminderChecker, TickResult
from followup_bot.reminders.email import ReminderMailer
from followup_bot.reminders.store import ReminderStore

__all__ = [
    "ReminderChecker",
    "ReminderMailer",
    "ReminderStore",
    "TickResult",
]
