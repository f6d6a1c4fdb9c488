"""Data models for records, intents, reminders and messages."""

from followup_bot.models.intent import Action, Intent, RawIntent, Slot, validate_intent
from followup_bot.models.message import InboundMessage
from followup_bot.models.record import BoardUser, CreatedItem, PersonRef, Record
from followup_bot.models.reminder import Reminder, ReminderStatus

__all__ = [
    "Action",
    "Intent",
    "RawIntent",
    "Slot",
    "validate_intent",
    "InboundMessage",
    "BoardUser",
    "CreatedItem",
    "PersonRef",
    "Record",
    "Reminder",
    "ReminderStatus",
]
