"""Routing of classified intents to action handlers.

The router owns the reply policy: low-confidence or unknown intents get a
single clarification, a missing slot gets one targeted question, and board
failures raised by a handler are turned into a user-facing reply here
rather than by the Slack layer's catch-all.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional

from followup_bot.ai.contact_parser import ContactParser, fallback_contact
from followup_bot.board.client import BoardError, BoardTransientError
from followup_bot.board.mutations import NewContact, RecordMutations
from followup_bot.board.queries import RecordQueries
from followup_bot.bot import messages
from followup_bot.bot.notifications import NotificationManager
from followup_bot.config import (
    CONFIDENCE_THRESHOLD,
    DUPLICATE_THRESHOLD,
    NEW_RECORD_STATUS,
    BotConfig,
    get_cadence_tier,
)
from followup_bot.models.intent import (
    Action,
    AddRecordIntent,
    AssignIntent,
    CheckStatusIntent,
    ContactLookupIntent,
    Intent,
    ListByStatusIntent,
    ListNotContactedIntent,
    LogContactIntent,
    ScheduleIntent,
    Slot,
)
from followup_bot.models.message import InboundMessage
from followup_bot.models.record import Record
from followup_bot.models.reminder import Reminder
from followup_bot.reminders.store import ReminderStore
from followup_bot.resolution.date_parser import NaturalDateInterpreter, ParsedDate
from followup_bot.resolution.identity import IdentityResolver
from followup_bot.resolution.name_match import EntityMatcher, MatchResult, MatchStatus
from followup_bot.state import BotState
from followup_bot.utils import (
    escape_mrkdwn,
    format_date_readable,
    format_time,
    local_now,
    strip_glyphs,
)

logger = logging.getLogger(__name__)

CLARIFY_MESSAGE = (
    "I'm not sure what you need. Are you trying to schedule a follow-up, log a "
    "contact, or check on an investor? Just let me know and I'll help out."
)
RATE_LIMITED_MESSAGE = (
    "Monday.com is rate limiting us right now. Please try again in a minute."
)
BOARD_FAILURE_MESSAGE = (
    "Sorry, something went wrong talking to Monday.com. Please try again."
)
UNREACHABLE_MESSAGE = (
    "Sorry, I could not reach Monday.com right now. Please try again in a moment."
)
NO_RECORDS_MESSAGE = "No active investors found in Monday.com."
DEFAULT_DATE_EXPRESSION = "tomorrow"

_SUBJECT_QUESTIONS: Dict[Action, str] = {
    Action.SCHEDULE: (
        "I'd love to help schedule a follow-up, but I need to know which "
        "investor. Could you include their name?"
    ),
    Action.ASSIGN: "I need to know which investor to assign. Could you include their name?",
    Action.LOG_CONTACT: (
        "Who did you contact? Include the investor's name and I'll log the touchpoint."
    ),
    Action.CHECK_STATUS: "Which investor would you like me to check on? Include their name.",
    Action.ADD_RECORD: (
        "What's the new investor's name? Include it with their phone or email "
        "and I'll add them."
    ),
    Action.CONTACT_LOOKUP: "Whose contact info do you need? Include the investor's name.",
}
_ASSIGNEE_QUESTION = (
    "I need to know who to assign this to. Mention someone by name or tag them with @."
)
_DATE_QUESTION = (
    'When should the follow-up happen? Try something like "tomorrow", '
    '"next Tuesday", or "Friday at 2pm".'
)

Handler = Callable[[Intent, InboundMessage, datetime], Awaitable[str]]


@dataclass
class Resolution:
    """A record lookup: either a record or the reply explaining why not."""

    record: Optional[Record] = None
    error: Optional[str] = None
    hint: str = ""


def bad_date_message(expression: str) -> str:
    return (
        f'I couldn\'t figure out when you mean by "{escape_mrkdwn(expression)}". '
        'Try something like "tomorrow", "next Tuesday", or "Friday at 2pm".'
    )


def _status_matches(status: str, status_filter: str) -> bool:
    haystack = strip_glyphs(status).lower()
    needle = strip_glyphs(status_filter).lower()
    if not needle:
        return False
    # "hot leads" should still find "Hot Lead"
    return needle in haystack or needle.rstrip("s") in haystack


class IntentRouter:
    """Dispatches validated intents to the action handlers."""

    def __init__(
        self,
        config: BotConfig,
        state: BotState,
        queries: RecordQueries,
        mutations: RecordMutations,
        identity: IdentityResolver,
        reminders: ReminderStore,
        notifier: NotificationManager,
        contact_parser: ContactParser,
        matcher: Optional[EntityMatcher] = None,
        dates: Optional[NaturalDateInterpreter] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize router.

        Args:
            config: Bot configuration.
            state: Shared state (the poller's contact snapshot).
            queries: Board reads.
            mutations: Board writes.
            identity: Slack/board identity resolver.
            reminders: Durable reminder store.
            notifier: DM delivery for assignment notices.
            contact_parser: New-contact extraction for add requests.
            matcher: Entity matcher; defaults to the standard threshold.
            dates: Date interpreter; defaults to the configured zone.
            clock: Returns the current local time; defaults to the wall clock.
        """
        self.config = config
        self.state = state
        self.queries = queries
        self.mutations = mutations
        self.identity = identity
        self.reminders = reminders
        self.notifier = notifier
        self.contact_parser = contact_parser
        self.matcher = matcher or EntityMatcher()
        self.duplicate_matcher = EntityMatcher(threshold=DUPLICATE_THRESHOLD)
        self.dates = dates or NaturalDateInterpreter(config.schedule.timezone)
        self._clock = clock or (lambda: local_now(config.schedule.timezone))

        self._handlers: Dict[Action, Handler] = {
            Action.SCHEDULE: self.handle_schedule,
            Action.ASSIGN: self.handle_assign,
            Action.LOG_CONTACT: self.handle_log_contact,
            Action.CHECK_STATUS: self.handle_check_status,
            Action.LIST_OVERDUE: self.handle_list_overdue,
            Action.LIST_BY_STATUS: self.handle_list_by_status,
            Action.LIST_NOT_CONTACTED: self.handle_list_not_contacted,
            Action.ADD_RECORD: self.handle_add_record,
            Action.CONTACT_LOOKUP: self.handle_contact_lookup,
            Action.COUNT: self.handle_count,
            Action.DIAGNOSTIC: self.handle_diagnostic,
        }

    async def route(self, intent: Intent, message: InboundMessage) -> str:
        """Produce the reply for a classified message.

        Args:
            intent: Validated intent.
            message: The inbound message (requester, thread).

        Returns:
            Reply text.
        """
        if intent.action == Action.UNKNOWN or intent.confidence < CONFIDENCE_THRESHOLD:
            logger.info(
                f"Asking for clarification: action={intent.action.value} "
                f"confidence={intent.confidence:.2f}"
            )
            return CLARIFY_MESSAGE

        missing = intent.missing_slots()
        if missing:
            logger.info(f"{intent.action.value} is missing {[s.value for s in missing]}")
            return self.question_for(missing[0], intent.action)

        handler = self._handlers.get(intent.action)
        if handler is None:
            return CLARIFY_MESSAGE

        try:
            return await handler(intent, message, self._clock())
        except BoardTransientError as e:
            logger.error(f"{intent.action.value} hit a board rate limit: {e.details()}")
            return RATE_LIMITED_MESSAGE
        except BoardError as e:
            logger.error(f"{intent.action.value} failed on the board: {e.details()}")
            return BOARD_FAILURE_MESSAGE

    @staticmethod
    def question_for(slot: Slot, action: Action) -> str:
        """The clarifying question for the most important missing slot."""
        if slot == Slot.ASSIGNEE:
            return _ASSIGNEE_QUESTION
        if slot == Slot.DATE:
            return _DATE_QUESTION
        return _SUBJECT_QUESTIONS.get(
            action, "Which investor do you mean? Include their name."
        )

    async def resolve_record(self, name: str) -> Resolution:
        """Fuzzy-match a name against the active records.

        Never raises; failures come back as the reply to send.
        """
        try:
            records = await self.queries.get_active_records()
        except BoardError as e:
            logger.error(f"Could not load records to resolve {name!r}: {e}")
            return Resolution(error=UNREACHABLE_MESSAGE)

        result = self.matcher.match(name, records)
        if result.status == MatchStatus.NO_RECORDS:
            return Resolution(error=NO_RECORDS_MESSAGE)
        if not result.matched:
            return Resolution(error=self._no_match_message(name, result))
        return Resolution(record=result.record, hint=self._alternatives_hint(result))

    @staticmethod
    def _no_match_message(name: str, result: MatchResult) -> str:
        query = escape_mrkdwn(result.query or name)
        if not result.suggestions:
            return (
                f'I couldn\'t find an investor matching "{query}". '
                "Please check the spelling and try again."
            )
        options = "\n".join(f"• {escape_mrkdwn(s)}" for s in result.suggestions)
        return f'I couldn\'t find a close match for "{query}". Did you mean one of these?\n{options}'

    @staticmethod
    def _alternatives_hint(result: MatchResult) -> str:
        if not result.alternatives:
            return ""
        names = ", ".join(escape_mrkdwn(r.clean_name) for r in result.alternatives[:3])
        return f"\n_Not who you meant? Did you mean {names}?_"

    def _parse_date(self, expression: Optional[str], now: datetime) -> Optional[ParsedDate]:
        return self.dates.parse(expression or DEFAULT_DATE_EXPRESSION, now=now)

    async def _requester_email(self, user_id: str) -> Optional[str]:
        profile = await self.identity.get_profile(user_id)
        return profile.get("email") if profile else None

    def _enqueue_reminder(
        self, record: Record, when: datetime, user_id: str, email: Optional[str]
    ) -> None:
        reminder = Reminder.create(
            record_id=record.id,
            subject_name=record.clean_name,
            fire_at=when,
            user_id=user_id,
            user_email=email,
            status=record.status,
            category=record.deal_interest,
            link=record.link,
        )
        self.reminders.add(reminder)

    async def _mirror_follow_up(
        self,
        record: Record,
        today: date,
        next_follow_up: Optional[date],
        last_contact: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> None:
        """Copy a follow-up onto the relationship board when activity logging is on."""
        if not self.config.board.activity_logging:
            return
        try:
            await self.mutations.create_follow_up_activity(
                record,
                today,
                next_follow_up=next_follow_up,
                last_contact=last_contact,
                notes=notes,
            )
        except BoardError as e:
            logger.warning(f"Activity mirror failed for {record.clean_name}: {e}")

    async def _log_touchpoint(self, record: Record, today: date, user_id: str) -> None:
        if not self.config.board.activity_logging:
            return
        try:
            await self.mutations.log_communication(
                f"Touchpoint: {record.clean_name}",
                today,
                deal=record.deal_interest or None,
                notes=f"Logged from Slack by <@{user_id}>",
            )
        except BoardError as e:
            logger.warning(f"Communication log failed for {record.clean_name}: {e}")

    async def handle_schedule(
        self, intent: ScheduleIntent, message: InboundMessage, now: datetime
    ) -> str:
        resolution = await self.resolve_record(intent.subject or "")
        if resolution.error:
            return resolution.error
        record = resolution.record

        expression = intent.date or DEFAULT_DATE_EXPRESSION
        parsed = self._parse_date(expression, now)
        if parsed is None:
            return bad_date_message(expression)

        await self.mutations.update_next_follow_up(record.id, parsed.day)
        self._enqueue_reminder(
            record,
            parsed.when,
            message.user_id,
            await self._requester_email(message.user_id),
        )
        await self._mirror_follow_up(
            record,
            now.date(),
            parsed.day,
            notes=f"Follow-up scheduled from Slack for {expression}",
        )

        time_text = f" at {format_time(parsed.when)}" if parsed.has_explicit_time else ""
        return (
            f"Done! Follow-up with *{escape_mrkdwn(record.clean_name)}* is set for "
            f"*{format_date_readable(parsed.day)}*{time_text}. Monday.com has been "
            "updated. :alarm_clock: I'll remind you when it's time."
            f" :point_right: <{record.link}|Open in Monday>{resolution.hint}"
        )

    async def handle_assign(
        self, intent: AssignIntent, message: InboundMessage, now: datetime
    ) -> str:
        resolution = await self.resolve_record(intent.subject or "")
        if resolution.error:
            return resolution.error
        record = resolution.record

        expression = intent.date or DEFAULT_DATE_EXPRESSION
        parsed = self._parse_date(expression, now)
        if parsed is None:
            return bad_date_message(expression)

        assignee = await self.identity.resolve(intent.assignee or "", intent.assignee_is_tag)
        assignee_name = escape_mrkdwn(assignee.display_name or intent.assignee or "them")

        await self.mutations.update_next_follow_up(record.id, parsed.day)

        if assignee.board_person_id:
            try:
                await self.mutations.assign(record.id, assignee.board_person_id)
                assignment_note = f" and assigned to *{assignee_name}* on Monday.com"
            except BoardError as e:
                logger.error(f"Assignment failed for {record.clean_name}: {e.details()}")
                assignment_note = (
                    " (couldn't update the Assigned To column on Monday.com, "
                    "please assign manually)"
                )
        else:
            assignment_note = (
                f" (I couldn't find *{assignee_name}* in Monday.com to assign "
                "them, please do it manually)"
            )

        if assignee.platform_user_id:
            reminder_user, reminder_email = assignee.platform_user_id, assignee.email
        else:
            reminder_user = message.user_id
            reminder_email = await self._requester_email(message.user_id)
        self._enqueue_reminder(record, parsed.when, reminder_user, reminder_email)
        await self._mirror_follow_up(
            record,
            now.date(),
            parsed.day,
            notes=f"Assigned from Slack to {assignee.display_name or intent.assignee}",
        )

        notification_note = ""
        if assignee.platform_user_id:
            delivery = await self.notifier.notify_assignment(
                assignee.platform_user_id,
                record.clean_name,
                format_date_readable(parsed.day),
                record.link,
                assigned_by=message.user_id,
            )
            if delivery.dm_sent:
                notification_note = " They've been notified via DM."
            elif delivery.channel_fallback:
                notification_note = " They've been tagged in this channel."

        return (
            f"Done! Follow-up with *{escape_mrkdwn(record.clean_name)}* is set for "
            f"*{format_date_readable(parsed.day)}*{assignment_note}.{notification_note}"
            f" :point_right: <{record.link}|Open in Monday>{resolution.hint}"
        )

    async def handle_log_contact(
        self, intent: LogContactIntent, message: InboundMessage, now: datetime
    ) -> str:
        resolution = await self.resolve_record(intent.subject or "")
        if resolution.error:
            return resolution.error
        record = resolution.record

        today = now.date()
        tier = record.cadence
        next_follow_up = today + timedelta(days=tier.auto_next_days) if tier else None

        await self.mutations.update_contact_dates(record.id, today, next_follow_up)
        self.state.contact_snapshot[record.id] = today

        try:
            await self.mutations.remove_going_cold_marker(record)
        except BoardError as e:
            logger.warning(f"Could not clear going-cold marker on {record.id}: {e}")

        await self._mirror_follow_up(
            record,
            today,
            next_follow_up,
            last_contact=today,
            notes=f"Touchpoint logged from Slack by <@{message.user_id}>",
        )
        await self._log_touchpoint(record, today, message.user_id)

        reply = (
            f"Got it! Logged a touchpoint for *{escape_mrkdwn(record.clean_name)}*. "
            f"Last Contact Date set to today ({today.isoformat()})."
        )
        if next_follow_up:
            reply += (
                f"\nNext follow-up auto-set to *{next_follow_up.isoformat()}* based on "
                f"{escape_mrkdwn(record.status)} cadence."
            )
        reply += f"\n:point_right: <{record.link}|Open in Monday>{resolution.hint}"
        return reply

    async def handle_check_status(
        self, intent: CheckStatusIntent, message: InboundMessage, now: datetime
    ) -> str:
        resolution = await self.resolve_record(intent.subject or "")
        if resolution.error:
            return resolution.error
        return messages.format_status_card(resolution.record, now.date()) + resolution.hint

    async def handle_list_overdue(
        self, intent: Intent, message: InboundMessage, now: datetime
    ) -> str:
        records = await self.queries.get_active_records()
        if not records:
            return NO_RECORDS_MESSAGE
        today = now.date()
        overdue = sorted(
            (r for r in records if r.is_overdue(today)),
            key=lambda r: r.next_follow_up,
        )
        return messages.format_overdue_list(overdue, today)

    async def handle_list_by_status(
        self, intent: ListByStatusIntent, message: InboundMessage, now: datetime
    ) -> str:
        if not intent.status_filter:
            return (
                'Which status should I list? Try "hot leads", "warm prospects", '
                '"committed" or "funded".'
            )
        records = await self.queries.get_active_records()
        if not records:
            return NO_RECORDS_MESSAGE
        matching = [r for r in records if _status_matches(r.status, intent.status_filter)]
        return messages.format_status_list(intent.status_filter, matching, now.date())

    async def handle_list_not_contacted(
        self, intent: ListNotContactedIntent, message: InboundMessage, now: datetime
    ) -> str:
        records = await self.queries.get_active_records()
        if not records:
            return NO_RECORDS_MESSAGE
        today = now.date()
        cutoff = today - timedelta(days=intent.days)
        stale = [
            r for r in records if r.last_contact is None or r.last_contact < cutoff
        ]
        return messages.format_not_contacted_list(intent.days, stale, today)

    async def handle_add_record(
        self, intent: AddRecordIntent, message: InboundMessage, now: datetime
    ) -> str:
        contacts: List[NewContact] = []
        if self.contact_parser.llm.enabled:
            contacts = await self.contact_parser.parse(intent.text)
        if not contacts:
            fallback = fallback_contact(intent.text, intent.subject)
            contacts = [fallback] if fallback else []
        if not contacts:
            return (
                "I couldn't pick out any contact details. Include the investor's "
                "name along with their phone or email."
            )

        existing = await self.queries.get_all_records()
        tier = get_cadence_tier(NEW_RECORD_STATUS)
        next_follow_up = now.date() + timedelta(days=tier.auto_next_days) if tier else None

        lines = []
        for contact in contacts:
            duplicate = self.duplicate_matcher.match(contact.name, existing)
            if duplicate.matched:
                lines.append(
                    f":warning: *{escape_mrkdwn(contact.name)}* looks like existing investor "
                    f"*{escape_mrkdwn(duplicate.record.clean_name)}*, skipped. "
                    f"<{duplicate.record.link}|Open in Monday>"
                )
                continue
            try:
                created = await self.mutations.create_record(contact, next_follow_up)
            except BoardError as e:
                logger.error(f"Could not add {contact.name}: {e.details()}")
                lines.append(f":x: Couldn't add *{escape_mrkdwn(contact.name)}* to Monday.com.")
                continue
            existing.append(Record(id=created.id, name=contact.name, link=created.link))
            details = ", ".join(
                escape_mrkdwn(v) for v in (contact.company, contact.email, contact.phone) if v
            )
            lines.append(
                f":white_check_mark: Added *{escape_mrkdwn(contact.name)}*"
                + (f" ({details})" if details else "")
                + f" to New Leads. <{created.link}|Open in Monday>"
            )

        if next_follow_up and any(line.startswith(":white_check_mark:") for line in lines):
            lines.append(f"First follow-up set for *{format_date_readable(next_follow_up)}*.")
        return "\n".join(lines)

    async def handle_contact_lookup(
        self, intent: ContactLookupIntent, message: InboundMessage, now: datetime
    ) -> str:
        resolution = await self.resolve_record(intent.subject or "")
        if resolution.error:
            return resolution.error
        return messages.format_contact_info(resolution.record, intent.field) + resolution.hint

    async def handle_count(self, intent: Intent, message: InboundMessage, now: datetime) -> str:
        records = await self.queries.get_all_records()
        if not records:
            return "No investors found in Monday.com."
        return messages.format_count(records)

    async def handle_diagnostic(
        self, intent: Intent, message: InboundMessage, now: datetime
    ) -> str:
        records = await self.queries.get_active_records()
        if not records:
            return ":x: No active investors found, cannot run the write test."
        result = await self.mutations.run_write_diagnostic(records[0], now.date())
        return messages.format_diagnostic(result)
