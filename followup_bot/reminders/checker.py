"""Background loop that fires due reminders."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional

from followup_bot.ai.suggestions import SuggestionService
from followup_bot.board.client import BoardError
from followup_bot.board.queries import RecordQueries
from followup_bot.bot.messages import format_reminder_notification
from followup_bot.models.record import Record
from followup_bot.models.reminder import Reminder, ReminderStatus
from followup_bot.reminders.email import ReminderMailer
from followup_bot.reminders.store import ReminderStore
from followup_bot.resolution.name_match import EntityMatcher
from followup_bot.utils import local_now

logger = logging.getLogger(__name__)

Poster = Callable[[str], Awaitable[Any]]


@dataclass
class TickResult:
    """Counts from one pass over the due reminders."""

    due: int = 0
    fired: int = 0
    unresolvable: int = 0
    failed: int = 0


class ReminderChecker:
    """Polls the reminder store and notifies users when reminders come due.

    Each due reminder is removed once handled: after a notification was
    attempted, or when its record can no longer be found. A reminder is
    never retried, so one bad entry cannot fire on every tick.
    """

    def __init__(
        self,
        store: ReminderStore,
        queries: RecordQueries,
        post: Poster,
        mailer: ReminderMailer,
        suggestions: SuggestionService,
        timezone: str,
        interval: float = 60,
        matcher: Optional[EntityMatcher] = None,
    ):
        """Initialize checker.

        Args:
            store: Durable reminder queue.
            queries: Board reads for the live records.
            post: Coroutine posting a message to the channel.
            mailer: Reminder email sender.
            suggestions: Suggested-action generator.
            timezone: Local zone for "today".
            interval: Seconds between ticks.
            matcher: Name matcher used when a record id no longer resolves.
        """
        self.store = store
        self.queries = queries
        self.post = post
        self.mailer = mailer
        self.suggestions = suggestions
        self.timezone = timezone
        self.interval = interval
        self.matcher = matcher or EntityMatcher()

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    def find_record(self, reminder: Reminder, records: List[Record]) -> Optional[Record]:
        """Find the reminder's record by id, then by name."""
        for record in records:
            if record.id == str(reminder.record_id):
                return record
        result = self.matcher.match(reminder.subject_name, records)
        if result.matched:
            logger.info(
                f"Reminder {reminder.id}: item {reminder.record_id} not found, "
                f"matched {reminder.subject_name!r} by name to {result.record.id}"
            )
            return result.record
        return None

    @staticmethod
    def context_record(reminder: Reminder) -> Record:
        """A stand-in record built from the reminder's saved context."""
        return Record(
            id=reminder.record_id,
            name=reminder.subject_name,
            status=reminder.status,
            deal_interest=reminder.category,
            link=reminder.link,
        )

    async def tick(self, now: Optional[datetime] = None) -> TickResult:
        """Process every reminder due at ``now``."""
        now = now or local_now(self.timezone)
        due = self.store.due(now)
        result = TickResult(due=len(due))
        if not due:
            return result

        logger.info(f"Processing {len(due)} due reminder(s)")

        records: Optional[List[Record]]
        try:
            records = await self.queries.get_active_records()
        except BoardError as e:
            logger.error(
                f"Could not load records for reminders, firing from saved context: {e}"
            )
            records = None

        for reminder in due:
            try:
                status = await self._process(reminder, records, now)
                if status == ReminderStatus.FIRED:
                    result.fired += 1
                else:
                    result.unresolvable += 1
            except Exception as e:
                result.failed += 1
                logger.error(
                    f"Error processing reminder {reminder.id} "
                    f"({reminder.subject_name}): {e}"
                )
            finally:
                self.store.remove(reminder.id)

        logger.info(
            f"Finished reminders: {result.fired} fired, "
            f"{result.unresolvable} unresolvable, {result.failed} failed"
        )
        return result

    async def _process(
        self, reminder: Reminder, records: Optional[List[Record]], now: datetime
    ) -> ReminderStatus:
        if records is None:
            record = self.context_record(reminder)
        else:
            record = self.find_record(reminder, records)
            if record is None:
                logger.warning(
                    f"Could not find investor {reminder.subject_name!r} "
                    f"(item {reminder.record_id}), dropping reminder {reminder.id}"
                )
                return ReminderStatus.UNRESOLVABLE

        today = now.date()
        suggestion = await self.suggestions.suggest(record, today)

        if reminder.user_email:
            self.mailer.send_later(reminder.user_email, record, today, suggestion)

        await self.post(
            format_reminder_notification(
                record.clean_name,
                reminder.user_id,
                status=record.status,
                deal_interest=record.deal_interest,
                link=record.link or reminder.link,
                suggestion=suggestion,
            )
        )
        logger.info(f"Fired reminder {reminder.id} for {record.clean_name}")
        return ReminderStatus.FIRED

    async def _loop(self) -> None:
        logger.info(f"Reminder checker started (every {self.interval}s)")
        while self._running:
            try:
                await self.tick()
            except Exception as e:
                logger.exception(f"Reminder tick error: {e}")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Reminder checker stopped")

    def start(self) -> asyncio.Task:
        """Start the polling loop as a background task."""
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
