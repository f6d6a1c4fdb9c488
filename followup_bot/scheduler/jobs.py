"""Scheduled batch jobs: digests, alerts and the contact-date poller."""

import logging
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from followup_bot.ai.suggestions import SuggestionService
from followup_bot.board.client import BoardError
from followup_bot.board.mutations import RecordMutations
from followup_bot.board.queries import Communication, Offering, RecordQueries
from followup_bot.bot import messages
from followup_bot.config import COMMITTED_STATUSES, STALE_AFTER_DAYS, ScheduleConfig
from followup_bot.models.record import Record
from followup_bot.resolution.identity import IdentityResolver
from followup_bot.scheduler.cron import CronJob
from followup_bot.state import BotState
from followup_bot.utils import local_today, parse_amount

logger = logging.getLogger(__name__)

Poster = Callable[[str], Awaitable[Any]]


class ScheduledJobs:
    """The bot's time-triggered jobs.

    Each job reads the board, possibly writes to it, and posts to the
    channel. Board errors from the initial read propagate to the scheduler,
    which logs them; errors on individual records are logged and skipped.
    """

    def __init__(
        self,
        config: ScheduleConfig,
        state: BotState,
        queries: RecordQueries,
        mutations: RecordMutations,
        identity: IdentityResolver,
        suggestions: SuggestionService,
        post: Poster,
        clock: Optional[Callable[[], date]] = None,
    ):
        """Initialize jobs.

        Args:
            config: Cron expressions and timezone.
            state: Shared state holding the contact snapshot.
            queries: Board reads.
            mutations: Board writes.
            identity: Used to tag assignees in the digest.
            suggestions: Suggested actions for the digest.
            post: Coroutine posting a message to the channel.
            clock: Returns today's local date; defaults to the wall clock.
        """
        self.config = config
        self.state = state
        self.queries = queries
        self.mutations = mutations
        self.identity = identity
        self.suggestions = suggestions
        self.post = post
        self._today = clock or (lambda: local_today(config.timezone))

    def cron_jobs(self) -> List[CronJob]:
        return [
            CronJob("daily_scan", self.config.daily_scan, self.morning),
            CronJob("weekly_summary", self.config.weekly_summary, self.weekly_summary),
            CronJob("stale_alerts", self.config.stale_alerts, self.stale_alerts),
            CronJob("contact_poll", self.config.contact_poll, self.contact_poll),
        ]

    async def morning(self) -> None:
        """Daily digest followed by the going-cold check."""
        try:
            await self.daily_scan()
        except Exception as e:
            logger.exception(f"Daily scan failed: {e}")
        await self.going_cold()

    async def _digest_context(self, today: date) -> Tuple[List[Communication], List[Offering]]:
        try:
            comms = await self.queries.get_recent_communications(7, today=today)
        except BoardError as e:
            logger.warning(f"Could not load recent communications: {e}")
            comms = []
        try:
            offerings = await self.queries.get_active_offerings()
        except BoardError as e:
            logger.warning(f"Could not load active offerings: {e}")
            offerings = []
        return comms, offerings

    async def daily_scan(self) -> Dict[str, int]:
        """Post the overdue and due-today digest.

        Returns:
            Counts under "overdue" and "due_today".
        """
        records = await self.queries.get_active_records()
        today = self._today()

        overdue = [r for r in records if r.is_overdue(today)]
        due_today = [r for r in records if r.next_follow_up == today]

        suggestions: Dict[str, str] = {}
        if due_today:
            comms, offerings = await self._digest_context(today)
            texts = await self.suggestions.suggest_many(due_today, today, comms, offerings)
            suggestions = {r.id: text for r, text in zip(due_today, texts)}

        assignee_map = await self.identity.board_to_platform_map()
        await self.post(
            messages.format_daily_digest(
                overdue, due_today, today, suggestions, assignee_map
            )
        )
        logger.info(
            f"Daily scan complete. Overdue: {len(overdue)}, due today: {len(due_today)}"
        )
        return {"overdue": len(overdue), "due_today": len(due_today)}

    async def going_cold(self) -> int:
        """Flag records past their tier's cold threshold.

        The marker is added and the next follow-up set to today. An alert is
        posted only when the marker is newly added, so each cold spell is
        announced once.

        Returns:
            Number of newly flagged records.
        """
        records = await self.queries.get_active_records()
        today = self._today()

        flagged = 0
        for record in records:
            tier = record.cadence
            days = record.days_since_contact(today)
            if tier is None or days is None or days < tier.cold_after:
                continue
            try:
                newly_cold = await self.mutations.add_going_cold_marker(record)
                await self.mutations.update_next_follow_up(record.id, today)
            except BoardError as e:
                logger.error(f"Going-cold update failed for {record.id}: {e}")
                continue
            if newly_cold:
                flagged += 1
                await self.post(messages.format_going_cold_alert(record, days, tier))

        logger.info(f"Going-cold check complete. {flagged} newly cold investor(s)")
        return flagged

    @staticmethod
    def health_counts(records: List[Record], today: date) -> Dict[str, int]:
        """Bucket records into stale, going cold and on track."""
        health = {"on_track": 0, "going_cold": 0, "stale": 0}
        for record in records:
            days = record.days_since_contact(today)
            tier = record.cadence
            if days is not None and days >= STALE_AFTER_DAYS:
                health["stale"] += 1
            elif tier and days is not None and days >= tier.cold_after:
                health["going_cold"] += 1
            else:
                health["on_track"] += 1
        return health

    async def weekly_summary(self) -> None:
        records = await self.queries.get_all_records()
        today = self._today()

        status_counts = messages.group_counts([r.status or "Unknown" for r in records])
        deal_counts = messages.group_counts(
            [r.deal_interest or "Unspecified" for r in records]
        )
        total_committed = sum(
            parse_amount(r.investment_interest)
            for r in records
            if r.status in COMMITTED_STATUSES
        )

        await self.post(
            messages.format_weekly_summary(
                status_counts,
                self.health_counts(records, today),
                deal_counts,
                total_committed,
                today,
            )
        )
        logger.info(f"Weekly summary posted for {len(records)} investors")

    async def stale_alerts(self) -> int:
        """Post the stale investor list, if there is anyone on it."""
        records = await self.queries.get_active_records()
        today = self._today()
        stale = [
            r
            for r in records
            if r.last_contact is not None
            and (today - r.last_contact).days >= STALE_AFTER_DAYS
        ]
        if stale:
            await self.post(messages.format_stale_alerts(stale, today))
        logger.info(f"Stale alerts complete. {len(stale)} stale investor(s)")
        return len(stale)

    async def contact_poll(self) -> int:
        """Advance next follow-up when a last-contact date changes on the board.

        The first poll after start only records the current dates. Records
        first seen on a later poll are recorded too, without rescheduling.

        Returns:
            Number of records rescheduled.
        """
        records = await self.queries.get_active_records()
        snapshot = self.state.contact_snapshot

        # Forget records that left the active groups
        present = {record.id for record in records}
        for record_id in set(snapshot) - present:
            del snapshot[record_id]

        if not self.state.snapshot_seeded:
            for record in records:
                snapshot[record.id] = record.last_contact
            self.state.snapshot_seeded = True
            logger.info(f"Contact snapshot seeded with {len(records)} records")
            return 0

        updated = 0
        for record in records:
            if record.id not in snapshot:
                snapshot[record.id] = record.last_contact
                continue

            last_contact = record.last_contact
            tier = record.cadence
            if last_contact and last_contact != snapshot[record.id] and tier:
                next_date = last_contact + timedelta(days=tier.auto_next_days)
                try:
                    await self.mutations.update_next_follow_up(record.id, next_date)
                    await self.mutations.remove_going_cold_marker(record)
                except BoardError as e:
                    logger.error(f"Auto-reschedule failed for {record.id}: {e}")
                    continue
                logger.info(
                    f"Auto-updated next follow-up for {record.clean_name}: {next_date}"
                )
                updated += 1
            snapshot[record.id] = last_contact

        logger.info(f"Contact poll complete. {updated} follow-up(s) auto-calculated")
        return updated
