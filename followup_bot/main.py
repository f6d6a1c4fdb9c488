"""Follow-up bot entry point and orchestration."""

import asyncio
import dataclasses
import os
import signal
from typing import Optional

from followup_bot.ai.contact_parser import ContactParser
from followup_bot.ai.intent_parser import IntentParser
from followup_bot.ai.llm import LLMService
from followup_bot.ai.suggestions import SuggestionService
from followup_bot.board.client import BoardClient, BoardError
from followup_bot.board.mutations import RecordMutations
from followup_bot.board.queries import RecordQueries
from followup_bot.bot.classifier import IntentClassifier
from followup_bot.bot.command_parser import FastPathParser, normalize_text
from followup_bot.bot.notifications import NotificationManager
from followup_bot.bot.router import IntentRouter
from followup_bot.bot.slack_bot import SlackBot
from followup_bot.bot.webhook import StatusWebhookHandler, WebhookServer
from followup_bot.config import BotConfig
from followup_bot.logging import configure_logging, get_logger
from followup_bot.models.message import InboundMessage
from followup_bot.reminders.checker import ReminderChecker
from followup_bot.reminders.email import ReminderMailer
from followup_bot.reminders.store import ReminderStore
from followup_bot.resolution.identity import IdentityResolver
from followup_bot.scheduler.cron import CronScheduler
from followup_bot.scheduler.jobs import ScheduledJobs
from followup_bot.state import BotState

logger = get_logger(__name__)

# Max seconds to wait for each background loop during shutdown
SHUTDOWN_TIMEOUT = 10


class FollowUpBot:
    """Wires the Slack front end, the board and the background loops together."""

    def __init__(self, config: BotConfig):
        """Initialize the bot with configuration.

        Args:
            config: Bot configuration object.
        """
        self.config = config
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._shutdown_task: Optional[asyncio.Task] = None
        timezone = config.schedule.timezone

        self.state = BotState()

        # Board access
        self.board = BoardClient(config.board)
        self.queries = RecordQueries(self.board, config.board, self.state)
        self.mutations = RecordMutations(self.board, config.board)

        # Language model services
        self.llm = LLMService(config.llm)
        self.classifier = IntentClassifier(FastPathParser(), IntentParser(self.llm))
        self.suggestions = SuggestionService(self.llm)

        self.slack = SlackBot(
            bot_token=config.slack.bot_token,
            app_token=config.slack.app_token,
            state=self.state,
            channel_id=config.slack.channel_id,
            channel_name=config.slack.channel_name,
            bot_user_id=config.slack.bot_user_id,
            message_handler=self.handle_message,
        )
        self.identity = IdentityResolver(
            self.slack.client, self.queries, config.team_roster, self.state
        )
        self.notifier = NotificationManager(self.slack.client, config.slack.channel_id)

        self.reminders = ReminderStore(config.reminders.store_path)
        self.mailer = ReminderMailer(config.smtp)

        self.router = IntentRouter(
            config=config,
            state=self.state,
            queries=self.queries,
            mutations=self.mutations,
            identity=self.identity,
            reminders=self.reminders,
            notifier=self.notifier,
            contact_parser=ContactParser(self.llm),
        )

        self.checker = ReminderChecker(
            store=self.reminders,
            queries=self.queries,
            post=self.slack.post_message,
            mailer=self.mailer,
            suggestions=self.suggestions,
            timezone=timezone,
            interval=config.reminders.check_interval,
        )

        self.jobs = ScheduledJobs(
            config=config.schedule,
            state=self.state,
            queries=self.queries,
            mutations=self.mutations,
            identity=self.identity,
            suggestions=self.suggestions,
            post=self.slack.post_message,
        )
        self.scheduler: Optional[CronScheduler] = None
        if config.schedule.enabled:
            self.scheduler = CronScheduler(self.jobs.cron_jobs(), timezone)

        self.webhook: Optional[WebhookServer] = None
        if config.webhook.enabled:
            self.webhook = WebhookServer(
                StatusWebhookHandler(config.board, self.queries, self.slack.post_message),
                host=config.webhook.host,
                port=config.webhook.port,
                path=config.webhook.path,
            )

    async def handle_message(self, message: InboundMessage) -> Optional[str]:
        """Classify a channel message and produce the reply."""
        text = normalize_text(message.text)
        if not text:
            return None
        intent = await self.classifier.classify(text)
        logger.info(
            f"Classified as {intent.action.value} "
            f"(confidence {intent.confidence:.2f}, source {intent.source})"
        )
        return await self.router.route(intent, dataclasses.replace(message, text=text))

    async def _log_startup_summary(self) -> None:
        try:
            records = await self.queries.get_active_records()
        except BoardError as e:
            logger.warning(f"Could not read the investor list at startup: {e}")
            return
        statuses = sorted({r.status for r in records if r.status})
        logger.info(f"Loaded {len(records)} active investors")
        logger.info(f"Statuses in use: {', '.join(statuses) or 'none'}")

    async def _shutdown(self) -> None:
        """Stop the loops, close the clients and disconnect from Slack."""
        if not self._running:
            return
        self._running = False
        logger.info("Shutting down follow-up bot...")

        loops = [("reminder checker", self.checker.stop())]
        if self.scheduler:
            loops.append(("cron scheduler", self.scheduler.stop()))
        for name, stopping in loops:
            try:
                await asyncio.wait_for(stopping, timeout=SHUTDOWN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning(f"Timeout waiting for {name} to stop")
            except Exception as e:
                logger.warning(f"Error stopping {name}: {e}")

        if self.webhook:
            await self.webhook.stop()

        for name, closing in (
            ("mailer", self.mailer.close),
            ("board client", self.board.close),
            ("LLM client", self.llm.close),
            ("Slack bot", self.slack.stop),
        ):
            try:
                await closing()
            except Exception as e:
                logger.warning(f"Error closing {name}: {e}")

        self._shutdown_event.set()
        logger.info("Follow-up bot shutdown complete")

    def _signal_handler(self, sig: signal.Signals) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {sig.name}, initiating graceful shutdown...")
        if self._shutdown_task is None or self._shutdown_task.done():
            self._shutdown_task = asyncio.create_task(self._shutdown())

    async def run(self) -> None:
        """Start every component and wait for a shutdown signal."""
        logger.info("Starting follow-up bot...")

        errors = self.config.validate()
        if errors:
            for error in errors:
                logger.error(f"Config error: {error}")
            raise ValueError(f"Configuration errors: {errors}")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: self._signal_handler(s))

        self._running = True

        loaded = self.reminders.load()
        logger.info(f"Loaded {loaded} pending reminder(s)")

        channel_id = await self.slack.resolve_channel_id()
        if not channel_id:
            raise ValueError(
                f"Could not find Slack channel #{self.config.slack.channel_name}"
            )
        self.notifier.channel_id = channel_id

        await self._log_startup_summary()

        self.checker.start()
        if self.scheduler:
            self.scheduler.start()
        if self.webhook:
            await self.webhook.start()
        await self.slack.start()

        logger.info(f"Follow-up bot is running in channel {channel_id}")

        await self._shutdown_event.wait()


async def main() -> None:
    """Main entry point."""
    log_level = os.environ.get("LOG_LEVEL", "INFO")
    log_format = os.environ.get("LOG_FORMAT", "console")  # "json" for production
    log_file = os.environ.get("LOG_FILE")

    configure_logging(
        level=log_level,
        json_output=log_format.lower() == "json",
        log_file=log_file,
    )

    config = BotConfig.from_env()
    bot = FollowUpBot(config)
    await bot.run()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
