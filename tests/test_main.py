"""Tests for the service wiring in main."""

import signal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from followup_bot.bot.router import CLARIFY_MESSAGE
from followup_bot.main import FollowUpBot
from followup_bot.models.intent import ListOverdueIntent
from followup_bot.models.message import InboundMessage


@pytest.fixture
def bot(bot_config, tmp_path) -> FollowUpBot:
    """Create the service with the Slack app mocked out."""
    bot_config.reminders.store_path = str(tmp_path / "reminders.json")
    bot_config.llm.enabled = False
    bot_config.webhook.enabled = False
    with patch("followup_bot.bot.slack_bot.AsyncApp") as MockApp:
        mock_app = MagicMock()
        mock_app.event = MagicMock(return_value=lambda f: f)
        MockApp.return_value = mock_app
        return FollowUpBot(bot_config)


class TestFollowUpBot:
    """Tests for FollowUpBot."""

    def test_components_share_state(self, bot):
        assert bot.router.state is bot.state
        assert bot.jobs.state is bot.state
        assert bot.slack.state is bot.state
        assert bot.scheduler is not None
        assert bot.webhook is None

    @pytest.mark.asyncio
    async def test_handle_message_normalizes_and_routes(self, bot):
        """Quotes and whitespace are normalized before classification."""
        bot.classifier.classify = AsyncMock(return_value=ListOverdueIntent(confidence=1.0))
        bot.router.route = AsyncMock(return_value="reply")
        message = InboundMessage(
            text="  who’s   overdue?  ", user_id="U0REQ", channel_id="C123", ts="1.0"
        )

        assert await bot.handle_message(message) == "reply"
        classified_text = bot.classifier.classify.await_args.args[0]
        assert classified_text == "who's overdue?"
        routed = bot.router.route.await_args.args[1]
        assert routed.text == classified_text
        assert routed.user_id == "U0REQ"

    @pytest.mark.asyncio
    async def test_invalid_config_refuses_to_start(self, bot):
        bot.config.slack.bot_token = ""
        with pytest.raises(ValueError):
            await bot.run()

    @pytest.mark.asyncio
    async def test_shutdown_stops_everything(self, bot):
        bot._running = True
        bot.checker.stop = AsyncMock()
        bot.scheduler.stop = AsyncMock()
        bot.mailer.close = AsyncMock()
        bot.board.close = AsyncMock()
        bot.llm.close = AsyncMock()
        bot.slack.stop = AsyncMock(side_effect=RuntimeError("already closed"))

        await bot._shutdown()

        bot.checker.stop.assert_awaited_once()
        bot.scheduler.stop.assert_awaited_once()
        bot.board.close.assert_awaited_once()
        assert bot._shutdown_event.is_set()

    @pytest.mark.asyncio
    async def test_low_confidence_clarifies_once(self, bot):
        """A vague message gets exactly one clarifying reply and no board work."""
        bot.config.llm.enabled = True
        bot.llm.complete = AsyncMock(
            return_value='{"action": "log_touchpoint", "investorName": "Jalin", '
            '"confidence": 0.3}'
        )
        bot.queries.get_active_records = AsyncMock()
        say = AsyncMock()
        event = {
            "type": "message",
            "channel": "C123",
            "user": "U0REQ",
            "text": "jalin maybe something",
            "ts": "1700000000.0002",
        }

        assert await bot.slack.handle_event(event, say) is True
        assert await bot.slack.handle_event(event, say) is False

        say.assert_awaited_once_with(text=CLARIFY_MESSAGE, thread_ts=None)
        bot.queries.get_active_records.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_signal_keeps_single_shutdown_task(self, bot):
        """Repeated signals share one shutdown task that is held until done."""
        bot._shutdown = AsyncMock()
        bot._signal_handler(signal.SIGTERM)
        task = bot._shutdown_task
        bot._signal_handler(signal.SIGINT)

        assert bot._shutdown_task is task
        await task
        bot._shutdown.assert_awaited_once()
