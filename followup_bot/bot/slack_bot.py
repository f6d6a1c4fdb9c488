"""Slack integration for the follow-up bot using Slack Bolt."""

import logging
from typing import Awaitable, Callable, Optional

from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.async_app import AsyncApp
from slack_sdk.web.async_client import AsyncWebClient

from followup_bot.logging import set_correlation_id
from followup_bot.models.message import InboundMessage
from followup_bot.state import BotState

logger = logging.getLogger(__name__)

# Takes the inbound message and returns the reply text (or None for no reply)
MessageHandler = Callable[[InboundMessage], Awaitable[Optional[str]]]

FALLBACK_ERROR_MESSAGE = "Something went wrong processing your message. Please try again."


class SlackBot:
    """Slack bot that listens to one channel over Socket Mode."""

    def __init__(
        self,
        bot_token: str,
        app_token: str,
        state: BotState,
        channel_id: str = "",
        channel_name: str = "",
        bot_user_id: str = "",
        message_handler: Optional[MessageHandler] = None,
    ):
        """Initialize Slack bot.

        Args:
            bot_token: Slack bot OAuth token (xoxb-...).
            app_token: Slack app-level token for Socket Mode (xapp-...).
            state: Shared state holding the de-duplication window.
            channel_id: Channel ID to monitor and post to.
            channel_name: Channel name, used to find the id when none is set.
            bot_user_id: The bot's own user id, whose messages are ignored.
            message_handler: Coroutine producing the reply for a message.
        """
        self.bot_token = bot_token
        self.app_token = app_token
        self.state = state
        self.channel_id = channel_id
        self.channel_name = channel_name.lstrip("#")
        self.bot_user_id = bot_user_id
        self.message_handler = message_handler

        # Initialize Slack Bolt app
        self.app = AsyncApp(token=bot_token)
        self._setup_handlers()

        self._handler: Optional[AsyncSocketModeHandler] = None

    @property
    def client(self) -> AsyncWebClient:
        return self.app.client

    def _setup_handlers(self) -> None:
        """Set up Slack event handlers."""

        @self.app.event("message")
        async def handle_message(event: dict, say: Callable) -> None:
            """Handle incoming messages."""
            await self.handle_event(event, say)

    async def handle_event(self, event: dict, say: Callable) -> bool:
        """Process one message event.

        Args:
            event: Slack message event payload.
            say: Bolt ``say`` bound to the event's channel.

        Returns:
            True if the message was handed to the message handler.
        """
        # Ignore bots, edits, deletions and joins
        if event.get("bot_id") or event.get("subtype"):
            return False

        if not self.channel_id or event.get("channel") != self.channel_id:
            return False

        user = event.get("user", "")
        if self.bot_user_id and user == self.bot_user_id:
            return False

        text = (event.get("text") or "").strip()
        if not text:
            return False

        ts = event.get("ts", "")
        if not self.state.dedup.check_and_mark(ts):
            logger.info(f"Ignoring redelivered message {ts}")
            return False

        set_correlation_id(ts)
        logger.info(f"Received message from {user}: {text}")

        if not self.message_handler:
            return False

        message = InboundMessage(
            text=text,
            user_id=user,
            channel_id=event.get("channel", ""),
            ts=ts,
            thread_ts=event.get("thread_ts"),
        )
        try:
            response = await self.message_handler(message)
            if response:
                await say(text=response, thread_ts=message.thread_ts)
        except Exception as e:
            logger.exception(f"Error handling message {ts}: {e}")
            await say(text=FALLBACK_ERROR_MESSAGE, thread_ts=message.thread_ts)
        return True

    async def resolve_channel_id(self) -> Optional[str]:
        """Find the monitored channel's id from its name, if not configured.

        Returns:
            The channel id, or None when it could not be found.
        """
        if self.channel_id:
            return self.channel_id
        if not self.channel_name:
            return None

        cursor: Optional[str] = None
        try:
            while True:
                response = await self.client.conversations_list(
                    types="public_channel,private_channel",
                    limit=200,
                    cursor=cursor,
                )
                for channel in response.get("channels") or []:
                    if channel.get("name") == self.channel_name:
                        self.channel_id = channel["id"]
                        logger.info(f"Resolved #{self.channel_name} to {self.channel_id}")
                        return self.channel_id
                cursor = (response.get("response_metadata") or {}).get("next_cursor")
                if not cursor:
                    break
        except Exception as e:
            logger.error(f"Failed to look up channel #{self.channel_name}: {e}")
            return None

        logger.error(f"Channel #{self.channel_name} not found or bot is not a member")
        return None

    async def start(self) -> None:
        """Connect to Slack in Socket Mode."""
        logger.info("Starting Slack bot in Socket Mode...")
        self._handler = AsyncSocketModeHandler(self.app, self.app_token)
        await self._handler.connect_async()

    async def stop(self) -> None:
        """Stop the Slack bot."""
        if self._handler:
            logger.info("Stopping Slack bot...")
            await self._handler.close_async()
            self._handler = None

    async def post_message(
        self,
        text: str,
        thread_ts: Optional[str] = None,
        channel: Optional[str] = None,
    ) -> Optional[str]:
        """Post a message to the configured channel.

        Args:
            text: Message text to post.
            thread_ts: Optional thread timestamp to reply in a thread.
            channel: Channel override.

        Returns:
            The posted message's timestamp, or None on failure.
        """
        target = channel or self.channel_id
        if not target:
            logger.error("No channel to post to")
            return None
        try:
            response = await self.client.chat_postMessage(
                channel=target,
                text=text,
                thread_ts=thread_ts,
                unfurl_links=False,
                unfurl_media=False,
            )
            return response.get("ts")
        except Exception as e:
            logger.error(f"Failed to post message: {e}")
            return None
