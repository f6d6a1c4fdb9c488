"""Direct-message delivery with an in-channel fallback."""

import logging
from dataclasses import dataclass
from typing import Optional

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from followup_bot.utils import escape_mrkdwn

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    """How a notification reached its target, if it did."""

    dm_sent: bool = False
    channel_fallback: bool = False

    @property
    def delivered(self) -> bool:
        return self.dm_sent or self.channel_fallback


class NotificationManager:
    """Sends messages to individual users.

    A direct message is tried first. When Slack rejects it (missing
    ``im:write`` scope, DMs disabled) the user is mentioned in the
    monitored channel instead.
    """

    def __init__(self, client: AsyncWebClient, channel_id: str = ""):
        """Initialize manager.

        Args:
            client: Slack Web API client.
            channel_id: Channel used for the mention fallback.
        """
        self.client = client
        self.channel_id = channel_id

    async def send_direct(
        self, user_id: str, text: str, fallback_text: Optional[str] = None
    ) -> DeliveryResult:
        """Send a DM, falling back to an in-channel mention.

        Args:
            user_id: Slack user to reach.
            text: DM text.
            fallback_text: Channel text; defaults to the DM text prefixed
                with a mention.

        Returns:
            Which path, if any, delivered the message.
        """
        try:
            opened = await self.client.conversations_open(users=user_id)
            dm_channel = (opened.get("channel") or {}).get("id")
            if dm_channel:
                await self.client.chat_postMessage(channel=dm_channel, text=text)
                logger.info(f"DM sent to {user_id}")
                return DeliveryResult(dm_sent=True)
        except SlackApiError as e:
            code = e.response.get("error") if e.response is not None else str(e)
            logger.warning(f"Could not DM {user_id}: {code}")
            if code in ("missing_scope", "not_allowed_token_type"):
                logger.warning("Bot may be missing the im:write scope")
        except Exception as e:
            logger.warning(f"Could not DM {user_id}: {e}")

        if not self.channel_id:
            return DeliveryResult()

        try:
            await self.client.chat_postMessage(
                channel=self.channel_id,
                text=fallback_text or f"<@{user_id}> {text}",
            )
            logger.info(f"Channel mention sent for {user_id}")
            return DeliveryResult(channel_fallback=True)
        except Exception as e:
            logger.error(f"Channel fallback also failed for {user_id}: {e}")
            return DeliveryResult()

    async def notify_assignment(
        self,
        user_id: str,
        subject_name: str,
        date_text: Optional[str],
        link: str,
        assigned_by: Optional[str] = None,
    ) -> DeliveryResult:
        """Tell a teammate they own a follow-up.

        Args:
            user_id: Assignee's Slack user id.
            subject_name: Investor display name.
            date_text: Human-readable due date.
            link: Record permalink.
            assigned_by: Slack user id of the requester.
        """
        name = escape_mrkdwn(subject_name)
        by_date = f" by *{date_text}*" if date_text else ""
        assigner = f"<@{assigned_by}>" if assigned_by else "the team"
        link_text = f"\n:point_right: <{link}|Open in Monday.com>" if link else ""

        dm = (
            f"Hey! :wave: You've been assigned to follow up with *{name}*{by_date}. "
            f"Assigned by {assigner}.{link_text}"
        )
        mention = (
            f"<@{user_id}> :mega: You've been assigned to follow up with "
            f"*{name}*{by_date}.{link_text}"
        )
        return await self.send_direct(user_id, dm, fallback_text=mention)
