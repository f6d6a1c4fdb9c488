"""Tests for direct-message delivery."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from slack_sdk.errors import SlackApiError

from followup_bot.bot.notifications import NotificationManager


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.conversations_open = AsyncMock(return_value={"channel": {"id": "D0DM"}})
    client.chat_postMessage = AsyncMock(return_value={"ok": True, "ts": "1.0"})
    return client


class TestNotificationManager:
    """Tests for NotificationManager."""

    @pytest.mark.asyncio
    async def test_dm_success(self, client):
        """A DM goes to the opened conversation."""
        manager = NotificationManager(client, channel_id="C123")
        result = await manager.send_direct("U0ANTON", "hello")
        assert result.dm_sent
        assert not result.channel_fallback
        client.chat_postMessage.assert_awaited_once_with(channel="D0DM", text="hello")

    @pytest.mark.asyncio
    async def test_scope_error_falls_back_to_channel(self, client):
        """A rejected DM becomes a mention in the channel."""
        client.conversations_open.side_effect = SlackApiError(
            "missing_scope", {"ok": False, "error": "missing_scope"}
        )
        manager = NotificationManager(client, channel_id="C123")
        result = await manager.send_direct("U0ANTON", "hello")
        assert result.channel_fallback
        assert result.delivered
        kwargs = client.chat_postMessage.await_args.kwargs
        assert kwargs["channel"] == "C123"
        assert kwargs["text"] == "<@U0ANTON> hello"

    @pytest.mark.asyncio
    async def test_no_channel_no_fallback(self, client):
        client.conversations_open.side_effect = RuntimeError("network")
        manager = NotificationManager(client)
        result = await manager.send_direct("U0ANTON", "hello")
        assert not result.delivered
        client.chat_postMessage.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_both_paths_fail(self, client):
        client.conversations_open.side_effect = RuntimeError("network")
        client.chat_postMessage.side_effect = RuntimeError("still down")
        manager = NotificationManager(client, channel_id="C123")
        assert not (await manager.send_direct("U0ANTON", "hello")).delivered

    @pytest.mark.asyncio
    async def test_assignment_text(self, client):
        """The DM names the investor, date and assigner."""
        manager = NotificationManager(client, channel_id="C123")
        await manager.notify_assignment(
            "U0ANTON", "Jalin Moore", "Fri, Oct 23", "https://x/1001", assigned_by="U0REQ"
        )
        text = client.chat_postMessage.await_args.kwargs["text"]
        assert "follow up with *Jalin Moore* by *Fri, Oct 23*" in text
        assert "Assigned by <@U0REQ>" in text
        assert "<https://x/1001|Open in Monday.com>" in text

    @pytest.mark.asyncio
    async def test_assignment_fallback_mentions_user(self, client):
        client.conversations_open.side_effect = SlackApiError(
            "cannot_dm_bot", {"ok": False, "error": "cannot_dm_bot"}
        )
        manager = NotificationManager(client, channel_id="C123")
        await manager.notify_assignment("U0ANTON", "Jalin Moore", None, "")
        text = client.chat_postMessage.await_args.kwargs["text"]
        assert text.startswith("<@U0ANTON> :mega:")
        assert " by " not in text
