"""Tests for the urgent-status webhook."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp.test_utils import TestClient, TestServer
from conftest import column, make_record

from followup_bot.board.client import BoardError
from followup_bot.board.queries import RecordQueries
from followup_bot.bot.webhook import StatusWebhookHandler, create_webhook_app

PATH = "/monday/webhook"


@pytest.fixture
def queries() -> MagicMock:
    return MagicMock(spec=RecordQueries)


@pytest.fixture
def post() -> AsyncMock:
    return AsyncMock(return_value="1700000000.0001")


@pytest.fixture
def handler(board_config, queries, post) -> StatusWebhookHandler:
    return StatusWebhookHandler(board_config, queries, post)


def make_payload(board_config, label_index=2, **overrides) -> dict:
    event = {
        "boardId": int(board_config.activity_board_id),
        "pulseId": 5001,
        "columnId": board_config.activity.status,
        "value": {"label": {"index": label_index, "text": "Urgent"}},
    }
    event.update(overrides)
    return {"event": event}


def activity_item(board_config) -> dict:
    cols = board_config.activity
    return {
        "id": "5001",
        "name": "Jalin Moore",
        "column_values": [
            column(cols.last_contact, "2026-10-09", json.dumps({"date": "2026-10-09"})),
            column(cols.next_follow_up, "2026-10-23", json.dumps({"date": "2026-10-23"})),
            column(cols.notes, "Wants the Fund III deck", json.dumps({"text": "Wants the Fund III deck"})),
            column(
                cols.linked_record,
                "Jalin Moore",
                json.dumps({"linkedPulseIds": [{"linkedPulseId": 1001}]}),
            ),
        ],
    }


class TestStatusWebhookHandler:
    """Tests for StatusWebhookHandler.handle."""

    @pytest.mark.asyncio
    async def test_challenge_echo(self, handler):
        assert await handler.handle({"challenge": "abc123"}) == {"challenge": "abc123"}

    @pytest.mark.asyncio
    async def test_wrong_board(self, handler, board_config, queries):
        result = await handler.handle(make_payload(board_config, boardId=42))
        assert result == {"notified": False, "reason": "wrong board: 42"}
        queries.get_item.assert_not_called()

    @pytest.mark.asyncio
    async def test_wrong_column(self, handler, board_config):
        result = await handler.handle(make_payload(board_config, columnId="text0"))
        assert result["reason"] == "wrong column: text0"

    @pytest.mark.asyncio
    async def test_not_urgent(self, handler, board_config, post):
        """Other labels on the status column are ignored."""
        result = await handler.handle(make_payload(board_config, label_index=1))
        assert result == {"notified": False, "reason": "not urgent status (label: 1)"}
        post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_urgent_posts_card(self, handler, board_config, queries, post):
        """An urgent label posts a card with the linked investor's contact info."""
        queries.get_item.return_value = activity_item(board_config)
        queries.get_record.return_value = make_record(
            email="jalin@fund.com", phone="555-123-4567"
        )

        result = await handler.handle(make_payload(board_config))

        assert result == {"notified": True, "reason": None}
        queries.get_item.assert_awaited_once_with("5001")
        queries.get_record.assert_awaited_once_with("1001")
        text = post.await_args.args[0]
        assert text.startswith(":rotating_light: *URGENT FOLLOW-UP NEEDED*")
        assert "*Investor:* Jalin Moore" in text
        assert "*Next Follow-Up:* 2026-10-23" in text
        assert "*Notes:* Wants the Fund III deck" in text
        assert "*Email:* jalin@fund.com" in text
        assert f"/boards/{board_config.activity_board_id}/pulses/5001" in text

    @pytest.mark.asyncio
    async def test_missing_linked_record(self, handler, board_config, queries, post):
        """The card still posts when the linked investor cannot be read."""
        queries.get_item.return_value = activity_item(board_config)
        queries.get_record.side_effect = BoardError("denied")
        result = await handler.handle(make_payload(board_config))
        assert result["notified"] is True
        assert "*Email:* -" in post.await_args.args[0]

    @pytest.mark.asyncio
    async def test_item_fetch_failed(self, handler, board_config, queries):
        queries.get_item.side_effect = BoardError("down")
        result = await handler.handle(make_payload(board_config))
        assert result == {"notified": False, "reason": "item fetch failed"}

    @pytest.mark.asyncio
    async def test_post_failure(self, handler, board_config, queries, post):
        queries.get_item.return_value = activity_item(board_config)
        queries.get_record.return_value = None
        post.return_value = None
        result = await handler.handle(make_payload(board_config))
        assert result == {"notified": False, "reason": "chat post failed"}


class TestWebhookApp:
    """Tests for the HTTP endpoint."""

    @pytest.mark.asyncio
    async def test_challenge_over_http(self, handler):
        async with TestClient(TestServer(create_webhook_app(handler, PATH))) as client:
            response = await client.post(PATH, json={"challenge": "xyz"})
            assert response.status == 200
            assert await response.json() == {"challenge": "xyz"}

    @pytest.mark.asyncio
    async def test_invalid_json_still_200(self, handler):
        async with TestClient(TestServer(create_webhook_app(handler, PATH))) as client:
            response = await client.post(PATH, data="not json")
            assert response.status == 200
            assert (await response.json())["reason"] == "invalid json"

    @pytest.mark.asyncio
    async def test_handler_crash_still_200(self, board_config, queries, post):
        """Processing errors are reported in the body, never as a failure status."""
        handler = StatusWebhookHandler(board_config, queries, post)
        handler.handle = AsyncMock(side_effect=RuntimeError("boom"))
        async with TestClient(TestServer(create_webhook_app(handler, PATH))) as client:
            response = await client.post(PATH, json={"event": {}})
            assert response.status == 200
            body = await response.json()
            assert body["notified"] is False
            assert "boom" in body["reason"]
