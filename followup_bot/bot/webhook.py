"""Board webhook endpoint for urgent status changes."""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from aiohttp import web

from followup_bot.board.client import BoardError
from followup_bot.board.columns import ColumnType, decode_column
from followup_bot.board.queries import RecordQueries, linked_item_ids
from followup_bot.bot.messages import format_urgent_card
from followup_bot.config import BoardConfig
from followup_bot.models.record import Record

logger = logging.getLogger(__name__)

Poster = Callable[[str], Awaitable[Optional[str]]]


def _result(notified: bool, reason: Optional[str] = None) -> Dict[str, Any]:
    return {"notified": notified, "reason": reason}


class StatusWebhookHandler:
    """Turns "urgent" status changes on the activity board into channel alerts."""

    def __init__(self, config: BoardConfig, queries: RecordQueries, post: Poster):
        """Initialize handler.

        Args:
            config: Board ids and column maps.
            queries: Board reads for the changed item and its linked record.
            post: Coroutine posting to the channel; returns the message ts.
        """
        self.config = config
        self.queries = queries
        self.post = post

    async def handle(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Process one webhook payload.

        Args:
            payload: Decoded JSON body.

        Returns:
            The challenge echo, or ``{"notified": bool, "reason": str}``.
        """
        if payload.get("challenge"):
            logger.info("Board webhook challenge received")
            return {"challenge": payload["challenge"]}

        event = payload.get("event")
        if not isinstance(event, dict):
            return _result(False, "no event in payload")

        board_id = str(event.get("boardId", ""))
        column_id = event.get("columnId")
        item_id = str(event.get("pulseId") or event.get("itemId") or "")
        cols = self.config.activity

        if board_id != str(self.config.activity_board_id):
            return _result(False, f"wrong board: {board_id}")
        if column_id != cols.status:
            return _result(False, f"wrong column: {column_id}")

        value = event.get("value") or {}
        label = value.get("label") if isinstance(value, dict) else None
        label_index = label.get("index") if isinstance(label, dict) else None
        if label_index != cols.urgent_label_index:
            logger.info(f"Status change on {item_id} is not urgent (label {label_index})")
            return _result(False, f"not urgent status (label: {label_index})")

        logger.info(f"Urgent status set on item {item_id}, fetching details")
        try:
            item = await self.queries.get_item(item_id)
        except BoardError as e:
            logger.error(f"Could not fetch item {item_id}: {e}")
            return _result(False, "item fetch failed")
        if not item:
            return _result(False, "item fetch failed")

        linked: Optional[Record] = None
        try:
            linked_ids = linked_item_ids(item, cols.linked_record)
            if linked_ids:
                linked = await self.queries.get_record(linked_ids[0])
        except BoardError as e:
            logger.error(f"Could not fetch linked investor for {item_id}: {e}")
        if linked is None:
            logger.warning(f"No linked investor found on item {item_id}")

        cv = item.get("column_values") or []
        text = format_urgent_card(
            subject_name=item.get("name") or "",
            last_contact=decode_column(cv, cols.last_contact),
            next_follow_up=decode_column(cv, cols.next_follow_up),
            notes=decode_column(cv, cols.notes, ColumnType.LONG_TEXT).strip(),
            email=linked.email if linked else "",
            phone=linked.phone if linked else "",
            link=self.config.item_url(self.config.activity_board_id, item_id),
        )
        if await self.post(text) is None:
            return _result(False, "chat post failed")

        logger.info(f"Urgent follow-up alert posted for {item.get('name')}")
        return _result(True)


def create_webhook_app(handler: StatusWebhookHandler, path: str) -> web.Application:
    """Build the aiohttp application serving the webhook route.

    The route always answers 200 so the board does not retry.
    """

    async def receive(request: web.Request) -> web.Response:
        try:
            payload = await request.json()
        except ValueError:
            logger.warning("Webhook body is not JSON")
            return web.json_response(_result(False, "invalid json"))
        if not isinstance(payload, dict):
            return web.json_response(_result(False, "invalid payload"))

        try:
            result = await handler.handle(payload)
        except Exception as e:
            logger.exception(f"Error processing webhook event: {e}")
            result = _result(False, f"error: {e}")
        return web.json_response(result)

    app = web.Application()
    app.router.add_post(path, receive)
    return app


class WebhookServer:
    """Runs the webhook application on its own port."""

    def __init__(self, handler: StatusWebhookHandler, host: str, port: int, path: str):
        self.handler = handler
        self.host = host
        self.port = port
        self.path = path
        self._runner: Optional[web.AppRunner] = None

    async def start(self) -> None:
        app = create_webhook_app(self.handler, self.path)
        self._runner = web.AppRunner(app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info(f"Webhook server listening on {self.host}:{self.port}{self.path}")

    async def stop(self) -> None:
        if self._runner:
            try:
                await self._runner.cleanup()
            except Exception as e:
                logger.warning(f"Error stopping webhook server: {e}")
            self._runner = None
