"""Read operations against the investor boards."""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from followup_bot.board.client import BoardClient, BoardError
from followup_bot.board.columns import (
    ColumnType,
    decode_column,
    load_json_value,
    parse_iso_date,
)
from followup_bot.config import BoardConfig
from followup_bot.models.record import BoardUser, Record
from followup_bot.state import BotState

logger = logging.getLogger(__name__)

ITEMS_BY_ID_QUERY = """
query ($ids: [ID!]) {
  items(ids: $ids) {
    id
    name
    board { id }
    group { id title }
    column_values { id text value }
  }
}
"""

USERS_QUERY = "query { users { id name email } }"

BOARD_USERS_KEY = "users"


@dataclass
class Communication:
    """An entry on the communications log board."""

    id: str
    name: str
    kind: str = ""
    deal: str = ""
    date_sent: Optional[date] = None
    notes: str = ""


@dataclass
class Offering:
    """An item on the active offerings board, with every column as text."""

    id: str
    name: str
    columns: Dict[str, str] = field(default_factory=dict)


def linked_item_ids(item: Dict[str, Any], column_id: str) -> List[str]:
    """Read the item ids referenced by a board-relation column."""
    for column in item.get("column_values") or []:
        if column.get("id") != column_id:
            continue
        parsed = load_json_value(column.get("value"))
        if not isinstance(parsed, dict):
            return []
        return [
            str(entry["linkedPulseId"])
            for entry in parsed.get("linkedPulseIds") or []
            if isinstance(entry, dict) and entry.get("linkedPulseId")
        ]
    return []


class RecordQueries:
    """Typed reads of records, users, communications and offerings."""

    def __init__(self, client: BoardClient, config: BoardConfig, state: BotState):
        """Initialize queries.

        Args:
            client: Board API client.
            config: Board ids and column maps.
            state: Shared bot state (holds the board user cache).
        """
        self.client = client
        self.config = config
        self.state = state

    def parse_record(self, item: Dict[str, Any]) -> Record:
        """Convert a raw investor list item into a ``Record``."""
        cols = self.config.records
        cv = item.get("column_values") or []
        item_id = str(item.get("id", ""))
        group = item.get("group") or {}
        return Record(
            id=item_id,
            name=item.get("name") or "",
            status=decode_column(cv, cols.status),
            email=decode_column(cv, cols.email, ColumnType.EMAIL),
            phone=decode_column(cv, cols.phone, ColumnType.PHONE),
            company=decode_column(cv, cols.company),
            investor_type=decode_column(cv, cols.investor_type),
            source=decode_column(cv, cols.source),
            referred_by=decode_column(cv, cols.referred_by),
            investment_interest=decode_column(cv, cols.investment_interest),
            deal_interest=decode_column(cv, cols.deal_interest),
            assigned_to=decode_column(cv, cols.assigned_to, ColumnType.PEOPLE),
            last_contact=decode_column(cv, cols.last_contact, ColumnType.DATE),
            next_follow_up=decode_column(cv, cols.next_follow_up, ColumnType.DATE),
            notes=decode_column(cv, cols.notes, ColumnType.LONG_TEXT),
            link=self.config.record_url(item_id) if item_id.isdigit() else "",
            group_id=group.get("id"),
        )

    async def get_all_records(self) -> List[Record]:
        """Every record on the investor list, regardless of status."""
        items = await self.client.fetch_all_items(self.config.records_board_id)
        return [self.parse_record(item) for item in items]

    async def get_active_records(self) -> List[Record]:
        """Records whose status is neither passed nor inactive.

        Raises:
            BoardError: When the board cannot be read.
        """
        records = await self.get_all_records()
        return [r for r in records if r.is_active]

    async def get_records_by_name(self, name: str) -> List[Record]:
        """Case-insensitive substring search on record names."""
        needle = name.strip().lower()
        if not needle:
            return []
        records = await self.get_all_records()
        return [r for r in records if needle in r.clean_name.lower()]

    async def get_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one raw item from any board by id."""
        data = await self.client.execute(ITEMS_BY_ID_QUERY, {"ids": [str(item_id)]})
        items = data.get("items") or []
        return items[0] if items else None

    async def get_record(self, item_id: str) -> Optional[Record]:
        item = await self.get_item(item_id)
        return self.parse_record(item) if item else None

    async def get_board_users(self) -> List[BoardUser]:
        """All board accounts, cached for an hour.

        When the fetch fails, the last known list is returned (even if
        expired) so identity resolution keeps working through an outage.
        """
        cached = self.state.board_users.get(BOARD_USERS_KEY)
        if cached is not None:
            return cached

        try:
            data = await self.client.execute(USERS_QUERY)
        except BoardError as e:
            stale = self.state.board_users.stale(BOARD_USERS_KEY, [])
            logger.warning(
                f"Failed to fetch board users, serving {len(stale)} cached: {e}"
            )
            return stale

        users = [
            BoardUser(id=str(u["id"]), name=u.get("name") or "", email=u.get("email"))
            for u in data.get("users") or []
            if u.get("id") is not None
        ]
        self.state.board_users.set(BOARD_USERS_KEY, users)
        logger.debug(f"Cached {len(users)} board users")
        return users

    async def get_recent_communications(
        self, days: int = 7, today: Optional[date] = None
    ) -> List[Communication]:
        """Communications log entries sent within the last N days."""
        cols = self.config.comms
        cutoff = (today or date.today()) - timedelta(days=days)
        items = await self.client.fetch_all_items(self.config.comms_board_id)

        entries = []
        for item in items:
            cv = item.get("column_values") or []
            sent = decode_column(cv, cols.date_sent, ColumnType.DATE)
            if sent is None:
                # Fall back to any dated column on the item
                for column in cv:
                    parsed = load_json_value(column.get("value"))
                    if isinstance(parsed, dict):
                        sent = parse_iso_date(parsed.get("date"))
                        if sent:
                            break
            if sent is None or sent < cutoff:
                continue
            entries.append(
                Communication(
                    id=str(item.get("id")),
                    name=item.get("name") or "",
                    kind=decode_column(cv, cols.kind),
                    deal=decode_column(cv, cols.deal),
                    date_sent=sent,
                    notes=decode_column(cv, cols.notes, ColumnType.LONG_TEXT),
                )
            )
        return entries

    async def get_active_offerings(self) -> List[Offering]:
        items = await self.client.fetch_all_items(self.config.offerings_board_id)
        return [
            Offering(
                id=str(item.get("id")),
                name=item.get("name") or "",
                columns={
                    c.get("id", ""): c.get("text") or ""
                    for c in item.get("column_values") or []
                },
            )
            for item in items
        ]
