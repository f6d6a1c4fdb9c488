"""Write operations against the investor boards.

Every method raises ``BoardError`` on failure; callers convert the error
into a reply. Target ids and payloads are logged before each write.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional

from followup_bot.board import columns
from followup_bot.board.client import BoardClient, BoardError
from followup_bot.config import GOING_COLD_MARKER, BoardConfig
from followup_bot.models.record import CreatedItem, Record, strip_marker

logger = logging.getLogger(__name__)

CHANGE_SIMPLE_VALUE = """
mutation ($boardId: ID!, $itemId: ID!, $columnId: String!, $value: String!) {
  change_simple_column_value(
    board_id: $boardId, item_id: $itemId, column_id: $columnId, value: $value
  ) { id }
}
"""

CHANGE_MULTIPLE_VALUES = """
mutation ($boardId: ID!, $itemId: ID!, $columnValues: JSON!) {
  change_multiple_column_values(
    board_id: $boardId, item_id: $itemId, column_values: $columnValues
  ) { id }
}
"""

CREATE_ITEM = """
mutation ($boardId: ID!, $groupId: String, $itemName: String!, $columnValues: JSON!) {
  create_item(
    board_id: $boardId,
    group_id: $groupId,
    item_name: $itemName,
    column_values: $columnValues,
    create_labels_if_missing: true
  ) { id name }
}
"""

DELETE_ITEM = "mutation ($itemId: ID!) { delete_item(item_id: $itemId) { id } }"

DIAGNOSTIC_ITEM_NAME = "[TEST] API Write Test"


@dataclass
class NewContact:
    """Fields for a record being added to the investor list."""

    name: str
    email: str = ""
    phone: str = ""
    company: str = ""
    linkedin: str = ""
    notes: str = ""


@dataclass
class DiagnosticResult:
    """Outcome of the board write diagnostic."""

    success: bool
    error: Optional[str] = None
    record_name: Optional[str] = None
    test_item_id: Optional[str] = None
    cleaned_up: bool = False


class RecordMutations:
    """Typed writes to the investor list and activity boards."""

    def __init__(self, client: BoardClient, config: BoardConfig):
        """Initialize mutations.

        Args:
            client: Board API client.
            config: Board ids and column maps.
        """
        self.client = client
        self.config = config

    async def change_columns(
        self,
        item_id: str,
        values: Dict[str, Any],
        board_id: Optional[str] = None,
    ) -> None:
        """Write several columns on one item in a single mutation."""
        board = board_id or self.config.records_board_id
        payload = json.dumps(values)
        logger.info(f"Updating board={board} item={item_id} columns={payload}")
        await self.client.execute(
            CHANGE_MULTIPLE_VALUES,
            {"boardId": str(board), "itemId": str(item_id), "columnValues": payload},
        )

    async def rename(
        self, item_id: str, new_name: str, board_id: Optional[str] = None
    ) -> None:
        board = board_id or self.config.records_board_id
        logger.info(f"Renaming board={board} item={item_id} to {new_name!r}")
        await self.client.execute(
            CHANGE_SIMPLE_VALUE,
            {
                "boardId": str(board),
                "itemId": str(item_id),
                "columnId": "name",
                "value": new_name,
            },
        )

    async def update_next_follow_up(self, item_id: str, day: date) -> None:
        await self.change_columns(
            item_id, {self.config.records.next_follow_up: columns.encode_date(day)}
        )

    async def update_contact_dates(
        self, item_id: str, last_contact: date, next_follow_up: Optional[date]
    ) -> None:
        """Write last contact and, when given, next follow-up together."""
        cols = self.config.records
        values: Dict[str, Any] = {cols.last_contact: columns.encode_date(last_contact)}
        if next_follow_up is not None:
            values[cols.next_follow_up] = columns.encode_date(next_follow_up)
        await self.change_columns(item_id, values)

    async def add_going_cold_marker(self, record: Record) -> bool:
        """Prefix the record name with the going-cold marker.

        Returns:
            True if the name changed, False if the marker was already there.
        """
        if record.is_going_cold:
            return False
        new_name = f"{GOING_COLD_MARKER} {record.name.strip()}"
        await self.rename(record.id, new_name)
        record.name = new_name
        return True

    async def remove_going_cold_marker(self, record: Record) -> bool:
        """Strip the going-cold marker from the record name.

        Returns:
            True if the name changed, False if there was no marker.
        """
        if not record.is_going_cold:
            return False
        new_name = strip_marker(record.name)
        await self.rename(record.id, new_name)
        record.name = new_name
        return True

    async def assign(self, item_id: str, person_id: str) -> None:
        await self.change_columns(
            item_id,
            {self.config.records.assigned_to: columns.encode_people([person_id])},
        )

    async def _create_item(
        self,
        board_id: str,
        group_id: Optional[str],
        name: str,
        values: Dict[str, Any],
    ) -> CreatedItem:
        payload = json.dumps(values)
        logger.info(
            f"Creating item on board={board_id} group={group_id} "
            f"name={name!r} columns={payload}"
        )
        data = await self.client.execute(
            CREATE_ITEM,
            {
                "boardId": str(board_id),
                "groupId": group_id,
                "itemName": name,
                "columnValues": payload,
            },
        )
        created = data.get("create_item")
        if not created or not created.get("id"):
            raise BoardError(f"create_item returned no item for {name!r}")
        item_id = str(created["id"])
        logger.info(f"Created item {item_id} on board {board_id}")
        return CreatedItem(
            id=item_id,
            name=created.get("name") or name,
            link=self.config.item_url(board_id, item_id),
        )

    async def create_record(
        self, contact: NewContact, next_follow_up: Optional[date] = None
    ) -> CreatedItem:
        """Add a new investor to the cold/new leads group."""
        cols = self.config.records
        values: Dict[str, Any] = {}
        if contact.phone:
            values[cols.phone] = columns.encode_phone(contact.phone)
        if contact.email:
            values[cols.email] = columns.encode_email(contact.email)
        if contact.company:
            values[cols.company] = contact.company
        notes = contact.notes
        if contact.linkedin:
            notes = f"{notes}\nLinkedIn: {contact.linkedin}".strip()
        if notes:
            values[cols.notes] = columns.encode_long_text(notes)
        if next_follow_up:
            values[cols.next_follow_up] = columns.encode_date(next_follow_up)

        return await self._create_item(
            self.config.records_board_id, cols.new_leads_group, contact.name, values
        )

    async def create_follow_up_activity(
        self,
        record: Record,
        today: date,
        next_follow_up: Optional[date] = None,
        last_contact: Optional[date] = None,
        method: Optional[str] = None,
        notes: Optional[str] = None,
        person_id: Optional[str] = None,
    ) -> CreatedItem:
        """Mirror a follow-up onto the relationship management board."""
        cols = self.config.activity
        values: Dict[str, Any] = {cols.created: columns.encode_date(today)}
        if record.status:
            values[cols.status] = columns.encode_label(record.status)
        if last_contact:
            values[cols.last_contact] = columns.encode_date(last_contact)
        if next_follow_up:
            values[cols.next_follow_up] = columns.encode_date(next_follow_up)
        if method:
            values[cols.method] = columns.encode_label(method)
        if record.email:
            values[cols.email] = columns.encode_email(record.email)
        if record.phone:
            values[cols.phone] = columns.encode_phone(record.phone)
        if notes:
            values[cols.notes] = columns.encode_long_text(notes)
        if record.id.isdigit():
            values[cols.linked_record] = columns.encode_item_link([record.id])
        if person_id:
            values[cols.person] = columns.encode_people([person_id])

        return await self._create_item(
            self.config.activity_board_id,
            cols.active_group,
            record.clean_name,
            values,
        )

    async def log_communication(
        self,
        name: str,
        today: date,
        kind: Optional[str] = None,
        deal: Optional[str] = None,
        notes: Optional[str] = None,
        sent_by_person_id: Optional[str] = None,
    ) -> CreatedItem:
        """Record a sent communication on the communications log."""
        cols = self.config.comms
        values: Dict[str, Any] = {
            cols.date_sent: columns.encode_date(today),
            cols.send_status: columns.encode_label("Sent"),
        }
        if kind:
            values[cols.kind] = columns.encode_label(kind)
        if deal:
            values[cols.deal] = deal
        if sent_by_person_id:
            values[cols.sent_by] = columns.encode_people([sent_by_person_id])
        if notes:
            values[cols.notes] = columns.encode_long_text(notes)

        return await self._create_item(
            self.config.comms_board_id, cols.ad_hoc_group, name, values
        )

    async def delete_item(self, item_id: str) -> None:
        logger.info(f"Deleting item {item_id}")
        await self.client.execute(DELETE_ITEM, {"itemId": str(item_id)})

    async def run_write_diagnostic(
        self, record: Optional[Record], today: date
    ) -> DiagnosticResult:
        """Exercise write access without changing real data.

        Renames a record to its own current name, then creates and deletes
        a throwaway item on the relationship management board.

        Args:
            record: Any existing investor record, or None to skip step one.
            today: Local date used for the test item's columns.

        Returns:
            Which step failed, if any.
        """
        logger.info("Board write diagnostic starting")
        if record is not None:
            try:
                await self.rename(record.id, record.name)
            except BoardError as e:
                return DiagnosticResult(
                    success=False,
                    error=f"Investor list write failed: {e}",
                    record_name=record.clean_name,
                )

        cols = self.config.activity
        values = {
            cols.last_contact: columns.encode_date(today),
            cols.next_follow_up: columns.encode_date(today),
            cols.notes: columns.encode_long_text("API test, this item can be deleted."),
        }
        try:
            created = await self._create_item(
                self.config.activity_board_id,
                cols.active_group,
                DIAGNOSTIC_ITEM_NAME,
                values,
            )
        except BoardError as e:
            return DiagnosticResult(
                success=False,
                error=f"Relationship board write failed: {e}",
                record_name=record.clean_name if record else None,
            )

        cleaned_up = True
        try:
            await self.delete_item(created.id)
        except BoardError as e:
            logger.warning(f"Diagnostic item {created.id} was not deleted: {e}")
            cleaned_up = False

        return DiagnosticResult(
            success=True,
            record_name=record.clean_name if record else None,
            test_item_id=created.id,
            cleaned_up=cleaned_up,
        )
