"""Tests for board write operations."""

import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import make_record

from followup_bot.board.client import BoardError
from followup_bot.board.mutations import (
    CHANGE_MULTIPLE_VALUES,
    CREATE_ITEM,
    DELETE_ITEM,
    NewContact,
    RecordMutations,
)
from followup_bot.config import GOING_COLD_MARKER


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.execute = AsyncMock(return_value={"create_item": {"id": "2001", "name": "x"}})
    return client


@pytest.fixture
def mutations(client, board_config) -> RecordMutations:
    return RecordMutations(client, board_config)


def sent_columns(client: MagicMock, call: int = -1) -> dict:
    variables = client.execute.await_args_list[call].args[1]
    return json.loads(variables["columnValues"])


class TestRecordMutations:
    """Tests for RecordMutations."""

    @pytest.mark.asyncio
    async def test_update_contact_dates(self, mutations, client, board_config):
        """Both dates go out in one mutation."""
        await mutations.update_contact_dates("1001", date(2026, 10, 19), date(2026, 10, 24))
        query, variables = client.execute.await_args.args
        assert query == CHANGE_MULTIPLE_VALUES
        assert variables["itemId"] == "1001"
        assert variables["boardId"] == board_config.records_board_id
        assert sent_columns(client) == {
            "date_mm0dm8y0": {"date": "2026-10-19"},
            "date_mm0drsbg": {"date": "2026-10-24"},
        }

    @pytest.mark.asyncio
    async def test_add_marker_once(self, mutations, client):
        """The marker is added only when missing."""
        record = make_record("Jalin Moore")
        assert await mutations.add_going_cold_marker(record) is True
        assert record.name == f"{GOING_COLD_MARKER} Jalin Moore"
        assert client.execute.await_args.args[1]["value"] == f"{GOING_COLD_MARKER} Jalin Moore"

        client.execute.reset_mock()
        assert await mutations.add_going_cold_marker(record) is False
        client.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_remove_marker(self, mutations, client):
        record = make_record(f"{GOING_COLD_MARKER} Jalin Moore")
        assert await mutations.remove_going_cold_marker(record) is True
        assert record.name == "Jalin Moore"
        assert await mutations.remove_going_cold_marker(record) is False

    @pytest.mark.asyncio
    async def test_assign(self, mutations, client):
        await mutations.assign("1001", "501")
        assert sent_columns(client) == {
            "multiple_person_mm0dq26t": {"personsAndTeams": [{"id": 501, "kind": "person"}]}
        }

    @pytest.mark.asyncio
    async def test_create_record(self, mutations, client, board_config):
        """New records land in the new leads group with contact columns."""
        created = await mutations.create_record(
            NewContact(
                name="Dana Wu",
                email="dana@wu.com",
                phone="555-123-4567",
                linkedin="linkedin.com/in/danawu",
            ),
            next_follow_up=date(2026, 11, 2),
        )
        query, variables = client.execute.await_args.args
        assert query == CREATE_ITEM
        assert variables["groupId"] == board_config.records.new_leads_group
        assert variables["itemName"] == "Dana Wu"
        values = json.loads(variables["columnValues"])
        assert values["email_mm0dh83c"]["email"] == "dana@wu.com"
        assert values["phone_mm0dymr8"]["phone"] == "5551234567"
        assert values["long_text_mm0dvjg7"] == {"text": "LinkedIn: linkedin.com/in/danawu"}
        assert values["date_mm0drsbg"] == {"date": "2026-11-02"}
        assert created.id == "2001"
        assert created.link.endswith("/pulses/2001")

    @pytest.mark.asyncio
    async def test_create_without_id_fails(self, mutations, client):
        client.execute.return_value = {"create_item": None}
        with pytest.raises(BoardError):
            await mutations.create_record(NewContact(name="Dana Wu"))

    @pytest.mark.asyncio
    async def test_follow_up_activity_links_record(self, mutations, client, board_config):
        record = make_record("Jalin Moore", "1001", email="jalin@fund.com")
        await mutations.create_follow_up_activity(
            record, date(2026, 10, 19), next_follow_up=date(2026, 10, 23), person_id="501"
        )
        variables = client.execute.await_args.args[1]
        assert variables["boardId"] == board_config.activity_board_id
        values = json.loads(variables["columnValues"])
        assert values[board_config.activity.linked_record] == {"item_ids": [1001]}
        assert values[board_config.activity.next_follow_up] == {"date": "2026-10-23"}
        assert values[board_config.activity.person]["personsAndTeams"][0]["id"] == 501

    @pytest.mark.asyncio
    async def test_log_communication(self, mutations, client, board_config):
        await mutations.log_communication("Fund III teaser", date(2026, 10, 19), kind="Email")
        variables = client.execute.await_args.args[1]
        assert variables["boardId"] == board_config.comms_board_id
        values = json.loads(variables["columnValues"])
        assert values[board_config.comms.send_status] == {"label": "Sent"}
        assert values[board_config.comms.kind] == {"label": "Email"}


class TestWriteDiagnostic:
    """Tests for run_write_diagnostic."""

    @pytest.mark.asyncio
    async def test_success_cleans_up(self, mutations, client):
        """Rename, create and delete all run."""
        result = await mutations.run_write_diagnostic(make_record(), date(2026, 10, 19))
        assert result.success
        assert result.test_item_id == "2001"
        assert result.cleaned_up
        assert client.execute.await_args_list[-1].args[0] == DELETE_ITEM

    @pytest.mark.asyncio
    async def test_rename_failure(self, mutations, client):
        client.execute.side_effect = BoardError("no write permission")
        result = await mutations.run_write_diagnostic(make_record(), date(2026, 10, 19))
        assert not result.success
        assert "Investor list write failed" in result.error

    @pytest.mark.asyncio
    async def test_delete_failure_still_success(self, mutations, client):
        client.execute.side_effect = [
            {"change_simple_column_value": {"id": "1001"}},
            {"create_item": {"id": "2001", "name": "x"}},
            BoardError("delete denied"),
        ]
        result = await mutations.run_write_diagnostic(make_record(), date(2026, 10, 19))
        assert result.success
        assert result.cleaned_up is False
