"""Tests for Slack / board identity resolution."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from followup_bot.models.record import BoardUser
from followup_bot.resolution.identity import IdentityResolver, match_board_user

BOARD_USERS = [
    BoardUser(id="501", name="Anton Reyes", email="anton@elitecap.com"),
    BoardUser(id="502", name="Casey Lin", email="casey@elitecap.com"),
    BoardUser(id="503", name="Casey Park", email="cpark@elitecap.com"),
]


def slack_user(user_id: str, real_name: str, email: str, **extra) -> dict:
    return {
        "id": user_id,
        "name": real_name.split()[0].lower(),
        "real_name": real_name,
        "profile": {"display_name": real_name.split()[0], "email": email},
        **extra,
    }


@pytest.fixture
def slack_client() -> MagicMock:
    client = MagicMock()
    client.users_info = AsyncMock(
        return_value={"user": slack_user("U0ANTON", "Anton Reyes", "anton@elitecap.com")}
    )
    client.users_list = AsyncMock(
        return_value={
            "members": [
                slack_user("U0BOT", "Helper Bot", "", is_bot=True),
                slack_user("U0CASEY", "Casey Lin", "casey@elitecap.com"),
                slack_user("U0ANTON", "Anton Reyes", "anton@elitecap.com"),
            ],
            "response_metadata": {"next_cursor": ""},
        }
    )
    return client


@pytest.fixture
def queries() -> MagicMock:
    queries = MagicMock()
    queries.get_board_users = AsyncMock(return_value=BOARD_USERS)
    return queries


@pytest.fixture
def resolver(slack_client, queries, state) -> IdentityResolver:
    return IdentityResolver(slack_client, queries, {"Anton": "U0ANTON"}, state)


class TestMatchBoardUser:
    """Tests for match_board_user."""

    def test_email_wins(self):
        user = match_board_user(BOARD_USERS, "Somebody Else", "CPARK@elitecap.com")
        assert user.id == "503"

    def test_full_name(self):
        assert match_board_user(BOARD_USERS, "casey lin", None).id == "502"

    def test_unique_first_name(self):
        assert match_board_user(BOARD_USERS, "Anton", None).id == "501"

    def test_ambiguous_first_name(self):
        """Two Caseys means no link."""
        assert match_board_user(BOARD_USERS, "Casey", None) is None


class TestIdentityResolver:
    """Tests for IdentityResolver."""

    @pytest.mark.asyncio
    async def test_tag_resolves_both_sides(self, resolver):
        """A Slack tag maps to the board user by email."""
        match = await resolver.resolve("<@U0ANTON>", is_tag=True)
        assert match.platform_user_id == "U0ANTON"
        assert match.board_person_id == "501"
        assert match.email == "anton@elitecap.com"
        assert match.mention == "<@U0ANTON>"

    @pytest.mark.asyncio
    async def test_profile_cached(self, resolver, slack_client):
        """Repeated lookups hit Slack once."""
        await resolver.get_profile("U0ANTON")
        await resolver.get_profile("U0ANTON")
        assert slack_client.users_info.await_count == 1

    @pytest.mark.asyncio
    async def test_failed_profile_cached_as_miss(self, resolver, slack_client):
        slack_client.users_info = AsyncMock(side_effect=RuntimeError("user_not_found"))
        assert await resolver.get_profile("U0GHOST") is None
        assert await resolver.get_profile("U0GHOST") is None
        assert slack_client.users_info.await_count == 1

    @pytest.mark.asyncio
    async def test_roster_name(self, resolver, slack_client):
        """Roster names skip the directory search."""
        match = await resolver.resolve("anton")
        assert match.platform_user_id == "U0ANTON"
        assert match.board_person_id == "501"
        slack_client.users_list.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_directory_name(self, resolver, slack_client):
        """Unknown roster names are searched in the directory."""
        slack_client.users_info = AsyncMock(
            return_value={"user": slack_user("U0CASEY", "Casey Lin", "casey@elitecap.com")}
        )
        match = await resolver.resolve("Casey Lin")
        assert match.platform_user_id == "U0CASEY"
        assert match.board_person_id == "502"

    @pytest.mark.asyncio
    async def test_board_only_person(self, resolver, queries):
        """Someone on the board but not in Slack still links on the board."""
        queries.get_board_users = AsyncMock(
            return_value=BOARD_USERS + [BoardUser(id="504", name="Dana Wu")]
        )
        match = await resolver.resolve("Dana Wu")
        assert match.platform_user_id is None
        assert match.board_person_id == "504"
        assert match.mention == "Dana Wu"

    @pytest.mark.asyncio
    async def test_nobody(self, resolver):
        """An unknown name resolves to nothing but keeps the typed name."""
        match = await resolver.resolve("Zed Nobody")
        assert match.platform_user_id is None
        assert match.board_person_id is None
        assert match.display_name == "Zed Nobody"

    @pytest.mark.asyncio
    async def test_board_to_platform_map(self, resolver):
        """Board ids map to Slack ids through shared emails."""
        mapping = await resolver.board_to_platform_map()
        assert mapping == {"501": "U0ANTON", "502": "U0CASEY"}
