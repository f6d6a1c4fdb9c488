"""Mapping between Slack users and Monday.com people."""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from slack_sdk.web.async_client import AsyncWebClient

from followup_bot.board.queries import RecordQueries
from followup_bot.logging import mask_email
from followup_bot.models.intent import SLACK_TAG_PATTERN
from followup_bot.models.record import BoardUser
from followup_bot.state import BotState

logger = logging.getLogger(__name__)

Profile = Dict[str, Any]

_BARE_USER_ID = re.compile(r"^[UW][A-Z0-9]{6,}$")


@dataclass
class IdentityMatch:
    """Whatever could be resolved for a person reference.

    Any field may be None; callers report partial success from what is set.
    """

    board_person_id: Optional[str] = None
    platform_user_id: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None

    @property
    def mention(self) -> str:
        """Slack mention when the user is known, otherwise the plain name."""
        if self.platform_user_id:
            return f"<@{self.platform_user_id}>"
        return self.display_name or "someone"


def _profile_from_user(user: Dict[str, Any]) -> Profile:
    profile = user.get("profile") or {}
    return {
        "id": user.get("id"),
        "handle": user.get("name") or "",
        "real_name": user.get("real_name") or profile.get("real_name") or "",
        "display_name": profile.get("display_name") or "",
        "email": profile.get("email"),
    }


def _first_name(name: str) -> str:
    parts = name.strip().lower().split()
    return parts[0] if parts else ""


def match_board_user(
    users: List[BoardUser], name: Optional[str], email: Optional[str]
) -> Optional[BoardUser]:
    """Pick the board user for a person.

    Email match first, then exact full name, then first name only when
    exactly one board user has it.
    """
    if email:
        email_lower = email.strip().lower()
        for user in users:
            if user.email and user.email.strip().lower() == email_lower:
                return user

    if not name or not name.strip():
        return None

    name_lower = name.strip().lower()
    for user in users:
        if user.name.strip().lower() == name_lower:
            return user

    first = _first_name(name)
    candidates = [u for u in users if u.first_name == first]
    if len(candidates) == 1:
        return candidates[0]
    if len(candidates) > 1:
        logger.info(
            f"First name {first!r} matches {len(candidates)} board users, not linking"
        )
    return None


class IdentityResolver:
    """Resolves tags and typed names to Slack users and board people."""

    def __init__(
        self,
        slack_client: AsyncWebClient,
        queries: RecordQueries,
        roster: Dict[str, str],
        state: BotState,
    ):
        """Initialize resolver.

        Args:
            slack_client: Slack Web API client.
            queries: Board queries (for the user list).
            roster: Lowercase first name -> Slack user id.
            state: Shared state holding the profile cache.
        """
        self.slack = slack_client
        self.queries = queries
        self.roster = {k.lower(): v for k, v in roster.items()}
        self.state = state

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        """Fetch a Slack profile, caching hits and misses for an hour."""
        if user_id in self.state.profiles:
            return self.state.profiles.get(user_id)

        profile: Optional[Profile] = None
        try:
            response = await self.slack.users_info(user=user_id)
            user = response.get("user")
            if user:
                profile = _profile_from_user(user)
        except Exception as e:
            logger.warning(f"Slack profile lookup failed for {user_id}: {e}")

        self.state.profiles.set(user_id, profile)
        return profile

    async def find_user_in_directory(self, name: str) -> Optional[Profile]:
        """Page through the workspace directory looking for a name.

        Matches display name, real name or the real name's first word.
        """
        target = name.strip().lower()
        cursor: Optional[str] = None

        try:
            while True:
                response = await self.slack.users_list(limit=200, cursor=cursor)
                for user in response.get("members") or []:
                    if user.get("deleted") or user.get("is_bot"):
                        continue
                    profile = _profile_from_user(user)
                    real_name = profile["real_name"].lower()
                    if target in (
                        profile["display_name"].lower(),
                        real_name,
                        _first_name(real_name),
                    ):
                        if profile["id"]:
                            self.state.profiles.set(profile["id"], profile)
                        return profile

                metadata = response.get("response_metadata") or {}
                cursor = metadata.get("next_cursor")
                if not cursor:
                    return None
        except Exception as e:
            logger.warning(f"Slack directory search failed for {name!r}: {e}")
            return None

    async def _board_user_for(
        self, name: Optional[str], email: Optional[str]
    ) -> Optional[BoardUser]:
        try:
            users = await self.queries.get_board_users()
        except Exception as e:
            logger.warning(f"Board user lookup failed: {e}")
            return None
        return match_board_user(users, name, email)

    async def resolve_user_id(self, user_id: str) -> IdentityMatch:
        """Resolve a known Slack user id."""
        profile = await self.get_profile(user_id)
        if profile is None:
            return IdentityMatch(platform_user_id=user_id)

        name = profile["real_name"] or profile["display_name"] or profile["handle"]
        board_user = await self._board_user_for(name, profile["email"])
        if board_user:
            logger.info(
                f"Mapped Slack {user_id} ({name}) to board user {board_user.id}"
            )
        else:
            logger.warning(
                f"No board user for Slack {user_id} "
                f"({name}, {mask_email(profile['email'])})"
            )
        return IdentityMatch(
            board_person_id=board_user.id if board_user else None,
            platform_user_id=user_id,
            display_name=name or None,
            email=profile["email"],
        )

    async def resolve_name(self, name: str) -> IdentityMatch:
        """Resolve a typed name via the roster, the directory, then the board."""
        name = name.strip().lstrip("@").strip()
        if not name:
            return IdentityMatch()

        roster_id = self.roster.get(_first_name(name))
        if roster_id:
            match = await self.resolve_user_id(roster_id)
            if match.display_name is None:
                # No Slack profile: link on the board by the typed name
                match.display_name = name
                board_user = await self._board_user_for(name, None)
                if board_user:
                    match.board_person_id = board_user.id
                    match.email = board_user.email
            return match

        profile = await self.find_user_in_directory(name)
        if profile and profile["id"]:
            return await self.resolve_user_id(profile["id"])

        logger.info(f"No Slack user named {name!r}, trying the board directly")
        board_user = await self._board_user_for(name, None)
        return IdentityMatch(
            board_person_id=board_user.id if board_user else None,
            display_name=board_user.name if board_user else name,
            email=board_user.email if board_user else None,
        )

    async def resolve(self, reference: str, is_tag: bool = False) -> IdentityMatch:
        """Resolve an assignee reference from a message.

        Never raises.

        Args:
            reference: A ``<@U…>`` tag or a typed name.
            is_tag: Whether the classifier flagged the reference as a tag.

        Returns:
            IdentityMatch with whatever could be resolved.
        """
        reference = (reference or "").strip()
        tag = SLACK_TAG_PATTERN.search(reference)
        if tag:
            return await self.resolve_user_id(tag.group(1))
        if is_tag and _BARE_USER_ID.match(reference):
            return await self.resolve_user_id(reference)
        return await self.resolve_name(reference)

    async def board_to_platform_map(self) -> Dict[str, str]:
        """Board person id -> Slack user id, matched by email across the directory."""
        try:
            board_users = await self.queries.get_board_users()
        except Exception as e:
            logger.warning(f"Board user lookup failed: {e}")
            return {}
        by_email = {
            u.email.strip().lower(): u.id for u in board_users if u.email
        }
        if not by_email:
            return {}

        mapping: Dict[str, str] = {}
        cursor: Optional[str] = None
        try:
            while True:
                response = await self.slack.users_list(limit=200, cursor=cursor)
                for user in response.get("members") or []:
                    email = ((user.get("profile") or {}).get("email") or "").lower()
                    if email in by_email and user.get("id"):
                        mapping[by_email[email]] = user["id"]
                metadata = response.get("response_metadata") or {}
                cursor = metadata.get("next_cursor")
                if not cursor:
                    break
        except Exception as e:
            logger.warning(f"Slack directory listing failed: {e}")
        return mapping
