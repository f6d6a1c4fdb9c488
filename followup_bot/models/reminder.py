"""Reminder data model."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class ReminderStatus(Enum):
    """Lifecycle of a reminder. Terminal reminders are removed from the store."""

    SCHEDULED = "scheduled"
    FIRED = "fired"
    UNRESOLVABLE = "unresolvable"


def _parse_timestamp(value: str) -> datetime:
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


@dataclass
class Reminder:
    """A follow-up notification scheduled for a future time.

    The record's name, status, category and permalink are copied in at
    creation so the reminder can still fire if the record is later renamed
    or cannot be fetched.
    """

    id: str
    record_id: str
    subject_name: str
    fire_at: datetime
    user_id: str
    user_email: Optional[str] = None
    status: str = ""
    category: str = ""
    link: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(
        cls,
        record_id: str,
        subject_name: str,
        fire_at: datetime,
        user_id: str,
        user_email: Optional[str] = None,
        status: str = "",
        category: str = "",
        link: str = "",
    ) -> "Reminder":
        """Create a new reminder with a fresh id.

        Args:
            record_id: Investor list item id.
            subject_name: Display name at scheduling time.
            fire_at: Timezone-aware fire time.
            user_id: Slack user to notify.
            user_email: Optional address for the email copy.
            status: Record status at scheduling time.
            category: Investor type at scheduling time.
            link: Record permalink.

        Returns:
            The new reminder.
        """
        if fire_at.tzinfo is None:
            raise ValueError("fire_at must be timezone-aware")
        return cls(
            id=uuid.uuid4().hex,
            record_id=record_id,
            subject_name=subject_name,
            fire_at=fire_at,
            user_id=user_id,
            user_email=user_email,
            status=status,
            category=category,
            link=link,
        )

    def is_due(self, now: datetime) -> bool:
        return self.fire_at <= now

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "record_id": self.record_id,
            "subject_name": self.subject_name,
            "fire_at": self.fire_at.isoformat(),
            "user_id": self.user_id,
            "user_email": self.user_email,
            "status": self.status,
            "category": self.category,
            "link": self.link,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Reminder":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            record_id=str(data["record_id"]),
            subject_name=data.get("subject_name", ""),
            fire_at=_parse_timestamp(data["fire_at"]),
            user_id=data.get("user_id", ""),
            user_email=data.get("user_email"),
            status=data.get("status", ""),
            category=data.get("category", ""),
            link=data.get("link", ""),
            created_at=_parse_timestamp(data["created_at"])
            if data.get("created_at")
            else datetime.now(timezone.utc),
        )
