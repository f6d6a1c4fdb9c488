"""Investor record data model."""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from followup_bot.config import GOING_COLD_MARKER, CadenceTier, get_cadence_tier

INACTIVE_STATUS_WORDS = ("passed", "inactive")


def strip_marker(name: str) -> str:
    """Remove a leading going-cold marker and surrounding whitespace."""
    name = name.strip()
    if name.startswith(GOING_COLD_MARKER):
        name = name[len(GOING_COLD_MARKER) :]
    return name.strip()


@dataclass
class PersonRef:
    """A person linked through a board people column."""

    id: Optional[str]
    kind: str = "person"
    name: Optional[str] = None


@dataclass
class BoardUser:
    """An account on the board platform."""

    id: str
    name: str = ""
    email: Optional[str] = None

    @property
    def first_name(self) -> str:
        parts = self.name.strip().lower().split()
        return parts[0] if parts else ""


@dataclass
class Record:
    """An investor or lead tracked on the investor list board."""

    id: str
    name: str
    status: str = ""
    email: str = ""
    phone: str = ""
    company: str = ""
    investor_type: str = ""
    source: str = ""
    referred_by: str = ""
    investment_interest: str = ""
    deal_interest: str = ""
    assigned_to: List[PersonRef] = field(default_factory=list)
    last_contact: Optional[date] = None
    next_follow_up: Optional[date] = None
    notes: str = ""
    link: str = ""
    group_id: Optional[str] = None

    @property
    def clean_name(self) -> str:
        """Display name without the going-cold marker."""
        return strip_marker(self.name)

    @property
    def is_going_cold(self) -> bool:
        return self.name.strip().startswith(GOING_COLD_MARKER)

    @property
    def is_active(self) -> bool:
        status = self.status.lower()
        return not any(word in status for word in INACTIVE_STATUS_WORDS)

    @property
    def cadence(self) -> Optional[CadenceTier]:
        return get_cadence_tier(self.status)

    def days_since_contact(self, today: date) -> Optional[int]:
        if self.last_contact is None:
            return None
        return (today - self.last_contact).days

    def is_overdue(self, today: date) -> bool:
        return self.next_follow_up is not None and self.next_follow_up < today


@dataclass
class CreatedItem:
    """Identifiers returned after creating a board item."""

    id: str
    name: str
    link: str = ""
