"""Intent model: what an inbound message is asking the bot to do.

Both classifier stages emit a ``RawIntent``, a loosely typed mapping that
may come straight from a language model. ``validate_intent`` is the only
place that turns one into a typed ``Intent`` subclass; every handler
downstream receives a fully populated variant.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type

from followup_bot.config import DEFAULT_NOT_CONTACTED_DAYS

SLACK_TAG_PATTERN = re.compile(r"<@([UW][A-Z0-9]+)(?:\|[^>]*)?>")


class Action(Enum):
    """Closed set of things the bot can do."""

    SCHEDULE = "schedule_followup"
    ASSIGN = "assign_followup"
    LOG_CONTACT = "log_touchpoint"
    CHECK_STATUS = "check_status"
    LIST_OVERDUE = "list_overdue"
    LIST_BY_STATUS = "list_by_status"
    LIST_NOT_CONTACTED = "list_not_contacted"
    ADD_RECORD = "add_investor"
    CONTACT_LOOKUP = "contact_info"
    COUNT = "count_investors"
    DIAGNOSTIC = "test_monday"
    UNKNOWN = "unknown"


class Slot(Enum):
    """Slots that can be reported missing, in priority order."""

    SUBJECT = "subject"
    ASSIGNEE = "assignee"
    DATE = "date"


SLOT_PRIORITY: Tuple[Slot, ...] = (Slot.SUBJECT, Slot.ASSIGNEE, Slot.DATE)

# Names the classifier may use in its missing-slot list
_SLOT_ALIASES: Dict[str, Slot] = {
    "investorname": Slot.SUBJECT,
    "investor": Slot.SUBJECT,
    "name": Slot.SUBJECT,
    "subject": Slot.SUBJECT,
    "assignee": Slot.ASSIGNEE,
    "date": Slot.DATE,
}


class ContactField(Enum):
    PHONE = "phone"
    EMAIL = "email"
    ALL = "all"


@dataclass
class RawIntent:
    """Unvalidated classifier output.

    Attributes:
        data: Parsed JSON object (or fast-path captures) using classifier keys.
        text: The normalized message text that was classified.
        source: "fast_path" or "llm".
    """

    data: Dict[str, Any] = field(default_factory=dict)
    text: str = ""
    source: str = "llm"

    @classmethod
    def unknown(cls, text: str = "", source: str = "llm") -> "RawIntent":
        """Raw intent for an unusable classifier response."""
        return cls(data={"action": "unknown", "confidence": 0.0}, text=text, source=source)


@dataclass(frozen=True)
class Intent:
    """Base for all validated intents."""

    action: ClassVar[Action] = Action.UNKNOWN
    required: ClassVar[Tuple[Slot, ...]] = ()

    confidence: float = 0.0
    reported_missing: Tuple[Slot, ...] = ()
    text: str = ""
    source: str = "llm"

    def slot_value(self, slot: Slot) -> Any:
        return getattr(self, slot.value, None)

    def missing_slots(self) -> List[Slot]:
        """Required slots that are absent, most important first.

        Combines what the classifier reported with the variant's own
        required slots, since either side can miss one.
        """
        missing = set(self.reported_missing)
        for slot in self.required:
            if not self.slot_value(slot):
                missing.add(slot)
        # A slot the classifier calls missing but that was filled anyway is fine
        return [s for s in SLOT_PRIORITY if s in missing and not self.slot_value(s)]


@dataclass(frozen=True)
class UnknownIntent(Intent):
    action: ClassVar[Action] = Action.UNKNOWN


@dataclass(frozen=True)
class ScheduleIntent(Intent):
    action: ClassVar[Action] = Action.SCHEDULE
    required: ClassVar[Tuple[Slot, ...]] = (Slot.SUBJECT,)

    subject: Optional[str] = None
    date: Optional[str] = None


@dataclass(frozen=True)
class AssignIntent(Intent):
    action: ClassVar[Action] = Action.ASSIGN
    required: ClassVar[Tuple[Slot, ...]] = (Slot.SUBJECT, Slot.ASSIGNEE)

    subject: Optional[str] = None
    date: Optional[str] = None
    assignee: Optional[str] = None
    assignee_is_tag: bool = False


@dataclass(frozen=True)
class LogContactIntent(Intent):
    action: ClassVar[Action] = Action.LOG_CONTACT
    required: ClassVar[Tuple[Slot, ...]] = (Slot.SUBJECT,)

    subject: Optional[str] = None


@dataclass(frozen=True)
class CheckStatusIntent(Intent):
    action: ClassVar[Action] = Action.CHECK_STATUS
    required: ClassVar[Tuple[Slot, ...]] = (Slot.SUBJECT,)

    subject: Optional[str] = None


@dataclass(frozen=True)
class ListOverdueIntent(Intent):
    action: ClassVar[Action] = Action.LIST_OVERDUE


@dataclass(frozen=True)
class ListByStatusIntent(Intent):
    action: ClassVar[Action] = Action.LIST_BY_STATUS

    status_filter: Optional[str] = None


@dataclass(frozen=True)
class ListNotContactedIntent(Intent):
    action: ClassVar[Action] = Action.LIST_NOT_CONTACTED

    days: int = DEFAULT_NOT_CONTACTED_DAYS


@dataclass(frozen=True)
class AddRecordIntent(Intent):
    action: ClassVar[Action] = Action.ADD_RECORD
    required: ClassVar[Tuple[Slot, ...]] = (Slot.SUBJECT,)

    subject: Optional[str] = None


@dataclass(frozen=True)
class ContactLookupIntent(Intent):
    action: ClassVar[Action] = Action.CONTACT_LOOKUP
    required: ClassVar[Tuple[Slot, ...]] = (Slot.SUBJECT,)

    subject: Optional[str] = None
    field: ContactField = ContactField.ALL


@dataclass(frozen=True)
class CountIntent(Intent):
    action: ClassVar[Action] = Action.COUNT


@dataclass(frozen=True)
class DiagnosticIntent(Intent):
    action: ClassVar[Action] = Action.DIAGNOSTIC


INTENT_TYPES: Dict[Action, Type[Intent]] = {
    cls.action: cls
    for cls in (
        UnknownIntent,
        ScheduleIntent,
        AssignIntent,
        LogContactIntent,
        CheckStatusIntent,
        ListOverdueIntent,
        ListByStatusIntent,
        ListNotContactedIntent,
        AddRecordIntent,
        ContactLookupIntent,
        CountIntent,
        DiagnosticIntent,
    )
}


def _clean_str(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or value.lower() in ("null", "none"):
        return None
    return value


def _confidence(value: Any) -> float:
    # Non-numeric confidence gets a neutral score rather than failing the message
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return 0.5
    try:
        score = float(value)
    except ValueError:
        return 0.5
    return min(max(score, 0.0), 1.0)


def _days(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_NOT_CONTACTED_DAYS
    try:
        days = int(float(value))
    except (TypeError, ValueError):
        return DEFAULT_NOT_CONTACTED_DAYS
    return days if days > 0 else DEFAULT_NOT_CONTACTED_DAYS


def _missing(value: Any) -> Tuple[Slot, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    slots = []
    for name in value:
        if not isinstance(name, str):
            continue
        slot = _SLOT_ALIASES.get(name.strip().lower().replace("_", ""))
        if slot and slot not in slots:
            slots.append(slot)
    return tuple(slots)


def validate_intent(raw: RawIntent) -> Intent:
    """Turn raw classifier output into a typed intent.

    Unknown actions become ``UnknownIntent``; invalid or missing fields
    take defaults. Never raises.

    Args:
        raw: Output of either classifier stage.

    Returns:
        The matching ``Intent`` variant.
    """
    data = raw.data if isinstance(raw.data, dict) else {}

    action_name = _clean_str(data.get("action")) or "unknown"
    try:
        action = Action(action_name.lower())
    except ValueError:
        action = Action.UNKNOWN

    base: Dict[str, Any] = {
        "confidence": _confidence(data.get("confidence", 0.5)),
        "reported_missing": _missing(data.get("missing_info")),
        "text": raw.text,
        "source": raw.source,
    }
    subject = _clean_str(data.get("investorName"))
    date_expr = _clean_str(data.get("date"))

    if action in (
        Action.LOG_CONTACT,
        Action.CHECK_STATUS,
        Action.ADD_RECORD,
    ):
        return INTENT_TYPES[action](subject=subject, **base)  # type: ignore[call-arg]

    if action == Action.SCHEDULE:
        return ScheduleIntent(subject=subject, date=date_expr, **base)

    if action == Action.ASSIGN:
        assignee = _clean_str(data.get("assignee"))
        is_tag = data.get("assigneeIsSlackTag") is True or bool(
            assignee and SLACK_TAG_PATTERN.search(assignee)
        )
        return AssignIntent(
            subject=subject,
            date=date_expr,
            assignee=assignee,
            assignee_is_tag=is_tag,
            **base,
        )

    if action == Action.LIST_BY_STATUS:
        return ListByStatusIntent(
            status_filter=_clean_str(data.get("statusFilter")), **base
        )

    if action == Action.LIST_NOT_CONTACTED:
        return ListNotContactedIntent(days=_days(data.get("daysSinceFilter")), **base)

    if action == Action.CONTACT_LOOKUP:
        field_name = (_clean_str(data.get("contactField")) or "all").lower()
        try:
            contact_field = ContactField(field_name)
        except ValueError:
            contact_field = ContactField.ALL
        return ContactLookupIntent(subject=subject, field=contact_field, **base)

    return INTENT_TYPES[action](**base)
