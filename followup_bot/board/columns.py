"""Decoding and encoding of Monday.com column values.

Every column arrives as ``{"id", "text", "value"}`` where ``value`` is a
JSON string whose shape depends on the column type. Decoding goes
through ``decode_column`` so each type is handled in one place, with the
plain ``text`` as a fallback when the structured value is missing or
unreadable.
"""

import json
import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from followup_bot.models.record import PersonRef


class ColumnType(Enum):
    TEXT = "text"
    EMAIL = "email"
    PHONE = "phone"
    DATE = "date"
    LONG_TEXT = "long_text"
    PEOPLE = "people"


def load_json_value(raw: Any) -> Any:
    if not raw or raw == "null" or not isinstance(raw, str):
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


def find_column(
    column_values: Iterable[Dict[str, Any]], column_id: str
) -> Optional[Dict[str, Any]]:
    for column in column_values or []:
        if column.get("id") == column_id:
            return column
    return None


def parse_iso_date(value: Any) -> Optional[date]:
    """Parse "YYYY-MM-DD" (ignoring any time part)."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    except ValueError:
        return None


def decode_column(
    column_values: Iterable[Dict[str, Any]],
    column_id: str,
    column_type: ColumnType = ColumnType.TEXT,
) -> Any:
    """Decode one column from an item's column values.

    Args:
        column_values: The item's ``column_values`` list.
        column_id: Column to decode.
        column_type: Declared type of the column.

    Returns:
        ``str`` for text-like types, ``Optional[date]`` for dates and
        ``List[PersonRef]`` for people columns. Missing columns decode to
        the type's empty value.
    """
    column = find_column(column_values, column_id)

    if column_type == ColumnType.DATE:
        if column is None:
            return None
        parsed = load_json_value(column.get("value"))
        if isinstance(parsed, dict) and parsed.get("date"):
            return parse_iso_date(parsed["date"])
        return parse_iso_date(column.get("text"))

    if column_type == ColumnType.PEOPLE:
        if column is None:
            return []
        parsed = load_json_value(column.get("value"))
        if not isinstance(parsed, dict):
            return []
        people: List[PersonRef] = []
        for entry in parsed.get("personsAndTeams") or []:
            if isinstance(entry, dict) and entry.get("id") is not None:
                people.append(
                    PersonRef(id=str(entry["id"]), kind=entry.get("kind", "person"))
                )
        return people

    if column is None:
        return ""
    text = column.get("text") or ""
    if column_type == ColumnType.TEXT:
        return text

    parsed = load_json_value(column.get("value"))
    key = {
        ColumnType.EMAIL: "email",
        ColumnType.PHONE: "phone",
        ColumnType.LONG_TEXT: "text",
    }[column_type]
    if isinstance(parsed, dict) and parsed.get(key):
        return str(parsed[key])
    return text


def encode_date(day: date) -> Dict[str, str]:
    return {"date": day.isoformat()}


def encode_people(person_ids: Iterable[str]) -> Dict[str, Any]:
    return {
        "personsAndTeams": [{"id": int(pid), "kind": "person"} for pid in person_ids]
    }


def encode_email(email: str) -> Dict[str, str]:
    return {"email": email, "text": email}


def encode_phone(phone: str, country: str = "US") -> Dict[str, str]:
    """Phone numbers are stored as bare digits plus a country code."""
    return {"phone": re.sub(r"\D", "", phone), "countryShortName": country}


def encode_long_text(text: str) -> Dict[str, str]:
    return {"text": text}


def encode_label(label: str) -> Dict[str, str]:
    return {"label": label}


def encode_item_link(item_ids: Iterable[str]) -> Dict[str, List[int]]:
    return {"item_ids": [int(i) for i in item_ids]}
