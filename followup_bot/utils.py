"""Text and date helpers shared by message formatting and handlers."""

import re
from datetime import date, datetime
from typing import Optional, Union
from zoneinfo import ZoneInfo

# Anything that is not a letter, digit, space or common punctuation
_GLYPHS = re.compile(r"[^\w\s/&'.,-]", re.UNICODE)


def escape_mrkdwn(text: Optional[str]) -> str:
    """Escape Slack control characters.

    Prevents ``<!channel>`` broadcasts, ``<url|label>`` link injection and
    user mentions sneaking in through board data.
    """
    if not text:
        return ""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def strip_glyphs(text: Optional[str]) -> str:
    """Drop emoji and symbols, e.g. "🔥 Hot Lead" -> "Hot Lead"."""
    if not text:
        return ""
    return " ".join(_GLYPHS.sub(" ", text).split())


def local_now(tz: Union[str, ZoneInfo]) -> datetime:
    zone = ZoneInfo(tz) if isinstance(tz, str) else tz
    return datetime.now(zone)


def local_today(tz: Union[str, ZoneInfo]) -> date:
    """Today's calendar date in the given timezone."""
    return local_now(tz).date()


def days_since(day: Optional[date], today: date) -> Optional[int]:
    if day is None:
        return None
    return (today - day).days


def format_date_short(day: Optional[date]) -> str:
    """Format as "Oct 23, 2026"."""
    if day is None:
        return "N/A"
    return f"{day.strftime('%b')} {day.day}, {day.year}"


def format_date_readable(day: date) -> str:
    """Format as "Fri, Oct 23"."""
    return f"{day.strftime('%a, %b')} {day.day}"


def format_time(moment: datetime) -> str:
    """Format as "2:00 PM EDT"."""
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    zone = moment.tzname() or ""
    return f"{hour}:{moment.minute:02d} {suffix} {zone}".strip()


def format_currency(amount: Union[str, float, int, None]) -> str:
    """Format a dollar amount, treating blanks and garbage as $0."""
    value = parse_amount(amount)
    if value.is_integer():
        return f"${int(value):,}"
    return f"${value:,.2f}"


def parse_amount(amount: Union[str, float, int, None]) -> float:
    if amount in (None, ""):
        return 0.0
    try:
        return float(str(amount).replace(",", "").replace("$", ""))
    except ValueError:
        return 0.0
