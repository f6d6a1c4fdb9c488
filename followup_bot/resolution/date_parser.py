"""Natural-language date and time interpretation."""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Tuple, Union
from zoneinfo import ZoneInfo

import dateparser

logger = logging.getLogger(__name__)

# Phrases that pin down a time of day rather than just a date
_EXPLICIT_TIME = re.compile(
    r"""
    \b\d{1,2}(?::\d{2})?\s*(?:a\.?m\.?|p\.?m\.?)(?![a-z])
    | \b\d{1,2}:\d{2}\b
    | \bat\s+\d{1,2}\b
    | \b(?:noon|midnight)\b
    | \bin\s+\d+\s*(?:hours?|hrs?|minutes?|mins?)\b
    """,
    re.IGNORECASE | re.VERBOSE,
)

_WEEKDAYS = "monday|tuesday|wednesday|thursday|friday|saturday|sunday"

# "this friday", "next tuesday"; dateparser only takes the bare weekday
_QUALIFIED_WEEKDAY = re.compile(
    rf"\b(this|next|coming)\s+({_WEEKDAYS})\b", re.IGNORECASE
)
_END_OF_WEEK = re.compile(r"\b(?:(?:the\s+)?end\s+of\s+(?:the\s+)?week|eow)\b", re.IGNORECASE)


@dataclass
class ParsedDate:
    """An absolute, timezone-aware moment resolved from a phrase."""

    when: datetime
    has_explicit_time: bool

    @property
    def day(self) -> date:
        return self.when.date()


class NaturalDateInterpreter:
    """Turns phrases like "Friday at 2pm" into aware datetimes.

    Ambiguous phrases resolve forward in time. When the phrase carries no
    time of day, the result lands at ``default_hour`` local time; the UTC
    offset comes from the zone's rules for that calendar date.
    """

    def __init__(self, timezone: Union[str, ZoneInfo], default_hour: int = 9):
        """Initialize interpreter.

        Args:
            timezone: IANA zone name or ZoneInfo for local civil time.
            default_hour: Hour used when no time of day is given.
        """
        self.zone = ZoneInfo(timezone) if isinstance(timezone, str) else timezone
        self.default_hour = default_hour

    def _settings(self, now: datetime) -> dict:
        return {
            "PREFER_DATES_FROM": "future",
            "RELATIVE_BASE": now.replace(tzinfo=None),
            "RETURN_AS_TIMEZONE_AWARE": False,
        }

    def _try_parse(self, text: str, now: datetime) -> Optional[datetime]:
        try:
            return dateparser.parse(text, settings=self._settings(now))
        except Exception as e:
            logger.warning(f"Date parser failed on {text!r}: {e}")
            return None

    def _rewrite(self, expression: str) -> Tuple[str, Optional[str]]:
        """Reduce qualified weekdays to the bare day dateparser understands.

        Returns the rewritten text and the qualifier ("this" or "next")
        that was dropped, if any.
        """
        text = _END_OF_WEEK.sub("this friday", expression)
        found = _QUALIFIED_WEEKDAY.search(text)
        if not found:
            return text, None
        qualifier = "next" if found.group(1).lower() == "next" else "this"
        return _QUALIFIED_WEEKDAY.sub(found.group(2), text, count=1), qualifier

    def parse(self, expression: str, now: Optional[datetime] = None) -> Optional[ParsedDate]:
        """Resolve a date expression.

        Args:
            expression: Free text such as "tomorrow", "next Monday at 3pm".
            now: Reference moment; defaults to the current local time.

        Returns:
            ParsedDate, or None when nothing in the phrase is a date.
        """
        if not expression or not expression.strip():
            return None
        expression = " ".join(expression.split())

        if now is None:
            now = datetime.now(self.zone)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=self.zone)
        else:
            now = now.astimezone(self.zone)

        text, qualifier = self._rewrite(expression)
        parsed = None
        for candidate in (text, f"on {text}", f"at {text}"):
            parsed = self._try_parse(candidate, now)
            if parsed is not None:
                break

        if parsed is None:
            logger.info(f"Could not parse date expression {expression!r}")
            return None

        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(self.zone).replace(tzinfo=None)

        # A bare weekday always lands 1-7 days ahead
        ahead = (parsed.date() - now.date()).days
        if qualifier == "this" and ahead == 7:
            parsed -= timedelta(days=7)
        elif qualifier == "next" and parsed.isocalendar()[:2] == now.isocalendar()[:2]:
            parsed += timedelta(days=7)

        has_time = bool(_EXPLICIT_TIME.search(expression))
        if not has_time:
            parsed = parsed.replace(
                hour=self.default_hour, minute=0, second=0, microsecond=0
            )

        # Wall-clock local time; ZoneInfo supplies the offset for that date
        when = parsed.replace(tzinfo=self.zone)
        return ParsedDate(when=when, has_explicit_time=has_time)
