"""Fast-path command parsing for channel messages."""

import re
from typing import Dict, List, Optional

from followup_bot.models.intent import Action, RawIntent

_CURLY_QUOTES = str.maketrans({"‘": "'", "’": "'", "“": '"', "”": '"'})
_MAILTO_LINK = re.compile(r"<mailto:[^|>]+\|([^>]+)>")
_TEL_LINK = re.compile(r"<tel:[^|>]+\|([^>]+)>")
_LABELED_LINK = re.compile(r"<(https?://[^|>]+)\|([^>]+)>")
_BARE_LINK = re.compile(r"<(https?://[^|>]+)>")

# Optional leading subject for first-person reports ("I spoke with", "we just contacted")
_WHO = r"(?:(?:i|we)\s+)?(?:just\s+)?(?:have\s+|had\s+)?"


def normalize_text(text: str) -> str:
    """Clean up Slack message text before classification.

    Straightens curly quotes, unwraps link markup and collapses whitespace.
    User tags such as ``<@U012ABC>`` are left untouched.

    Args:
        text: Raw ``text`` from a message event.

    Returns:
        Normalized text.
    """
    if not text:
        return ""
    text = text.translate(_CURLY_QUOTES)
    text = _MAILTO_LINK.sub(r"\1", text)
    text = _TEL_LINK.sub(r"\1", text)
    text = _LABELED_LINK.sub(r"\2", text)
    text = _BARE_LINK.sub(r"\1", text)
    return " ".join(text.split())


class FastPathParser:
    """Deterministic rules for the most common, least ambiguous phrasings.

    Rules are tried in order and the first match wins. A capture group,
    when present, holds the raw investor name for fuzzy resolution later.
    """

    # Regex patterns for command matching
    PATTERNS: Dict[Action, List[str]] = {
        # "test monday" or "test board"
        Action.DIAGNOSTIC: [
            r"^test\s+(?:monday|board)$",
        ],
        # "who's overdue" or "overdue investors"
        Action.LIST_OVERDUE: [
            r"who'?s?\s+(?:is\s+)?overdue",
            r"overdue\s+investors",
        ],
        # "status on Jane Doe" or "check on Acme Capital"
        Action.CHECK_STATUS: [
            r"^(?:what'?s\s+the\s+)?(?:status\s+on|check\s+on)\s+(?!(?:all|every)\b)(.+?)\??$",
        ],
        # "contacted Jane Doe today" or "I spoke with Jane Doe"
        Action.LOG_CONTACT: [
            rf"^{_WHO}(?:contacted|spoke\s+(?:with|to)|reached\s+out\s+to)\s+(.+?)(?:\s+today)?[.!]?$",
        ],
    }

    def parse(self, text: str) -> Optional[RawIntent]:
        """Match a message against the fast-path rules.

        Args:
            text: Normalized message text.

        Returns:
            A raw intent with full confidence, or None when no rule matched.
        """
        text = (text or "").strip()
        if not text:
            return None

        for action, patterns in self.PATTERNS.items():
            for pattern in patterns:
                match = re.search(pattern, text, re.IGNORECASE)
                if match:
                    return self._build_intent(action, match, text)

        return None

    def _build_intent(self, action: Action, match: re.Match, text: str) -> RawIntent:
        data = {
            "action": action.value,
            "confidence": 1.0,
            "missing_info": [],
        }
        if match.groups():
            data["investorName"] = match.group(1).strip()
        return RawIntent(data=data, text=text, source="fast_path")
