"""Extraction of new-contact details from pasted messages."""

import logging
import re
from typing import List, Optional

from followup_bot.ai.llm import LLMError, LLMService, extract_json
from followup_bot.board.mutations import NewContact

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
PHONE_PATTERN = re.compile(r"(?:\+?1[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}")
LINKEDIN_PATTERN = re.compile(r"https?://(?:www\.)?linkedin\.com/\S+", re.IGNORECASE)

SYSTEM_PROMPT = """You pull contact details out of Slack messages where someone pastes \
one or more new investor leads. Reply with a JSON array and nothing else.

Each element: {"name": string, "phone": string|null, "email": string|null, \
"company": string|null, "linkedin": string|null, "notes": string|null}

- Include every contact in the message; skip any without a name.
- Remove Slack link markup such as <tel:...|...>, <mailto:...|...> and <url|label>.
- Keep phone numbers as written; do not add a country code.
- linkedin holds a linkedin.com URL when present.
- Put other context (how they were met, referrals, interests) in notes."""


def _clean(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def fallback_contact(text: str, name: Optional[str]) -> Optional[NewContact]:
    """Build one contact from the classifier's name and regex-found details."""
    if not name:
        return None
    email = EMAIL_PATTERN.search(text)
    phone = PHONE_PATTERN.search(text)
    linkedin = LINKEDIN_PATTERN.search(text)
    return NewContact(
        name=name.strip(),
        email=email.group() if email else "",
        phone=phone.group() if phone else "",
        linkedin=linkedin.group() if linkedin else "",
    )


class ContactParser:
    """Asks the language model for structured contacts."""

    def __init__(self, llm: LLMService):
        self.llm = llm

    async def parse(self, text: str) -> List[NewContact]:
        """Extract contacts from a message.

        Args:
            text: Normalized message text.

        Returns:
            Contacts with a name; empty when extraction failed.
        """
        if not text or not text.strip():
            return []

        try:
            content = await self.llm.complete(SYSTEM_PROMPT, text.strip(), max_tokens=1000)
        except LLMError as e:
            logger.error(f"Contact extraction failed: {e}")
            return []

        data = extract_json(content, list)
        if data is None:
            logger.warning(f"Contact parser returned no array: {content[:100]}")
            return []

        contacts = []
        for entry in data:
            if not isinstance(entry, dict) or not _clean(entry.get("name")):
                continue
            contacts.append(
                NewContact(
                    name=_clean(entry.get("name")),
                    email=_clean(entry.get("email")),
                    phone=_clean(entry.get("phone")),
                    company=_clean(entry.get("company")),
                    linkedin=_clean(entry.get("linkedin")),
                    notes=_clean(entry.get("notes")),
                )
            )
        logger.info(f"Parsed {len(contacts)} contacts from message")
        return contacts
