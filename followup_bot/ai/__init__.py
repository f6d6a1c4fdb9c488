"""Language-model backed parsing and suggestions."""

from followup_bot.ai.contact_parser import ContactParser, fallback_contact
from followup_bot.ai.intent_parser import IntentParser
from followup_bot.ai.llm import LLMError, LLMService, extract_json, strip_code_fences
from followup_bot.ai.suggestions import SuggestionService, generic_suggestion

__all__ = [
    "ContactParser",
    "fallback_contact",
    "IntentParser",
    "LLMError",
    "LLMService",
    "extract_json",
    "strip_code_fences",
    "SuggestionService",
    "generic_suggestion",
]
