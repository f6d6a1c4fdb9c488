"""Two-stage intent classification."""

import logging

from followup_bot.ai.intent_parser import IntentParser
from followup_bot.bot.command_parser import FastPathParser
from followup_bot.models.intent import Intent, RawIntent, validate_intent

logger = logging.getLogger(__name__)


class IntentClassifier:
    """Runs the fast-path rules, then the language model when none match."""

    def __init__(self, fast_path: FastPathParser, intent_parser: IntentParser):
        """Initialize classifier.

        Args:
            fast_path: Deterministic rule parser.
            intent_parser: Language model fallback.
        """
        self.fast_path = fast_path
        self.intent_parser = intent_parser

    async def classify(self, text: str) -> Intent:
        """Classify normalized message text.

        Never raises; a failed model call comes back as an unknown intent.

        Args:
            text: Normalized message text.

        Returns:
            A validated intent.
        """
        raw = self.fast_path.parse(text)
        if raw is not None:
            logger.info(f"Fast path matched {raw.data.get('action')} for {text!r}")
        else:
            logger.info(f"No fast-path match for {text!r}, asking the model")
            if self.intent_parser.llm.enabled:
                raw = await self.intent_parser.parse(text)
            else:
                raw = RawIntent.unknown(text)

        return validate_intent(raw)
