"""Tests for the language model wrapper, intent parser and classifier."""

from unittest.mock import AsyncMock, MagicMock

import pytest

pytest.importorskip("openai")

from followup_bot.ai.intent_parser import IntentParser
from followup_bot.ai.llm import LLMError, LLMService, extract_json, strip_code_fences
from followup_bot.bot.classifier import IntentClassifier
from followup_bot.bot.command_parser import FastPathParser
from followup_bot.config import LLMConfig
from followup_bot.models.intent import Action, ScheduleIntent


def make_llm(enabled: bool = True, reply: str = "") -> LLMService:
    llm = LLMService(LLMConfig(enabled=enabled, api_key="k", model="m", timeout=5))
    llm.complete = AsyncMock(return_value=reply)
    return llm


def completion(content: str) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


class TestJsonExtraction:
    """Tests for response cleanup helpers."""

    def test_strip_code_fences(self):
        """Fenced blocks lose their fences."""
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_extract_object_from_prose(self):
        """An object embedded in chatter is found."""
        assert extract_json('Sure! {"action": "unknown"} hope that helps') == {
            "action": "unknown"
        }

    def test_extract_array(self):
        assert extract_json('[{"name": "A"}]', list) == [{"name": "A"}]

    def test_wrong_shape(self):
        """A list is not accepted where an object is expected."""
        assert extract_json("[1, 2]", dict) is None
        assert extract_json("no json here") is None


class TestLLMService:
    """Tests for LLMService.complete."""

    @pytest.mark.asyncio
    async def test_disabled_raises(self):
        llm = LLMService(LLMConfig(enabled=False))
        with pytest.raises(LLMError):
            await llm.complete("sys", "user")

    @pytest.mark.asyncio
    async def test_returns_stripped_content(self):
        """The first choice's text comes back trimmed."""
        llm = LLMService(LLMConfig(enabled=True, api_key="k", model="m", timeout=5))
        llm._client = MagicMock()
        llm._client.chat.completions.create = AsyncMock(
            return_value=completion("  hello \n")
        )
        assert await llm.complete("sys", "user") == "hello"

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self):
        """Client exceptions surface as LLMError."""
        llm = LLMService(LLMConfig(enabled=True, api_key="k", model="m", timeout=5))
        llm._client = MagicMock()
        llm._client.chat.completions.create = AsyncMock(side_effect=RuntimeError("boom"))
        with pytest.raises(LLMError, match="boom"):
            await llm.complete("sys", "user")


class TestIntentParser:
    """Tests for IntentParser."""

    @pytest.mark.asyncio
    async def test_parses_json(self):
        """A well-formed reply becomes a raw intent."""
        llm = make_llm(
            reply='{"action": "schedule_followup", "investorName": "Jalin", '
            '"date": "friday", "confidence": 0.9, "missing_info": []}'
        )
        raw = await IntentParser(llm).parse("follow up with Jalin friday")
        assert raw.data["action"] == "schedule_followup"
        assert raw.source == "llm"
        assert raw.text == "follow up with Jalin friday"

    @pytest.mark.asyncio
    async def test_failure_is_unknown(self):
        """Model errors never escape."""
        llm = make_llm()
        llm.complete = AsyncMock(side_effect=LLMError("timeout"))
        raw = await IntentParser(llm).parse("hello")
        assert raw.data["action"] == "unknown"
        assert raw.data["confidence"] == 0.0

    @pytest.mark.asyncio
    async def test_garbage_is_unknown(self):
        llm = make_llm(reply="I cannot help with that")
        raw = await IntentParser(llm).parse("hello")
        assert raw.data["action"] == "unknown"


class TestIntentClassifier:
    """Tests for the two-stage classifier."""

    @pytest.mark.asyncio
    async def test_fast_path_skips_model(self):
        """Fast-path matches never call the model."""
        llm = make_llm()
        classifier = IntentClassifier(FastPathParser(), IntentParser(llm))
        intent = await classifier.classify("who's overdue")
        assert intent.action == Action.LIST_OVERDUE
        assert intent.source == "fast_path"
        llm.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_falls_back_to_model(self):
        """Other messages go to the model and are validated."""
        llm = make_llm(
            reply='{"action": "schedule_followup", "investorName": "Jalin", '
            '"date": "next tuesday", "confidence": 0.8}'
        )
        classifier = IntentClassifier(FastPathParser(), IntentParser(llm))
        intent = await classifier.classify("ping Jalin next tuesday")
        assert isinstance(intent, ScheduleIntent)
        assert intent.date == "next tuesday"

    @pytest.mark.asyncio
    async def test_disabled_model_yields_unknown(self):
        """Without a model, unmatched text is unknown."""
        llm = make_llm(enabled=False)
        classifier = IntentClassifier(FastPathParser(), IntentParser(llm))
        intent = await classifier.classify("ping Jalin next tuesday")
        assert intent.action == Action.UNKNOWN
        llm.complete.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["who's overdue", "ping Jalin next tuesday"])
    async def test_same_text_same_intent(self, text):
        """Classifying a message again yields the same action and slots."""
        llm = make_llm(
            reply='{"action": "schedule_followup", "investorName": "Jalin", '
            '"date": "next tuesday", "confidence": 0.8}'
        )
        classifier = IntentClassifier(FastPathParser(), IntentParser(llm))
        first = await classifier.classify(text)
        second = await classifier.classify(text)
        assert first == second
        assert first.action != Action.UNKNOWN
