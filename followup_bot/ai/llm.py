"""Thin wrapper around an OpenAI-compatible chat completion endpoint."""

import asyncio
import json
import logging
import re
from typing import Any, Optional

from openai import AsyncOpenAI

from followup_bot.config import LLMConfig

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[^{}]*\}", re.DOTALL)
_JSON_ARRAY = re.compile(r"\[.*\]", re.DOTALL)


class LLMError(Exception):
    """The language model could not produce a response."""


def strip_code_fences(content: str) -> str:
    """Remove markdown code fences wrapped around a response."""
    content = (content or "").strip()
    if content.startswith("```"):
        lines = content.split("\n")
        content = "\n".join(
            line for line in lines if not line.strip().startswith("```")
        ).strip()
    return content


def extract_json(content: str, expect: type = dict) -> Optional[Any]:
    """Pull a JSON object (or array) out of a model response.

    Args:
        content: Raw response text.
        expect: ``dict`` or ``list``.

    Returns:
        The decoded value, or None when nothing of the expected shape parses.
    """
    content = strip_code_fences(content)
    if not content:
        return None

    try:
        value = json.loads(content)
        if isinstance(value, expect):
            return value
    except json.JSONDecodeError:
        pass

    pattern = _JSON_OBJECT if expect is dict else _JSON_ARRAY
    match = pattern.search(content)
    if not match:
        return None
    try:
        value = json.loads(match.group())
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, expect) else None


class LLMService:
    """Shared chat-completion client used by the parsers and suggestions."""

    def __init__(self, config: LLMConfig):
        """Initialize service.

        Args:
            config: LLM configuration.
        """
        self.config = config
        self._client: Optional[AsyncOpenAI] = None

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def client(self) -> AsyncOpenAI:
        """Get or create OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(
                base_url=self.config.base_url,
                api_key=self.config.api_key or "not-needed",
                timeout=self.config.timeout,
            )
        return self._client

    async def complete(
        self,
        system: str,
        user: str,
        max_tokens: int = 400,
        temperature: float = 0.1,
    ) -> str:
        """Run one chat completion.

        Args:
            system: System instruction.
            user: User message.
            max_tokens: Response token cap.
            temperature: Sampling temperature.

        Returns:
            The response text, stripped.

        Raises:
            LLMError: When disabled, timed out, or the call failed.
        """
        if not self.enabled:
            raise LLMError("LLM is disabled")

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.config.model,
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": user},
                    ],
                    temperature=temperature,
                    max_tokens=max_tokens,
                ),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError as e:
            raise LLMError(f"LLM timeout after {self.config.timeout}s") from e
        except Exception as e:
            raise LLMError(f"LLM call failed: {e}") from e

        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    async def close(self) -> None:
        """Clean up resources."""
        if self._client:
            await self._client.close()
            self._client = None
