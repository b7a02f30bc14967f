"""Topic sources for new rounds."""

from __future__ import annotations

from collections.abc import Sequence
import logging
import random
from typing import Any
from typing import Protocol

import httpx

from insider_engine.errors import UpstreamError
from insider_engine.errors import ValidationError

logger = logging.getLogger(__name__)

DIFFICULTIES = ("easy", "normal", "hard")
DEFAULT_DIFFICULTY = "normal"

FALLBACK_TOPICS = (
    "apple",
    "coffee",
    "bicycle",
    "book",
    "clock",
    "bridge",
    "mountain",
    "sea",
    "chair",
    "telephone",
)

_PROMPTS = {
    "easy": "Reply with one everyday common noun that almost every child knows.",
    "normal": "Reply with one common noun that almost every adult knows.",
    "hard": "Reply with one common noun that most adults know but rarely use.",
}
_PROMPT_SUFFIX = " Avoid proper nouns and jargon. Output the single word only, no punctuation or explanation."


class TopicProvider(Protocol):
    async def next_topic(self, difficulty: str | None = None) -> str: ...


def normalize_difficulty(difficulty: str | None) -> str:
    value = (difficulty or DEFAULT_DIFFICULTY).strip().lower()
    if value not in DIFFICULTIES:
        raise ValidationError(
            f"difficulty must be one of {', '.join(DIFFICULTIES)}",
            detail={"difficulty": difficulty},
        )
    return value


def sanitize_topic(raw: str) -> str:
    """Keep letters, digits and the ideographic space."""
    return "".join(ch for ch in raw.strip() if ch.isalnum() or ch == "　")


class StaticTopicProvider:
    def __init__(self, words: Sequence[str] = FALLBACK_TOPICS, rng: random.Random | None = None) -> None:
        if not words:
            raise ValueError("words must not be empty")
        self._words = tuple(words)
        self._rng = rng or random.Random()

    async def next_topic(self, difficulty: str | None = None) -> str:
        normalize_difficulty(difficulty)
        return self._rng.choice(self._words)


class ChatCompletionTopicProvider:
    """Ask an OpenAI-compatible chat-completions endpoint for a single word."""

    def __init__(
        self,
        *,
        endpoint: str,
        model: str,
        api_key: str = "",
        timeout_seconds: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.model = model
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._client = client

    def _payload(self, difficulty: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": "You are a helpful topic generator."},
                {"role": "user", "content": _PROMPTS[difficulty] + _PROMPT_SUFFIX},
            ],
            "temperature": 0.7,
            "max_tokens": 10,
        }

    async def next_topic(self, difficulty: str | None = None) -> str:
        level = normalize_difficulty(difficulty)
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        try:
            if self._client is not None:
                response = await self._client.post(self.endpoint, json=self._payload(level), headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self.endpoint, json=self._payload(level), headers=headers)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("topic provider request failed: %s", exc)
            raise UpstreamError(f"topic provider request failed: {exc}") from exc

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamError("topic provider returned an unexpected payload") from exc
        topic = sanitize_topic(str(content or ""))
        if not topic:
            raise UpstreamError("topic provider returned no usable topic")
        return topic


__all__ = [
    "ChatCompletionTopicProvider",
    "DEFAULT_DIFFICULTY",
    "DIFFICULTIES",
    "FALLBACK_TOPICS",
    "StaticTopicProvider",
    "TopicProvider",
    "normalize_difficulty",
    "sanitize_topic",
]
