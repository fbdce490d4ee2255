"""Question generation through an OpenAI-compatible chat completions API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

import httpx

from ember.domain.game import prompts
from ember.domain.game.exceptions import GeneratorNotConfigured, QuestionGenerationError
from ember.settings import settings

logger = logging.getLogger(__name__)

_MAX_QUESTION_LENGTH = 500


class QuestionGenerator(Protocol):
    """Interface for producing the next question of a room."""

    async def generate(
        self,
        *,
        spicy_level: str,
        category: str,
        categories: Sequence[str],
        previous: Sequence[str],
    ) -> str:
        ...


@dataclass
class XaiQuestionGenerator(QuestionGenerator):
    """Calls ``{base_url}/chat/completions`` with a server-side key."""

    base_url: str
    api_key: Optional[str]
    model: str
    temperature: float = 0.9
    max_tokens: int = 300
    timeout: float = 20.0
    transport: Optional[httpx.AsyncBaseTransport] = None

    @classmethod
    def from_settings(cls) -> "XaiQuestionGenerator":
        return cls(
            base_url=settings.question_generator_url,
            api_key=settings.question_generator_api_key,
            model=settings.question_generator_model,
            temperature=settings.question_generator_temperature,
            max_tokens=settings.question_generator_max_tokens,
            timeout=settings.question_generator_timeout_seconds,
        )

    async def generate(
        self,
        *,
        spicy_level: str,
        category: str,
        categories: Sequence[str],
        previous: Sequence[str],
    ) -> str:
        if not self.api_key:
            raise GeneratorNotConfigured()
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": prompts.SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": prompts.build_user_prompt(
                        spicy_level=spicy_level,
                        category=category,
                        categories=categories,
                        previous=previous,
                    ),
                },
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        url = self.base_url.rstrip("/") + "/chat/completions"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json=body, headers={"Authorization": f"Bearer {self.api_key}"})
        except httpx.HTTPError as exc:
            logger.warning("question_generator_unreachable", extra={"error": type(exc).__name__})
            raise QuestionGenerationError("generator_unreachable") from exc
        if response.status_code >= 400:
            logger.warning("question_generator_error", extra={"status": response.status_code})
            raise QuestionGenerationError("generator_failed")
        return _extract_question(response)


def _extract_question(response: httpx.Response) -> str:
    try:
        data = response.json()
        content = data["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise QuestionGenerationError("generator_bad_response") from exc
    text = str(content or "").strip().strip('"').strip()
    if not text:
        raise QuestionGenerationError("generator_empty_response")
    return text[:_MAX_QUESTION_LENGTH]
