"""
Optional LLM prompt expansion.

When an OpenAI key is configured the questionnaire prompt is rewritten into
a tighter, more detailed image-generation prompt. Without a key, or when the
call fails, the original prompt is returned unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

REWRITE_SYSTEM_PROMPT = (
    "You are an assistant that rewrites short creative prompts for image generation."
)
REWRITE_MAX_TOKENS = 300


class PromptRewriter:
    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 60.0,
        completions: Optional[Any] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self._completions = completions

    @classmethod
    def from_settings(cls, settings: Any) -> "PromptRewriter":
        return cls(
            api_key=settings.OPENAI_API_KEY,
            model=settings.PROMPT_REWRITE_MODEL,
            base_url=settings.OPENAI_BASE_URL,
            timeout_seconds=settings.API_TIMEOUT_SECONDS,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) or self._completions is not None

    @property
    def completions(self) -> Any:
        if self._completions is None:
            from openai import AsyncOpenAI

            # The rewrite is optional; one request, then fall back.
            self._completions = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                max_retries=0,
                timeout=self.timeout_seconds,
            ).chat.completions
        return self._completions

    async def rewrite(self, prompt: str) -> str:
        if not self.is_configured:
            return prompt

        try:
            response = await asyncio.wait_for(
                self.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": REWRITE_SYSTEM_PROMPT},
                        {
                            "role": "user",
                            "content": (
                                "Rewrite and expand this prompt to be concise and "
                                f"detailed for image generation: {prompt}"
                            ),
                        },
                    ],
                    max_tokens=REWRITE_MAX_TOKENS,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Prompt rewrite timed out after %ss; using original prompt",
                self.timeout_seconds,
            )
            return prompt
        except Exception as e:
            logger.warning("Prompt rewrite failed, falling back to original prompt: %s", e)
            return prompt

        text = _first_message_text(response)
        if not text:
            logger.warning("Prompt rewrite returned no text; using original prompt")
            return prompt
        return text


def _first_message_text(response: Any) -> str:
    choices = getattr(response, "choices", None)
    if choices is None and isinstance(response, dict):
        choices = response.get("choices")
    if not choices:
        return ""

    message = getattr(choices[0], "message", None)
    if message is None and isinstance(choices[0], dict):
        message = choices[0].get("message")
    content = getattr(message, "content", None)
    if content is None and isinstance(message, dict):
        content = message.get("content")
    return content.strip() if isinstance(content, str) else ""
