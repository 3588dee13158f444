"""
Retrying multimodal completion client.

Sends one chat-completions request (text + base image) to an
OpenAI-compatible endpoint, retries transient failures with exponential
backoff and jitter, and extracts a base64 image payload from the response.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

from services.generation_errors import (
    EmptyPromptError,
    GenerationCancelledError,
    MissingBaseImageError,
    NoImageDataError,
    NonTransientProviderError,
    RetryExhaustedError,
    TransientProviderError,
)
from services.image_extraction import extract_image_payload, response_to_mapping
from services.retry_policy import RetryPolicy, classify_provider_error

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME_TYPE = "image/png"

BaseImage = Union[bytes, str]
SleepFunc = Callable[[float], Awaitable[Any]]
JitterFunc = Callable[[], float]


class ChatCompletions(Protocol):
    """Anything shaped like ``AsyncOpenAI().chat.completions``."""

    async def create(self, *, model: str, messages: list, **kwargs: Any) -> Any:
        ...


@dataclass(frozen=True)
class ImageClientConfig:
    """Explicit client configuration; the client never reads the environment."""

    api_key: str
    model: str
    base_url: str = "https://openrouter.ai/api/v1"
    timeout_seconds: float = 120.0
    default_mime_type: str = DEFAULT_IMAGE_MIME_TYPE
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    @classmethod
    def from_settings(cls, settings: Any) -> "ImageClientConfig":
        return cls(
            api_key=settings.OPENROUTER_API_KEY,
            model=settings.IMAGE_GENERATION_MODEL,
            base_url=settings.OPENROUTER_BASE_URL,
            timeout_seconds=settings.API_TIMEOUT_SECONDS,
            retry=RetryPolicy(
                max_attempts=settings.IMAGE_MAX_ATTEMPTS,
                base_delay_ms=settings.IMAGE_RETRY_BASE_MS,
                max_jitter_ms=settings.IMAGE_RETRY_JITTER_MS,
            ),
        )


def to_data_url(base_image: BaseImage, default_mime_type: str = DEFAULT_IMAGE_MIME_TYPE) -> str:
    """Return ``base_image`` as a data URL, wrapping raw bytes or bare base64."""
    if isinstance(base_image, (bytes, bytearray)):
        encoded = base64.b64encode(bytes(base_image)).decode("ascii")
        return f"data:{default_mime_type};base64,{encoded}"
    if base_image.startswith("data:"):
        return base_image
    return f"data:{default_mime_type};base64,{base_image}"


def _preview(value: str, limit: int = 100) -> str:
    return value if len(value) <= limit else f"{value[:limit]}... ({len(value)} chars)"


def _build_openai_completions(config: ImageClientConfig) -> ChatCompletions:
    from openai import AsyncOpenAI

    # Retries belong to RetryPolicy alone; the SDK must send exactly one request per attempt.
    client = AsyncOpenAI(
        base_url=config.base_url,
        api_key=config.api_key,
        max_retries=0,
        timeout=config.timeout_seconds,
    )
    return client.chat.completions


class RetryingCompletionClient:
    """
    Single-request primitive for image generation.

    Stateless between calls: retry state lives in the ``generate`` frame, so
    one instance can serve concurrent requests.
    """

    def __init__(
        self,
        config: ImageClientConfig,
        completions: Optional[ChatCompletions] = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
        jitter: Optional[JitterFunc] = None,
    ):
        self.config = config
        self._completions = completions
        self._sleep = sleep
        self._jitter = jitter or config.retry.random_jitter_ms

    @property
    def completions(self) -> ChatCompletions:
        if self._completions is None:
            self._completions = _build_openai_completions(self.config)
        return self._completions

    def build_messages(self, prompt: str, base_image: BaseImage) -> list[dict]:
        url = to_data_url(base_image, self.config.default_mime_type)
        return [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": url}},
                ],
            }
        ]

    async def generate(
        self,
        prompt: str,
        base_image: Optional[BaseImage],
        *,
        target_size: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """
        Generate one image and return its base64 payload.

        ``target_size`` is advisory only and is logged, not enforced: the
        wrapped model is not guaranteed to honor it.

        Raises:
            EmptyPromptError / MissingBaseImageError: before any network call.
            NonTransientProviderError: first non-retryable provider failure.
            RetryExhaustedError: transient failures on every attempt.
            NoImageDataError: the response held no recognizable image.
            GenerationCancelledError: ``cancel_event`` was set.
        """
        if not prompt or not prompt.strip():
            raise EmptyPromptError("Prompt must not be empty")
        if not base_image:
            raise MissingBaseImageError("Base image is required for editing")

        messages = self.build_messages(prompt, base_image)
        logger.info(
            "Calling image model %s (target_size=%s, prompt=%d chars)",
            self.config.model,
            target_size or "unspecified",
            len(prompt),
        )
        logger.debug("Base image: %s", _preview(messages[0]["content"][1]["image_url"]["url"]))

        response = await self._call_with_retries(messages, cancel_event)

        payload = extract_image_payload(response)
        if not payload:
            mapping = response_to_mapping(response)
            logger.warning(
                "Image call returned but no image data found (model=%s, keys=%s)",
                self.config.model,
                sorted(mapping.keys()),
            )
            raise NoImageDataError("Image model call returned no image data")

        logger.info("Image payload extracted (%d base64 chars)", len(payload))
        return payload

    async def _call_with_retries(
        self, messages: list[dict], cancel_event: Optional[asyncio.Event]
    ) -> Any:
        policy = self.config.retry
        last_error: Optional[TransientProviderError] = None

        for attempt in range(1, policy.max_attempts + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise GenerationCancelledError("Generation cancelled before attempt")

            try:
                return await self._until_cancelled(
                    asyncio.wait_for(
                        self.completions.create(model=self.config.model, messages=messages),
                        timeout=self.config.timeout_seconds,
                    ),
                    cancel_event,
                )
            except GenerationCancelledError:
                raise
            except Exception as e:
                error = classify_provider_error(e)
                if isinstance(error, NonTransientProviderError):
                    logger.warning(
                        "Image model call failed (attempt %s/%s, status=%s): %s",
                        attempt,
                        policy.max_attempts,
                        error.status_code,
                        error.message,
                    )
                    raise error from e

                last_error = error
                if not policy.has_attempts_left(attempt):
                    break

                wait_ms = policy.base_delay_for(attempt) + self._jitter()
                logger.warning(
                    "Transient error (attempt %s/%s) status=%s, retrying after %sms",
                    attempt,
                    policy.max_attempts,
                    error.status_code,
                    wait_ms,
                )
                await self._until_cancelled(self._sleep(wait_ms / 1000), cancel_event)

        logger.error("Image generation failed after %s attempts", policy.max_attempts)
        raise RetryExhaustedError(
            "Image generation failed after retries",
            attempts=policy.max_attempts,
            status_code=last_error.status_code if last_error else None,
        ) from last_error

    @staticmethod
    async def _until_cancelled(
        awaitable: Awaitable[Any], cancel_event: Optional[asyncio.Event]
    ) -> Any:
        """Await ``awaitable`` unless ``cancel_event`` fires first."""
        if cancel_event is None:
            return await awaitable

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {work, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            waiter.cancel()

        if work in done:
            return work.result()

        work.cancel()
        logger.info("Generation cancelled; aborting in-flight call")
        raise GenerationCancelledError("Generation cancelled")
