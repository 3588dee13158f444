"""Retry policy and failure classification for provider calls."""

import asyncio
import random
import re
from dataclasses import dataclass
from typing import Optional

from services.generation_errors import (
    NonTransientProviderError,
    ProviderError,
    TransientProviderError,
)

_RATE_LIMIT_PATTERN = re.compile(r"rate limit|429", re.IGNORECASE)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with additive jitter, all values in milliseconds."""

    max_attempts: int = 4
    base_delay_ms: int = 500
    max_jitter_ms: int = 300

    def base_delay_for(self, attempt: int) -> int:
        """Delay before the attempt after ``attempt`` (1-based), without jitter."""
        return self.base_delay_ms * (2 ** (attempt - 1))

    def random_jitter_ms(self) -> int:
        if self.max_jitter_ms <= 0:
            return 0
        return random.randrange(self.max_jitter_ms)

    def has_attempts_left(self, attempt: int) -> bool:
        return attempt < self.max_attempts


def extract_status_code(error: BaseException) -> Optional[int]:
    """Read an HTTP status from SDK errors (openai, httpx) or ad hoc ones."""
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None) or getattr(response, "status", None)
    if isinstance(value, int):
        return value
    return None


def is_transient(status_code: Optional[int], message: str) -> bool:
    if status_code == 429:
        return True
    if status_code is not None and 500 <= status_code < 600:
        return True
    return bool(_RATE_LIMIT_PATTERN.search(message or ""))


def classify_provider_error(error: BaseException) -> ProviderError:
    """Wrap a raw provider failure as transient or non-transient."""
    if isinstance(error, ProviderError):
        return error

    message = str(error) or error.__class__.__name__
    if isinstance(error, asyncio.TimeoutError):
        return TransientProviderError(f"Provider call timed out: {message}")

    status_code = extract_status_code(error)
    if is_transient(status_code, message):
        return TransientProviderError(message, status_code=status_code)
    return NonTransientProviderError(message, status_code=status_code)
