"""
Error kinds raised by the image completion client.

Every error carries a machine-readable ``code`` and, when the provider
returned one, the HTTP ``status_code`` so callers can tell "give up" apart
from "bad input".
"""

from typing import Optional


class ImageGenerationError(Exception):
    """Base class for all image generation failures."""

    code = "IMAGE_GENERATION_ERROR"

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "status_code": self.status_code,
        }


class EmptyPromptError(ImageGenerationError, ValueError):
    code = "EMPTY_PROMPT"


class MissingBaseImageError(ImageGenerationError, ValueError):
    """Base image is required for editing; raised before any network call."""

    code = "MISSING_BASE_IMAGE"


class ProviderError(ImageGenerationError):
    """Failure reported by the remote completion endpoint."""

    code = "PROVIDER_ERROR"


class TransientProviderError(ProviderError):
    """HTTP 429/5xx, rate-limit message or timeout. Worth retrying."""

    code = "TRANSIENT_PROVIDER_ERROR"


class NonTransientProviderError(ProviderError):
    code = "PROVIDER_ERROR"


class RetryExhaustedError(ImageGenerationError):
    """Transient errors persisted through every allowed attempt."""

    code = "RATE_LIMIT"

    def __init__(
        self,
        message: str,
        *,
        attempts: int,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, status_code=status_code)
        self.attempts = attempts


class NoImageDataError(ImageGenerationError):
    """The call succeeded but no recognizable image payload came back."""

    code = "NO_IMAGE_DATA"


class GenerationCancelledError(ImageGenerationError):
    code = "CANCELLED"
