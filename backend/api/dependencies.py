"""FastAPI dependency providers for the generation services.

Each provider builds its service from settings once; tests swap them out
through ``app.dependency_overrides``.
"""

from functools import lru_cache

from fastapi import HTTPException, status

from config import get_settings
from services.completion_client import ImageClientConfig, RetryingCompletionClient
from services.gemini_probe import GeminiProbe
from services.prompt_rewriter import PromptRewriter


@lru_cache()
def _build_completion_client() -> RetryingCompletionClient:
    return RetryingCompletionClient(ImageClientConfig.from_settings(get_settings()))


def get_completion_client() -> RetryingCompletionClient:
    """Image client; 503 when the image endpoint has no API key."""
    if not get_settings().OPENROUTER_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Image generation is not configured. Please set OPENROUTER_API_KEY in .env",
        )
    return _build_completion_client()


@lru_cache()
def get_prompt_rewriter() -> PromptRewriter:
    return PromptRewriter.from_settings(get_settings())


def get_gemini_probe() -> GeminiProbe:
    probe = GeminiProbe.from_settings(get_settings())
    if not probe.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="GenAI is not configured. Please set GOOGLE_API_KEY in .env",
        )
    return probe
