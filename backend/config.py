import logging
from enum import Enum
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


DEFAULT_IMAGE_MODEL = "google/gemini-2.5-flash-image-preview"
DEFAULT_GENAI_TEST_MODEL = "gemini-2.5-flash-image-preview"

_DEV_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


class AppMode(str, Enum):
    DEV = "dev"
    PROD = "prod"


class FanoutMode(str, Enum):
    CONCURRENT = "concurrent"
    SEQUENTIAL = "sequential"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application mode - defaults to DEV for safety
    APP_MODE: AppMode = AppMode.DEV

    # Debug mode - MUST be False in production
    DEBUG: bool = False

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # OpenRouter (OpenAI-compatible) endpoint used for image generation
    OPENROUTER_API_KEY: str = ""
    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    OPENAI_IMAGE_MODEL: Optional[str] = None
    GOOGLE_IMAGE_MODEL: Optional[str] = None

    # OpenAI chat model used to expand questionnaire prompts (optional)
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    PROMPT_REWRITE_MODEL: str = "gpt-4o-mini"

    # Google Gemini API (diagnostic endpoint only)
    GOOGLE_API_KEY: str = ""

    # Retry policy for the image endpoint
    IMAGE_MAX_ATTEMPTS: int = 4
    IMAGE_RETRY_BASE_MS: int = 500
    IMAGE_RETRY_JITTER_MS: int = 300
    API_TIMEOUT_SECONDS: float = 120.0

    # Thumbnail set: number of variations, each rendered in three aspect ratios
    THUMBNAIL_VARIATIONS: int = 3
    THUMBNAIL_FANOUT: FanoutMode = FanoutMode.CONCURRENT

    # Comma-separated list of allowed origins
    CORS_ALLOWED_ORIGINS: str = ""

    @property
    def IMAGE_GENERATION_MODEL(self) -> str:
        return self.OPENAI_IMAGE_MODEL or self.GOOGLE_IMAGE_MODEL or DEFAULT_IMAGE_MODEL

    @property
    def GENAI_TEST_MODEL(self) -> str:
        return self.GOOGLE_IMAGE_MODEL or DEFAULT_GENAI_TEST_MODEL

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """
        Get allowed CORS origins.

        SECURITY: In production, never return ["*"]. Always configure
        CORS_ALLOWED_ORIGINS explicitly in production.
        """
        origins = list(_DEV_CORS_ORIGINS) if self.APP_MODE == AppMode.DEV else []

        if self.CORS_ALLOWED_ORIGINS:
            origins.extend(
                o.strip() for o in self.CORS_ALLOWED_ORIGINS.split(",") if o.strip()
            )

        if not origins and self.APP_MODE == AppMode.PROD:
            logger.warning(
                "SECURITY WARNING: No CORS_ALLOWED_ORIGINS configured in production. "
                "Cross-origin requests will be blocked."
            )
        return origins


def _validate_settings(settings: Settings) -> Settings:
    """
    Validate settings and warn/error on misconfiguration.

    Fails fast on settings that are unsafe in production and on retry/fan-out
    values that would make the generation pipeline meaningless.
    """
    if settings.IMAGE_MAX_ATTEMPTS < 1:
        raise ValueError("IMAGE_MAX_ATTEMPTS must be at least 1")
    if settings.IMAGE_RETRY_BASE_MS < 0 or settings.IMAGE_RETRY_JITTER_MS < 0:
        raise ValueError("Retry delays must not be negative")
    if settings.THUMBNAIL_VARIATIONS < 1:
        raise ValueError("THUMBNAIL_VARIATIONS must be at least 1")

    if settings.APP_MODE == AppMode.PROD:
        if settings.DEBUG:
            error_msg = (
                "CRITICAL SECURITY ERROR: DEBUG=True in production! "
                "Debug mode exposes sensitive information in error responses. "
                "Set DEBUG=False or remove the DEBUG environment variable."
            )
            logger.critical(error_msg)
            raise ValueError(error_msg)

        if not settings.OPENROUTER_API_KEY:
            logger.warning(
                "OPENROUTER_API_KEY not configured in production. "
                "Every thumbnail request will fail until it is set."
            )

    return settings


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    This function validates settings on first access and raises errors
    for critical misconfigurations.
    """
    settings = Settings()
    return _validate_settings(settings)
