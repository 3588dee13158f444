import logging
from contextlib import asynccontextmanager
from typing import Any

from api.routes import genai, prompts, thumbnails
from config import AppMode, get_settings
from fastapi import APIRouter, FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from middleware.security import SecurityHeadersMiddleware
from starlette.requests import Request

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Silence noisy HTTP client loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle events - startup and shutdown"""
    logger.info(f"Starting Thumbnail Studio in {settings.APP_MODE.value} mode...")

    if settings.OPENROUTER_API_KEY:
        logger.info(
            "Image generation via %s (model=%s, max_attempts=%s, fanout=%s)",
            settings.OPENROUTER_BASE_URL,
            settings.IMAGE_GENERATION_MODEL,
            settings.IMAGE_MAX_ATTEMPTS,
            settings.THUMBNAIL_FANOUT.value,
        )
    else:
        logger.warning("No OPENROUTER_API_KEY configured. Set it in .env")

    if not settings.OPENAI_API_KEY:
        logger.info("No OPENAI_API_KEY configured; prompts are used without rewriting")

    yield

    logger.info("Shutting down Thumbnail Studio...")


app = FastAPI(
    title="Thumbnail Studio",
    description="AI thumbnail generation from a photo and a short questionnaire",
    version=APP_VERSION,
    lifespan=lifespan,
    debug=(settings.APP_MODE == AppMode.DEV),
)

# Bounds for reflected user input in 422 bodies (base64 pasted into JSON fields).
ERROR_STRING_LIMIT = 400
ERROR_ITEMS_LIMIT = 50
ERROR_DEPTH_LIMIT = 8


def _sanitize_for_json(value: Any, *, _depth: int = 0) -> Any:
    """Bound and UTF-8-clean validation error details before serializing them."""
    if _depth > ERROR_DEPTH_LIMIT:
        return "<max depth reached>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (str, bytes)):
        raw = value if isinstance(value, bytes) else value.encode("utf-8", errors="replace")
        text = raw.decode("utf-8", errors="replace")
        return text if len(text) <= ERROR_STRING_LIMIT else f"{text[:ERROR_STRING_LIMIT]}...(truncated)"

    if isinstance(value, dict):
        items = list(value.items())
        cleaned: Any = {
            str(_sanitize_for_json(k, _depth=_depth + 1)): _sanitize_for_json(v, _depth=_depth + 1)
            for k, v in items[:ERROR_ITEMS_LIMIT]
        }
        if len(items) > ERROR_ITEMS_LIMIT:
            cleaned["__truncated__"] = f"{len(items) - ERROR_ITEMS_LIMIT} more keys truncated"
        return cleaned

    if isinstance(value, (list, tuple, set)):
        items = list(value)
        cleaned = [_sanitize_for_json(v, _depth=_depth + 1) for v in items[:ERROR_ITEMS_LIMIT]]
        if len(items) > ERROR_ITEMS_LIMIT:
            cleaned.append(f"... ({len(items) - ERROR_ITEMS_LIMIT} more items truncated)")
        return cleaned

    # ctx entries can hold exception instances
    return _sanitize_for_json(str(value), _depth=_depth + 1)


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    safe_errors = _sanitize_for_json(exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": safe_errors},
    )


# Middlewares (order matters - first added = last executed)
app.add_middleware(SecurityHeadersMiddleware)

# Request logging (development only)
if settings.APP_MODE == AppMode.DEV:
    from middleware.logging import RequestLoggingMiddleware, configure_request_logging

    configure_request_logging(settings.LOG_LEVEL)
    app.add_middleware(RequestLoggingMiddleware)

# CORS middleware - must be last (first to process incoming requests)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

ROUTERS = (thumbnails.router, prompts.router, genai.router)

api_v1_router = APIRouter(prefix="/api/v1")
for router in ROUTERS:
    api_v1_router.include_router(router)
app.include_router(api_v1_router)

# Backward compatibility: unversioned /api/ prefix (deprecated)
api_compat_router = APIRouter(prefix="/api", deprecated=True)
for router in ROUTERS:
    api_compat_router.include_router(router)
app.include_router(api_compat_router)


@app.get("/")
async def root():
    return {
        "name": "Thumbnail Studio API",
        "version": APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "mode": settings.APP_MODE.value,
        "image_generation_enabled": bool(settings.OPENROUTER_API_KEY),
        "image_model": settings.IMAGE_GENERATION_MODEL,
        "prompt_rewrite_enabled": bool(settings.OPENAI_API_KEY),
        "genai_test_enabled": bool(settings.GOOGLE_API_KEY),
    }


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": "Thumbnail Studio",
        "version": APP_VERSION,
        "api_version": "v1",
        "mode": settings.APP_MODE.value,
        "aspect_ratios": ["16:9", "9:16", "1:1"],
        "variations": settings.THUMBNAIL_VARIATIONS,
        "endpoints": {
            "thumbnails": "/api/v1/thumbnails",
            "rewrite_prompt": "/api/v1/prompts/rewrite",
            "genai_test": "/api/v1/genai/test",
        },
        "deprecated_endpoints": {
            "note": "The /api/ prefix (without v1) is deprecated and will be removed in a future version",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=(settings.APP_MODE == AppMode.DEV),
    )
