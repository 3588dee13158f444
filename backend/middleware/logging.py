"""Request logging middleware for development.

One line per request once it finishes: request id, method, path, upload
size, status and duration. Thumbnail requests fan out to many provider
calls, so requests slower than ``SLOW_REQUEST_SECONDS`` are flagged.

Enabled only when APP_MODE is DEV. Request bodies (uploaded photos, prompts)
and generated images are never logged.
"""

import logging
import re
import time
import uuid
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

REQUEST_LOGGER_NAME = "api.requests"

logger = logging.getLogger(REQUEST_LOGGER_NAME)

EXCLUDED_PATHS = frozenset({"/", "/health", "/docs", "/redoc", "/openapi.json", "/favicon.ico"})

SLOW_REQUEST_SECONDS = 30.0

# Client-supplied ids are echoed back, so only short opaque tokens are accepted.
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9\-]{1,64}$")


def resolve_request_id(request: Request) -> str:
    incoming = request.headers.get("X-Request-ID", "")
    if _REQUEST_ID_PATTERN.match(incoming):
        return incoming
    return uuid.uuid4().hex[:8]


def _describe(request: Request, request_id: str) -> str:
    parts = [f"[{request_id}]", f"{request.method} {request.url.path}"]
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > 0:
        parts.append(f"body={int(content_length) / 1024:.1f}KB")
    parts.append(f"client={request.client.host if request.client else 'unknown'}")
    return " ".join(parts)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request on completion and tags the response with ``X-Request-ID``."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        request_id = resolve_request_id(request)
        description = _describe(request, request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "%s - ERROR after %.3fs: %s",
                description,
                time.perf_counter() - started,
                e.__class__.__name__,
            )
            raise

        elapsed = time.perf_counter() - started
        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400 or elapsed >= SLOW_REQUEST_SECONDS:
            level = logging.WARNING
        elif request.method == "GET":
            level = logging.DEBUG
        else:
            level = logging.INFO

        logger.log(
            level,
            "%s - %s (%.3fs%s)",
            description,
            response.status_code,
            elapsed,
            ", slow" if elapsed >= SLOW_REQUEST_SECONDS else "",
        )

        response.headers["X-Request-ID"] = request_id
        return response


def configure_request_logging(log_level: str = "INFO") -> None:
    """Give the request logger its own handler and level."""
    request_logger = logging.getLogger(REQUEST_LOGGER_NAME)
    request_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    request_logger.propagate = False

    if not request_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        request_logger.addHandler(handler)
