"""
Test fixtures and configuration for pytest.
"""

import base64
import os
import sys
from io import BytesIO
from typing import AsyncGenerator, Callable, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from api.dependencies import get_completion_client, get_prompt_rewriter
from services.completion_client import ImageClientConfig, RetryingCompletionClient
from services.prompt_rewriter import PromptRewriter
from services.retry_policy import RetryPolicy


class ProviderHTTPError(Exception):
    """Stand-in for an SDK error carrying an HTTP status."""

    def __init__(self, status_code: int, message: str = "provider error"):
        super().__init__(message)
        self.status_code = status_code


class FakeCompletions:
    """
    Scripted ``chat.completions`` double.

    ``outcomes`` are consumed one per call (exceptions are raised, anything
    else is returned); after they run out ``responder(kwargs)`` decides.
    """

    def __init__(self, *outcomes, responder: Optional[Callable[[dict], object]] = None):
        self.outcomes = list(outcomes)
        self.responder = responder
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.outcomes:
            outcome = self.outcomes.pop(0)
        elif self.responder is not None:
            outcome = self.responder(kwargs)
        else:
            raise AssertionError("FakeCompletions ran out of scripted outcomes")
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def prompt_of(call_kwargs: dict) -> str:
    return call_kwargs["messages"][0]["content"][0]["text"]


def image_response(payload: str, mime_type: str = "image/png") -> dict:
    return {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "content": "",
                    "images": [
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{mime_type};base64,{payload}"},
                        }
                    ],
                }
            }
        ]
    }


def text_response(text: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


class SleepRecorder:
    """Records backoff sleeps instead of waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_client(
    completions: FakeCompletions,
    *,
    sleep: Optional[Callable] = None,
    max_attempts: int = 4,
    timeout_seconds: float = 5.0,
) -> RetryingCompletionClient:
    config = ImageClientConfig(
        api_key="test-key",
        model="test/image-model",
        timeout_seconds=timeout_seconds,
        retry=RetryPolicy(max_attempts=max_attempts, base_delay_ms=500, max_jitter_ms=300),
    )
    return RetryingCompletionClient(
        config,
        completions,
        sleep=sleep or SleepRecorder(),
        jitter=lambda: 0,
    )


# ============== Test Data Fixtures ==============


def _image_bytes(fmt: str, color: str, size=(100, 100)) -> bytes:
    img = Image.new("RGB", size, color=color)
    buffer = BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def sample_image_bytes() -> bytes:
    """Generate sample PNG image bytes for testing."""
    return _image_bytes("PNG", "red")


@pytest.fixture
def sample_jpeg_bytes() -> bytes:
    """Generate sample JPEG image bytes for testing."""
    return _image_bytes("JPEG", "blue")


@pytest.fixture
def generated_png_base64() -> str:
    """Base64 payload as an image model would return it."""
    return base64.b64encode(_image_bytes("PNG", "green", (64, 64))).decode("ascii")


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


# ============== Client Fixtures ==============


@pytest.fixture
def fake_completions(generated_png_base64) -> FakeCompletions:
    """Provider that always returns one generated image."""
    return FakeCompletions(responder=lambda _: image_response(generated_png_base64))


@pytest.fixture
def passthrough_rewriter() -> PromptRewriter:
    """Rewriter without an API key: prompts are used unchanged."""
    return PromptRewriter(api_key="")


@pytest_asyncio.fixture(scope="function")
async def client(
    fake_completions: FakeCompletions, passthrough_rewriter: PromptRewriter
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with the provider dependencies overridden."""
    from main import app

    completion_client = make_client(fake_completions)
    app.dependency_overrides[get_completion_client] = lambda: completion_client
    app.dependency_overrides[get_prompt_rewriter] = lambda: passthrough_rewriter

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
