"""
Gemini diagnostic generation.

Sends a prompt (and optionally a base64 image) straight to Google Gemini
through ``google-genai`` and reports whether an image or only text came back.
Used to check model access independently of the OpenRouter pipeline.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_PROBE_PROMPT = (
    "Create a stylized image of a nano-banana on a plate in a dramatic studio light."
)
DEFAULT_TIMEOUT_SECONDS = 120.0


class GeminiProbeError(RuntimeError):
    pass


class InvalidProbeInputError(GeminiProbeError, ValueError):
    pass


@dataclass
class ProbeResult:
    type: str  # "image" or "text"
    data: str


def _iter_response_parts(response: object) -> Iterable[object]:
    """Yield candidate parts across SDK response layouts."""
    direct_parts = getattr(response, "parts", None)
    if direct_parts:
        yield from direct_parts
        return

    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            yield part


def parse_probe_response(response: object) -> Optional[ProbeResult]:
    """Return the first inline image, else joined text parts, else None."""
    parts = list(_iter_response_parts(response))
    if not parts:
        return None

    for part in parts:
        inline_data = getattr(part, "inline_data", None)
        data = getattr(inline_data, "data", None) if inline_data is not None else None
        if isinstance(data, (bytes, bytearray)):
            return ProbeResult(type="image", data=base64.b64encode(bytes(data)).decode("ascii"))
        if isinstance(data, str) and data:
            return ProbeResult(type="image", data=data)

    texts = [getattr(part, "text", None) for part in parts]
    return ProbeResult(type="text", data="\n".join(t for t in texts if t))


class GeminiProbe:
    def __init__(
        self,
        api_key: str,
        model: str,
        client: Optional[object] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._client = client

    @classmethod
    def from_settings(cls, settings) -> "GeminiProbe":
        return cls(
            api_key=settings.GOOGLE_API_KEY,
            model=settings.GENAI_TEST_MODEL,
            timeout_seconds=settings.API_TIMEOUT_SECONDS,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def _get_client(self) -> object:
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def _run_with_timeout(self, call: Callable[[], object]) -> object:
        """Run a blocking SDK call in a worker thread with timeout."""
        return await asyncio.wait_for(asyncio.to_thread(call), timeout=self.timeout_seconds)

    async def run(
        self, prompt: Optional[str] = None, base64_image: Optional[str] = None
    ) -> ProbeResult:
        from google.genai import types

        client = self._get_client()
        contents: list = [prompt or DEFAULT_PROBE_PROMPT]
        if base64_image:
            try:
                image_bytes = base64.b64decode(base64_image, validate=True)
            except (binascii.Error, ValueError) as e:
                raise InvalidProbeInputError("base64Image is not valid base64") from e
            contents.append(types.Part.from_bytes(data=image_bytes, mime_type="image/png"))

        logger.info("Gemini probe: model=%s image=%s", self.model, bool(base64_image))
        response = await self._run_with_timeout(
            lambda: client.models.generate_content(model=self.model, contents=contents)
        )

        result = parse_probe_response(response)
        if result is None:
            raise GeminiProbeError("No content returned from GenAI")
        return result
