"""
Tests for the thumbnail generation endpoint.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from api.dependencies import get_completion_client
from conftest import FakeCompletions, ProviderHTTPError, image_response, make_client, prompt_of
from services.prompt_builder import SQUARE

ENDPOINT = "/api/v1/thumbnails"


def _files(image_bytes: bytes, filename: str = "photo.png", content_type: str = "image/png"):
    return {"image": (filename, image_bytes, content_type)}


class TestThumbnailsSuccess:
    @pytest.mark.asyncio
    async def test_generates_full_set(self, client, sample_image_bytes, fake_completions):
        payload = {
            "userResponses": {"videoType": "gaming", "style": "<b>neon</b>", "mood": "hype"},
            "placement": "left",
        }

        response = await client.post(
            ENDPOINT, files=_files(sample_image_bytes), data={"payload": json.dumps(payload)}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert "Create a YouTube thumbnail for a gaming." in body["rewritten_prompt"]
        assert "Style: neon." in body["rewritten_prompt"]
        assert "Place the subject left." in body["rewritten_prompt"]
        assert [t["id"] for t in body["thumbnails"]] == ["thumb_1", "thumb_2", "thumb_3"]

        first = body["thumbnails"][0]
        assert first["horizontal"]["aspect_ratio"] == "16:9"
        assert first["vertical"]["size"] == "720x1280"
        assert first["square"]["status"] == "completed"
        assert first["square"]["image"].startswith("data:image/png;base64,")
        assert first["square"]["error"] is None
        assert len(fake_completions.calls) == 9

    @pytest.mark.asyncio
    async def test_uploaded_image_is_forwarded_as_data_url(
        self, client, sample_jpeg_bytes, fake_completions
    ):
        # Client-declared type is wrong; the sniffed JPEG type wins.
        response = await client.post(
            ENDPOINT, files=_files(sample_jpeg_bytes, "photo.png", "image/png")
        )

        assert response.status_code == 200
        url = fake_completions.calls[0]["messages"][0]["content"][1]["image_url"]["url"]
        assert url.startswith("data:image/jpeg;base64,")

    @pytest.mark.asyncio
    async def test_payload_is_optional(self, client, sample_image_bytes):
        response = await client.post(ENDPOINT, files=_files(sample_image_bytes))

        assert response.status_code == 200
        assert "thumbnail for a video." in response.json()["rewritten_prompt"]

    @pytest.mark.asyncio
    async def test_deprecated_prefix_still_works(self, client, sample_image_bytes):
        response = await client.post("/api/thumbnails", files=_files(sample_image_bytes))

        assert response.status_code == 200


class TestThumbnailsFailures:
    @pytest.mark.asyncio
    async def test_partial_failure_returns_200_with_slot_errors(
        self, client, sample_image_bytes, generated_png_base64
    ):
        from main import app

        def responder(kwargs):
            if SQUARE.guidance in prompt_of(kwargs):
                return ProviderHTTPError(400, "Bearer sk-abcdefghijklmnop rejected the image")
            return image_response(generated_png_base64)

        failing = make_client(FakeCompletions(responder=responder))
        app.dependency_overrides[get_completion_client] = lambda: failing

        response = await client.post(ENDPOINT, files=_files(sample_image_bytes))

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "partial"
        square = body["thumbnails"][0]["square"]
        assert square["status"] == "failed"
        assert square["image"] is None
        assert square["placeholder_url"].startswith("https://via.placeholder.com/1080x1080")
        assert square["error"]["code"] == "PROVIDER_ERROR"
        assert square["error"]["status_code"] == 400
        assert "sk-abcdefghijklmnop" not in square["error"]["message"]
        assert body["thumbnails"][0]["horizontal"]["status"] == "completed"

    @pytest.mark.asyncio
    async def test_every_slot_failing_returns_502(self, client, sample_image_bytes):
        from main import app

        failing = make_client(FakeCompletions(responder=lambda _: ProviderHTTPError(403)))
        app.dependency_overrides[get_completion_client] = lambda: failing

        response = await client.post(ENDPOINT, files=_files(sample_image_bytes))

        assert response.status_code == 502
        body = response.json()
        assert body["status"] == "failed"
        assert len(body["thumbnails"]) == 3
        assert all(t["horizontal"]["status"] == "failed" for t in body["thumbnails"])

    @pytest.mark.asyncio
    async def test_missing_image_is_rejected(self, client, fake_completions):
        response = await client.post(ENDPOINT, data={"payload": "{}"})

        assert response.status_code == 422
        assert fake_completions.calls == []

    @pytest.mark.asyncio
    async def test_invalid_image_is_rejected(self, client, fake_completions):
        response = await client.post(
            ENDPOINT, files=_files(b"definitely not an image", "notes.txt", "text/plain")
        )

        assert response.status_code == 400
        assert "Invalid file type" in response.json()["detail"]
        assert fake_completions.calls == []

    @pytest.mark.asyncio
    async def test_malformed_payload_json(self, client, sample_image_bytes):
        response = await client.post(
            ENDPOINT, files=_files(sample_image_bytes), data={"payload": "{not json"}
        )

        assert response.status_code == 422
        assert response.json()["detail"].startswith("Invalid payload")

    @pytest.mark.asyncio
    async def test_answer_too_long(self, client, sample_image_bytes):
        payload = {"userResponses": {"context": "x" * 501}}

        response = await client.post(
            ENDPOINT, files=_files(sample_image_bytes), data={"payload": json.dumps(payload)}
        )

        assert response.status_code == 422
        assert "context" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_oversized_payload(self, client, sample_image_bytes):
        response = await client.post(
            ENDPOINT, files=_files(sample_image_bytes), data={"payload": "x" * 10_001}
        )

        assert response.status_code == 413

    @pytest.mark.asyncio
    async def test_unconfigured_provider_returns_503(self, client, sample_image_bytes):
        from main import app

        app.dependency_overrides.pop(get_completion_client)
        settings = MagicMock()
        settings.OPENROUTER_API_KEY = ""

        with patch("api.dependencies.get_settings", return_value=settings):
            response = await client.post(ENDPOINT, files=_files(sample_image_bytes))

        assert response.status_code == 503
        assert "OPENROUTER_API_KEY" in response.json()["detail"]
