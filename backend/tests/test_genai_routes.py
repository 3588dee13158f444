"""
Tests for the GenAI diagnostic endpoint.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from api.dependencies import get_gemini_probe
from services.gemini_probe import GeminiProbe, GeminiProbeError, InvalidProbeInputError, ProbeResult

ENDPOINT = "/api/v1/genai/test"


def _override_probe(run):
    from main import app

    probe = MagicMock(spec=GeminiProbe)
    probe.run = run
    probe.timeout_seconds = 12.5
    app.dependency_overrides[get_gemini_probe] = lambda: probe
    return probe


class TestGenaiTestRoute:
    @pytest.mark.asyncio
    async def test_image_result(self, client):
        probe = _override_probe(AsyncMock(return_value=ProbeResult(type="image", data="QUJD")))

        response = await client.post(
            ENDPOINT, json={"prompt": "banana", "base64Image": "SU1H"}
        )

        assert response.status_code == 200
        assert response.json() == {"type": "image", "data": "QUJD"}
        probe.run.assert_awaited_once_with("banana", "SU1H")

    @pytest.mark.asyncio
    async def test_text_result_with_empty_body(self, client):
        probe = _override_probe(AsyncMock(return_value=ProbeResult(type="text", data="no image")))

        response = await client.post(ENDPOINT, json={})

        assert response.status_code == 200
        assert response.json()["type"] == "text"
        probe.run.assert_awaited_once_with(None, None)

    @pytest.mark.asyncio
    async def test_invalid_image_returns_400(self, client):
        _override_probe(AsyncMock(side_effect=InvalidProbeInputError("base64Image is not valid base64")))

        response = await client.post(ENDPOINT, json={"base64Image": "***"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_no_content_returns_502(self, client):
        _override_probe(AsyncMock(side_effect=GeminiProbeError("No content returned from GenAI")))

        response = await client.post(ENDPOINT, json={})

        assert response.status_code == 502
        assert response.json()["detail"] == "No content returned from GenAI"

    @pytest.mark.asyncio
    async def test_timeout_returns_504(self, client):
        _override_probe(AsyncMock(side_effect=asyncio.TimeoutError()))

        response = await client.post(ENDPOINT, json={})

        assert response.status_code == 504
        assert response.json()["detail"] == "GenAI call timed out after 12.5s"

    @pytest.mark.asyncio
    async def test_sdk_error_is_sanitized(self, client):
        _override_probe(
            AsyncMock(side_effect=RuntimeError("API key AIzaSyA1234567890abcdefghijklmnop invalid"))
        )

        response = await client.post(ENDPOINT, json={})

        assert response.status_code == 502
        assert "AIzaSy" not in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_unconfigured_returns_503(self, client):
        settings = MagicMock()
        settings.GOOGLE_API_KEY = ""
        settings.GENAI_TEST_MODEL = "gemini-test"

        with patch("api.dependencies.get_settings", return_value=settings):
            response = await client.post(ENDPOINT, json={})

        assert response.status_code == 503
        assert "GOOGLE_API_KEY" in response.json()["detail"]
