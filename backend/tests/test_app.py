"""
Tests for application wiring: service endpoints, middleware and error handlers.
"""

from unittest.mock import MagicMock

import pytest

from api.dependencies import get_gemini_probe
from main import _sanitize_for_json
from services.gemini_probe import GeminiProbe


class TestServiceEndpoints:
    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "Thumbnail Studio API"

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert isinstance(body["image_generation_enabled"], bool)
        assert body["image_model"]

    @pytest.mark.asyncio
    async def test_api_info(self, client):
        response = await client.get("/api/v1/info")

        assert response.status_code == 200
        body = response.json()
        assert body["api_version"] == "v1"
        assert body["aspect_ratios"] == ["16:9", "9:16", "1:1"]
        assert body["endpoints"]["thumbnails"] == "/api/v1/thumbnails"


class TestSecurityHeaders:
    @pytest.mark.asyncio
    async def test_headers_on_every_response(self, client):
        response = await client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "Content-Security-Policy" in response.headers

    @pytest.mark.asyncio
    async def test_api_responses_are_not_cached(self, client):
        response = await client.get("/api/v1/info")

        assert "no-store" in response.headers["Cache-Control"]

    @pytest.mark.asyncio
    async def test_non_api_responses_keep_default_caching(self, client):
        response = await client.get("/health")

        assert "Cache-Control" not in response.headers


class TestValidationErrors:
    @pytest.mark.asyncio
    async def test_validation_error_shape(self, client):
        from main import app

        app.dependency_overrides[get_gemini_probe] = lambda: MagicMock(spec=GeminiProbe)

        response = await client.post("/api/v1/genai/test", json={"prompt": "p" * 5000})

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail[0]["loc"] == ["body", "prompt"]
        assert len(detail[0]["input"]) < 500

    def test_sanitize_truncates_long_strings(self):
        result = _sanitize_for_json("a" * 1000)
        assert result.endswith("...(truncated)")
        assert len(result) < 500

    def test_sanitize_replaces_surrogates(self):
        result = _sanitize_for_json({"input": "bad \ud800 text"})
        result["input"].encode("utf-8")

    def test_sanitize_limits_containers(self):
        result = _sanitize_for_json(list(range(80)))
        assert len(result) == 51
        assert "truncated" in result[-1]

    def test_sanitize_stringifies_exceptions(self):
        assert _sanitize_for_json(ValueError("boom")) == "boom"
