import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import get_gemini_probe
from schemas.thumbnail import GenaiTestRequest, GenaiTestResponse
from services.error_sanitizer import sanitize_public_error_message
from services.gemini_probe import (
    GeminiProbe,
    GeminiProbeError,
    InvalidProbeInputError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/genai", tags=["genai"])


@router.post("/test", response_model=GenaiTestResponse)
async def genai_test(
    body: GenaiTestRequest,
    probe: GeminiProbe = Depends(get_gemini_probe),
):
    """Send a prompt (and optional base64 image) directly to Gemini."""
    try:
        result = await probe.run(body.prompt, body.base64_image)
    except InvalidProbeInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except GeminiProbeError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except asyncio.TimeoutError:
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=f"GenAI call timed out after {probe.timeout_seconds:g}s",
        )
    except Exception as e:
        logger.exception("GenAI test call failed")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=sanitize_public_error_message(str(e), fallback="Error calling GenAI")
            or "Error calling GenAI",
        )
    return GenaiTestResponse(type=result.type, data=result.data)
