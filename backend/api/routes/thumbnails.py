import logging
from typing import Optional

import config
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.dependencies import get_completion_client, get_prompt_rewriter
from schemas.thumbnail import (
    SlotError,
    SlotStatus,
    ThumbnailRequestPayload,
    ThumbnailSetResponse,
    ThumbnailSetStatus,
    ThumbnailSlot,
    ThumbnailVariant,
    responses_as_prompt_fields,
)
from services.completion_client import RetryingCompletionClient, to_data_url
from services.error_sanitizer import sanitize_public_error_message
from services.image_validation import validate_uploaded_image_payload
from services.prompt_builder import build_system_prompt
from services.prompt_rewriter import PromptRewriter
from services.thumbnail_set import (
    SlotResult,
    VariationResult,
    generate_thumbnail_set,
    summarize_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/thumbnails", tags=["thumbnails"])

PAYLOAD_MAX_LENGTH = 10_000


def _parse_payload(raw: Optional[str]) -> ThumbnailRequestPayload:
    if not raw or not raw.strip():
        return ThumbnailRequestPayload()
    if len(raw) > PAYLOAD_MAX_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="payload is too large",
        )
    try:
        return ThumbnailRequestPayload.model_validate_json(raw)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "invalid payload")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid payload: {location + ': ' if location else ''}{message}",
        )


def _to_slot(slot: SlotResult) -> ThumbnailSlot:
    if slot.succeeded:
        return ThumbnailSlot(
            status=SlotStatus.COMPLETED,
            aspect_ratio=slot.aspect.ratio,
            size=slot.aspect.size,
            image=slot.image_data_url,
            placeholder_url=slot.placeholder_url,
        )

    error = slot.error
    return ThumbnailSlot(
        status=SlotStatus.FAILED,
        aspect_ratio=slot.aspect.ratio,
        size=slot.aspect.size,
        placeholder_url=slot.placeholder_url,
        error=SlotError(
            code=error.code if error else "UNKNOWN",
            message=(
                sanitize_public_error_message(
                    error.message if error else None, fallback="Generation failed"
                )
                or "Generation failed"
            ),
            status_code=error.status_code if error else None,
        ),
    )


def build_thumbnail_set_response(
    rewritten_prompt: str, variations: list[VariationResult]
) -> ThumbnailSetResponse:
    return ThumbnailSetResponse(
        status=ThumbnailSetStatus(summarize_status(variations)),
        rewritten_prompt=rewritten_prompt,
        thumbnails=[
            ThumbnailVariant(
                id=variation.id,
                prompt=variation.prompt,
                horizontal=_to_slot(variation.slots["horizontal"]),
                vertical=_to_slot(variation.slots["vertical"]),
                square=_to_slot(variation.slots["square"]),
            )
            for variation in variations
        ],
    )


@router.post(
    "",
    response_model=ThumbnailSetResponse,
    responses={502: {"model": ThumbnailSetResponse}},
)
async def generate_thumbnails(
    image: UploadFile = File(..., description="Base photo (PNG, JPG, WEBP)"),
    payload: Optional[str] = Form(
        None, description="JSON with userResponses and placement"
    ),
    client: RetryingCompletionClient = Depends(get_completion_client),
    rewriter: PromptRewriter = Depends(get_prompt_rewriter),
):
    """
    Generate thumbnail variations from an uploaded photo and questionnaire.

    Every variation is rendered horizontal (16:9), vertical (9:16) and
    square (1:1). Each slot reports its own success or failure; the response
    is 502 only when no slot succeeded.
    """
    settings = config.get_settings()
    request_payload = _parse_payload(payload)

    content = await image.read()
    info = validate_uploaded_image_payload(content, image.content_type)
    base_image = to_data_url(content, info.mime_type)

    system_prompt = build_system_prompt(
        responses_as_prompt_fields(request_payload.user_responses),
        request_payload.effective_placement,
    )
    logger.debug("System prompt: %s", system_prompt)
    rewritten = await rewriter.rewrite(system_prompt)

    variations = await generate_thumbnail_set(
        client,
        rewritten,
        base_image,
        variations=settings.THUMBNAIL_VARIATIONS,
        fanout=settings.THUMBNAIL_FANOUT,
    )
    result = build_thumbnail_set_response(rewritten, variations)

    if result.status == ThumbnailSetStatus.FAILED:
        logger.error("Every thumbnail slot failed (%d slots)", len(variations) * 3)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=result.model_dump(mode="json"),
        )
    return result
