"""
Thumbnail set orchestration.

Fans a rewritten prompt out into ``variations x aspect ratios`` independent
single-request calls to the completion client, sequentially or concurrently,
and reports success or failure per slot. Failed slots keep their placeholder
URL so the UI can still render a grid, but they are never reported as
successes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from config import FanoutMode
from services.completion_client import BaseImage, RetryingCompletionClient
from services.error_sanitizer import sanitize_public_error_message
from services.generation_errors import ImageGenerationError
from services.image_validation import payload_to_data_url
from services.prompt_builder import (
    ASPECT_RATIOS,
    AspectRatio,
    build_ratio_prompt,
    build_variation_prompt,
)

logger = logging.getLogger(__name__)


@dataclass
class SlotResult:
    """Outcome of one aspect-ratio rendering of one variation."""

    aspect: AspectRatio
    prompt: str
    placeholder_url: str
    image_data_url: Optional[str] = None
    error: Optional[ImageGenerationError] = None

    @property
    def succeeded(self) -> bool:
        return self.image_data_url is not None


@dataclass
class VariationResult:
    id: str
    prompt: str
    slots: dict[str, SlotResult] = field(default_factory=dict)


class SetStatus:
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


def summarize_status(variations: list[VariationResult]) -> str:
    slots = [slot for variation in variations for slot in variation.slots.values()]
    succeeded = sum(1 for slot in slots if slot.succeeded)
    if slots and succeeded == len(slots):
        return SetStatus.COMPLETED
    if succeeded:
        return SetStatus.PARTIAL
    return SetStatus.FAILED


async def _render_slot(
    client: RetryingCompletionClient,
    aspect: AspectRatio,
    variation_number: int,
    variation_prompt: str,
    base_image: Optional[BaseImage],
    cancel_event: Optional[asyncio.Event],
) -> SlotResult:
    prompt = build_ratio_prompt(variation_prompt, aspect)
    slot = SlotResult(
        aspect=aspect,
        prompt=prompt,
        placeholder_url=aspect.placeholder_url(variation_number),
    )
    try:
        payload = await client.generate(
            prompt,
            base_image,
            target_size=aspect.size,
            cancel_event=cancel_event,
        )
    except ImageGenerationError as e:
        logger.warning(
            "Thumbnail %s/%s failed: %s (%s)",
            variation_number,
            aspect.name,
            e.code,
            sanitize_public_error_message(e.message, fallback="Generation failed"),
        )
        slot.error = e
        return slot

    slot.image_data_url = payload_to_data_url(payload)
    return slot


async def generate_thumbnail_set(
    client: RetryingCompletionClient,
    prompt: str,
    base_image: Optional[BaseImage],
    *,
    variations: int = 3,
    fanout: FanoutMode = FanoutMode.CONCURRENT,
    cancel_event: Optional[asyncio.Event] = None,
) -> list[VariationResult]:
    """
    Render every variation in every aspect ratio.

    Only ``ImageGenerationError`` is captured per slot; anything else is a
    bug and propagates to the caller.
    """
    results = [
        VariationResult(id=f"thumb_{index + 1}", prompt=build_variation_prompt(prompt, index))
        for index in range(variations)
    ]
    jobs = [
        (number, variation, aspect)
        for number, variation in enumerate(results, start=1)
        for aspect in ASPECT_RATIOS
    ]

    def render(number: int, variation: VariationResult, aspect: AspectRatio):
        return _render_slot(
            client, aspect, number, variation.prompt, base_image, cancel_event
        )

    if fanout == FanoutMode.SEQUENTIAL:
        slots = [await render(*job) for job in jobs]
    else:
        slots = await asyncio.gather(*(render(*job) for job in jobs))

    for (_, variation, aspect), slot in zip(jobs, slots):
        variation.slots[aspect.name] = slot

    for variation in results:
        logger.info(
            "Generation results for %s: %s",
            variation.id,
            {name: slot.succeeded for name, slot in variation.slots.items()},
        )
    return results
