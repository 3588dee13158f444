"""
Prompt assembly for thumbnail generation.

Turns questionnaire answers into a single free-text prompt, then derives
per-variation and per-aspect-ratio prompts from it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

DESIGN_GUIDANCE = (
    "Prefer high contrast colors, large readable text, and an expressive subject "
    "facial expression when applicable. Avoid busy backgrounds and ensure text area "
    "has safe margin."
)

MODERN_STYLE_GUIDANCE = (
    "Design guidance: follow modern YouTube thumbnail trends. Use vibrant but "
    "controlled color palettes (bold gradients, neon accents), cinematic or "
    "studio-style lighting, subtle 3D depth and soft drop-shadows to separate "
    "subject and background. Favor large, highly legible sans-serif typography, "
    "strong subject isolation, and generous negative space. Avoid dated collage or "
    "clip-art looks, heavy film grain, or low-resolution textures. Prefer polished, "
    "high-resolution imagery or tasteful stylized illustrations. Provide at least 2 "
    "contrasting color palette options and a clear focal area that reads even at "
    "small sizes."
)

VARIATION_FOCUSES = (
    "focus on strong subject separation and bold typography",
    "focus on dramatic lighting and energetic color contrasts",
    "focus on a close-up expressive subject and minimal on-screen text",
)


@dataclass(frozen=True)
class AspectRatio:
    name: str
    ratio: str
    size: str
    guidance: str
    placeholder_template: str

    def placeholder_url(self, variation_number: int) -> str:
        return self.placeholder_template.format(n=variation_number)


HORIZONTAL = AspectRatio(
    name="horizontal",
    ratio="16:9",
    size="1280x720",
    guidance=(
        "Generate for horizontal (16:9) composition. Emphasize landscape framing, "
        "negative space on the right, and large headline text area."
    ),
    placeholder_template="https://via.placeholder.com/1280x720/111827/ef4444?text=Thumb+{n}+16:9",
)
VERTICAL = AspectRatio(
    name="vertical",
    ratio="9:16",
    size="720x1280",
    guidance=(
        "Generate for vertical (9:16) composition. Emphasize tall framing, "
        "subject-centered or top-aligned composition, and readable headline "
        "placement for mobile."
    ),
    placeholder_template="https://via.placeholder.com/720x1280/0f172a/06b6d4?text=Thumb+{n}+9:16",
)
SQUARE = AspectRatio(
    name="square",
    ratio="1:1",
    size="1080x1080",
    guidance=(
        "Generate for square (1:1) composition. Emphasize centered subject, "
        "balanced negative space, and typography that reads in square crops."
    ),
    placeholder_template="https://via.placeholder.com/1080x1080/071327/60a5fa?text=Thumb+{n}+1:1",
)

ASPECT_RATIOS: tuple[AspectRatio, ...] = (HORIZONTAL, VERTICAL, SQUARE)


def build_system_prompt(responses: Mapping[str, Optional[str]], placement: str = "center") -> str:
    """Build a single prompt that merges all questionnaire fields."""
    parts = [f"Create a YouTube thumbnail for a {responses.get('video_type') or 'video'}."]
    if responses.get("style"):
        parts.append(f"Style: {responses['style']}.")
    if responses.get("mood"):
        parts.append(f"Mood/tones: {responses['mood']}.")
    if responses.get("audience"):
        parts.append(f"Target audience: {responses['audience']}.")
    if responses.get("context"):
        parts.append(f"Context / notes: {responses['context']}.")
    parts.append(
        f"Place the subject {placement or 'center'}. Use strong contrast, bold "
        "typography and a clear focal point for thumbnails. Provide compositions "
        "suitable for horizontal (16:9), vertical (9:16) and square (1:1) variants."
    )
    parts.append(DESIGN_GUIDANCE)
    parts.append(MODERN_STYLE_GUIDANCE)
    return " ".join(parts)


def build_variation_prompt(prompt: str, index: int) -> str:
    """Append the focus for variation ``index`` (0-based)."""
    if index < len(VARIATION_FOCUSES):
        focus = VARIATION_FOCUSES[index]
    else:
        focus = f"variation {index + 1}"
    return f"{prompt} Variation {index + 1}: {focus}."


def build_ratio_prompt(variation_prompt: str, aspect: AspectRatio) -> str:
    return f"{variation_prompt} {aspect.guidance}"
