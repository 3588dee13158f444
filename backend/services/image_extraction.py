"""
Image payload extraction from chat-completion responses.

Providers behind OpenAI-compatible endpoints return generated images in
several layouts. Each layout has a matcher: a pure function from the raw
response mapping to an optional base64 payload. ``extract_image_payload``
tries them in a fixed priority order and returns the first hit.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Iterable, Mapping, Optional

_DATA_URL_PATTERN = re.compile(
    r"data:image/(?:png|jpeg|jpg);base64,([A-Za-z0-9+/=]+)",
    re.IGNORECASE,
)
_WRAPPED_LINE_PATTERN = re.compile(r"[A-Za-z0-9+/]+={0,2}")
_BASE64_RUN_PATTERN = re.compile(r"[A-Za-z0-9+/=]{200,}")
_WHITESPACE = re.compile(r"\s+")

MIN_BASE64_RUN_LENGTH = 200

# Line widths of hard-wrapping encoders (openssl/PEM, MIME).
WRAP_WIDTHS = (64, 76)

ShapeMatcher = Callable[[Mapping[str, Any]], Optional[str]]


def _join_wrapped_lines(first: str, rest: str) -> str:
    """
    Re-join a payload that was hard-wrapped at a standard width.

    Only a full-width, unpadded line can be continued, and the closing short
    line must keep the payload a multiple of 4 characters. Anything else on
    the following lines is treated as prose.
    """
    width = len(first)
    if width not in WRAP_WIDTHS or "=" in first:
        return first

    lines = rest.split("\n")
    if len(lines) < 2 or lines[0].strip():
        return first

    parts = [first]
    for line in lines[1:]:
        line = line.strip()
        if not _WRAPPED_LINE_PATTERN.fullmatch(line):
            break
        if len(line) == width and "=" not in line:
            parts.append(line)
            continue
        if len(line) < width and len(line) % 4 == 0:
            parts.append(line)
        break
    return "".join(parts)


def extract_base64_from_string(text: str) -> Optional[str]:
    """Pull a base64 payload out of a string that may contain prose."""
    if not isinstance(text, str) or not text:
        return None

    match = _DATA_URL_PATTERN.search(text)
    if match and match.group(1):
        return _join_wrapped_lines(match.group(1), text[match.end():])

    match = _BASE64_RUN_PATTERN.search(text)
    if match:
        return _WHITESPACE.sub("", match.group(0))

    return None


def _first_payload(values: Iterable[Any]) -> Optional[str]:
    for value in values:
        if isinstance(value, str):
            payload = extract_base64_from_string(value)
            if payload:
                return payload
    return None


def _get(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, Mapping) else None


def _first(items: Any) -> Any:
    if isinstance(items, list) and items:
        return items[0]
    return None


def _message(response: Mapping[str, Any]) -> Any:
    return _get(_first(response.get("choices")), "message")


def _message_content(response: Mapping[str, Any]) -> Any:
    content = _get(_message(response), "content")
    if content:
        return content
    # Gemini-style layouts: candidates[0].content or output[0].content
    candidates = response.get("candidates") or response.get("output")
    return _get(_first(candidates), "content")


def _image_url(block: Any) -> Any:
    return _get(_get(block, "image_url"), "url")


def _inline_data(block: Any) -> Any:
    inline = _get(block, "inlineData") or _get(block, "inline_data")
    return _get(inline, "data")


def match_image_list(response: Mapping[str, Any]) -> Optional[str]:
    """``choices[0].message.images``: strings or objects with url/data/base64."""
    images = _get(_message(response), "images")
    if not isinstance(images, list):
        return None

    for image in images:
        if isinstance(image, str):
            candidates: tuple = (image,)
        elif isinstance(image, Mapping):
            candidates = (
                _image_url(image),
                image.get("url"),
                image.get("data"),
                image.get("base64"),
            )
        else:
            continue
        payload = _first_payload(candidates)
        if payload:
            return payload
    return None


def _match_block(block: Any) -> Optional[str]:
    if not isinstance(block, Mapping):
        return None
    candidates = []
    if block.get("type") == "image_url":
        candidates.append(_image_url(block))
    candidates.append(_inline_data(block))
    candidates.append(block.get("data"))
    return _first_payload(candidates)


def match_content_blocks(response: Mapping[str, Any]) -> Optional[str]:
    """Message content as a list of typed blocks."""
    content = _message_content(response)
    if not isinstance(content, list):
        return None
    for block in content:
        payload = _match_block(block)
        if payload:
            return payload
    return None


def match_content_object(response: Mapping[str, Any]) -> Optional[str]:
    """Message content as a single block object."""
    content = _message_content(response)
    if not isinstance(content, Mapping):
        return None
    return _match_block(content)


def match_content_string(response: Mapping[str, Any]) -> Optional[str]:
    """Message content as text, possibly embedding a data URL in prose."""
    content = _message_content(response)
    if not isinstance(content, str):
        return None
    return extract_base64_from_string(content)


RESPONSE_SHAPE_MATCHERS: tuple[ShapeMatcher, ...] = (
    match_image_list,
    match_content_blocks,
    match_content_object,
    match_content_string,
)


def response_to_mapping(response: Any) -> Mapping[str, Any]:
    """Normalize SDK response objects (pydantic models) to plain mappings."""
    if isinstance(response, Mapping):
        return response
    model_dump = getattr(response, "model_dump", None)
    if callable(model_dump):
        dumped = model_dump()
        if isinstance(dumped, Mapping):
            return dumped
    return {}


def extract_image_payload(
    response: Any,
    matchers: Iterable[ShapeMatcher] = RESPONSE_SHAPE_MATCHERS,
) -> Optional[str]:
    """Return the first image payload found by the matchers, in order."""
    mapping = response_to_mapping(response)
    if not mapping:
        return None
    for matcher in matchers:
        payload = matcher(mapping)
        if payload:
            return payload
    return None
