"""
Decoder for remote backend responses.

Backends answer with a plain string, a list of content items, or a mapping
carrying the payload under one of several keys. Each known shape is tried in a
fixed priority order; anything unrecognised decodes to nothing instead of
being guessed at.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

_PAYLOAD_KEYS = ("text", "content", "data", "result")
_RESULT_MARKER = re.compile(r"^\s*Result:\s*$", re.MULTILINE)


class ResponseShape(StrEnum):
    """Recognised response shapes, in decoding priority order."""

    EMPTY = "empty"
    TEXT = "text"
    CONTENT_ITEMS = "content_items"
    PAYLOAD_FIELD = "payload_field"
    STRUCTURED = "structured"
    UNRECOGNISED = "unrecognised"


@dataclass(frozen=True)
class DecodedResponse:
    """Text fragments and structured value extracted from a raw response."""

    shape: ResponseShape
    texts: tuple[str, ...] = ()
    value: Any = None

    @property
    def text(self) -> str | None:
        if not self.texts:
            return None
        return "\n".join(self.texts)


def _item_text(item: Any) -> str | None:
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        if item.get("type", "text") != "text":
            return None
        text = item.get("text")
        if isinstance(text, str):
            return text
    return None


def decode_response(raw: Any) -> DecodedResponse:
    """Decode a raw backend response into its tagged shape."""
    if raw is None:
        return DecodedResponse(ResponseShape.EMPTY)

    if isinstance(raw, str):
        return DecodedResponse(ResponseShape.TEXT, (raw,))

    if isinstance(raw, list):
        texts = tuple(t for t in (_item_text(item) for item in raw) if t is not None)
        if texts:
            return DecodedResponse(ResponseShape.CONTENT_ITEMS, texts)
        return DecodedResponse(ResponseShape.UNRECOGNISED, value=raw)

    if isinstance(raw, dict):
        content = raw.get("content")
        if isinstance(content, list):
            nested = decode_response(content)
            if nested.texts:
                return nested
        for key in _PAYLOAD_KEYS:
            value = raw.get(key)
            if isinstance(value, str):
                return DecodedResponse(ResponseShape.PAYLOAD_FIELD, (value,))
        if "result" in raw and raw["result"] is not None:
            return DecodedResponse(ResponseShape.STRUCTURED, value=raw["result"])
        return DecodedResponse(ResponseShape.UNRECOGNISED, value=raw)

    return DecodedResponse(ResponseShape.UNRECOGNISED, value=raw)


def decode_text(raw: Any) -> str | None:
    """Visible text carried by a response, or None."""
    return decode_response(raw).text


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1].strip()
    return value


def decode_url(raw: Any) -> str | None:
    """First fragment or line that is an absolute http(s) URL, or None."""
    decoded = decode_response(raw)
    candidates: list[str] = []
    if isinstance(decoded.value, str):
        candidates.append(decoded.value)
    for text in decoded.texts:
        candidates.append(text)
        candidates.extend(text.splitlines())
    for candidate in candidates:
        value = _strip_quotes(candidate)
        if value.startswith(("http://", "https://")) and not any(c.isspace() for c in value):
            return value
    return None


def _parse_json(text: str) -> Any:
    try:
        value = json.loads(text)
    except ValueError:
        return None
    # Scripts that return JSON.stringify(...) arrive double-encoded
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def decode_json(raw: Any) -> Any:
    """
    Structured value carried by a response, or None.

    Script results are often wrapped in prose ("Executed JavaScript ... Result:
    <value>"); the payload after the last ``Result:`` marker is tried before
    giving up on a fragment.
    """
    decoded = decode_response(raw)
    if decoded.shape == ResponseShape.STRUCTURED:
        return decoded.value
    for text in decoded.texts:
        value = _parse_json(text.strip())
        if value is not None:
            return value
        markers = list(_RESULT_MARKER.finditer(text))
        if markers:
            value = _parse_json(text[markers[-1].end():].strip())
            if value is not None:
                return value
    return None


__all__ = [
    "DecodedResponse",
    "ResponseShape",
    "decode_json",
    "decode_response",
    "decode_text",
    "decode_url",
]
