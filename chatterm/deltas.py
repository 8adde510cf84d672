"""Text delta extraction from the two upstream streaming payload shapes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class DeltaShape(str, Enum):
    RESPONSES = "responses"                # /responses event stream
    CHAT_COMPLETIONS = "chat_completions"  # /chat/completions chunk stream


@dataclass(frozen=True)
class TextDelta:
    text: str
    shape: DeltaShape


RESPONSES_DELTA_TYPES = frozenset({
    "response.output_text.delta",
    "response.content.delta",
})


def _first_text(delta: Any) -> str:
    """Pull the first non-empty string out of a responses-style delta."""
    if isinstance(delta, str):
        return delta
    if not isinstance(delta, dict):
        return ""
    for key in ("text", "content"):
        value = delta.get(key)
        if isinstance(value, str) and value:
            return value
    output_text = delta.get("output_text")
    if isinstance(output_text, str):
        return output_text
    if isinstance(output_text, dict):
        text = output_text.get("text")
        if isinstance(text, str):
            return text
    return ""


def extract_responses_delta(payload: Any) -> str:
    """Return the text carried by a responses-style event, or ``""``."""
    if not isinstance(payload, dict):
        return ""
    if payload.get("type") not in RESPONSES_DELTA_TYPES:
        return ""
    return _first_text(payload.get("delta"))


def extract_chat_delta(payload: Any) -> str:
    """Return ``choices[0].delta.content`` of a chat completions chunk, or ``""``."""
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


_EXTRACTORS = (
    (DeltaShape.RESPONSES, extract_responses_delta),
    (DeltaShape.CHAT_COMPLETIONS, extract_chat_delta),
)


def extract_delta(payload: Any, shape: DeltaShape | None = None) -> TextDelta | None:
    """Map one event payload to at most one :class:`TextDelta`.

    Shapes are tried in preference order (responses first).  Passing
    *shape* restricts extraction to that shape only.  Payloads carrying no
    text yield ``None``.
    """
    for candidate, extractor in _EXTRACTORS:
        if shape is not None and candidate is not shape:
            continue
        text = extractor(payload)
        if text:
            return TextDelta(text=text, shape=candidate)
    return None
