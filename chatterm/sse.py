"""Server-sent event decoding for streamed chat responses."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
_READ_SIZE = 8192


@dataclass(frozen=True)
class SSEEvent:
    kind: str            # "data" | "done"
    data: Any = None


DONE = SSEEvent(kind="done")


def _iter_chunks(source: Any) -> Iterator[bytes]:
    """Yield raw byte chunks from *source*.

    File-like objects are read with ``read1`` (or ``read``) so that bytes
    are handed over as soon as the transport delivers them; anything else
    is treated as an iterable of ``bytes``.
    """
    read = getattr(source, "read1", None) or getattr(source, "read", None)
    if read is None:
        yield from source
        return
    while True:
        chunk = read(_READ_SIZE)
        if not chunk:
            return
        yield chunk


def _decode_line(raw: bytes) -> SSEEvent | None:
    """Interpret one complete line.  Returns ``None`` for lines to skip."""
    line = raw.decode("utf-8", errors="replace").strip()
    if not line or line.startswith(":"):
        return None
    if not line.startswith("data:"):
        # event:, id:, retry: are not used
        return None

    payload = line[5:].strip()
    if payload == DONE_SENTINEL:
        return DONE
    try:
        return SSEEvent(kind="data", data=json.loads(payload))
    except json.JSONDecodeError as exc:
        logger.warning("Skipping malformed SSE payload (%s): %.200s", exc, payload)
        return None


def iter_events(source: Iterable[bytes] | Any) -> Iterator[SSEEvent]:
    """Decode *source* into a lazy sequence of data events.

    The sequence ends when ``data: [DONE]`` is seen (no further reads are
    made) or when the source closes.  The ``done`` event itself is not
    yielded.  Errors raised by the source propagate unchanged.
    """
    pending = b""
    for chunk in _iter_chunks(source):
        pending += chunk
        *lines, pending = pending.split(b"\n")
        for raw in lines:
            event = _decode_line(raw)
            if event is None:
                continue
            if event is DONE:
                return
            yield event

    # Source closed; the last line may lack its terminator
    if pending:
        event = _decode_line(pending)
        if event is not None and event is not DONE:
            yield event


def iter_payloads(source: Iterable[bytes] | Any) -> Iterator[Any]:
    """Shortcut yielding only the parsed payload of each data event."""
    for event in iter_events(source):
        yield event.data
