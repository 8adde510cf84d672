"""Streaming-aware fenced code block buffer with line-by-line highlighting.

Prose passes through as soon as it arrives.  Inside a fenced block each
source line is held until its newline shows up, then highlighted and
emitted.  Fence marker lines themselves are consumed and never emitted.

Usage::

    buf = StreamBuffer()
    for delta in deltas:
        sys.stdout.write(buf.write(delta))
    sys.stdout.write(buf.flush())
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Union

from chatterm.highlighter import PLAIN_LANGUAGE, highlight_code

_LANG = r"[\w.+#-]*"
_BLANK = r"[ \t\r]*"
# Info string after the language word (attributes, titles); no backticks
_INFO = r"[^`\n]*"

# Complete opening fence line at a line start: ```lang<info>\n
_FENCE_OPEN = re.compile(rf"^```({_LANG}){_INFO}\n", re.MULTILINE)
# Last line could still grow into an opening fence
_FENCE_OPEN_PARTIAL = re.compile(rf"^```{_INFO}\Z", re.MULTILINE)
_BACKTICKS_PARTIAL = re.compile(r"^`{1,2}\Z", re.MULTILINE)
_FENCE_LINE = re.compile(rf"```({_LANG}){_INFO}")
_FENCE_CLOSE = re.compile(rf"```{_BLANK}")


# ── states ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Normal:
    at_line_start: bool = True


@dataclass(frozen=True)
class FenceOpening:
    pass


@dataclass(frozen=True)
class InCodeBlock:
    language: str | None = None
    line_buffer: str = ""


State = Union[Normal, FenceOpening, InCodeBlock]


@dataclass(frozen=True)
class Step:
    """Result of one transition.

    ``consumed`` characters are removed from the front of pending input.
    ``text`` is emitted verbatim; ``code_line`` (if set) is highlighted
    with the block language and emitted followed by a newline.
    ``progress`` tells the driver whether another step may do more work
    with the remaining input.
    """

    state: State
    consumed: int = 0
    text: str = ""
    code_line: str | None = None
    progress: bool = False


# ── transitions ─────────────────────────────────────────────────────

def _scan_start(pending: str, at_line_start: bool) -> int | None:
    """Index of the first line start inside *pending*, or None."""
    if at_line_start:
        return 0
    nl = pending.find("\n")
    return None if nl == -1 else nl + 1


def _emit_prose(text: str, at_line_start: bool) -> bool:
    """Line-start flag after emitting *text*."""
    return text.endswith("\n") if text else at_line_start


def _step_normal(state: Normal, pending: str) -> Step:
    start = _scan_start(pending, state.at_line_start)
    if start is None:
        return Step(state=Normal(at_line_start=False), consumed=len(pending), text=pending)

    match = _FENCE_OPEN.search(pending, start)
    if match:
        before = pending[:match.start()]
        return Step(
            state=InCodeBlock(language=match.group(1) or None),
            consumed=match.end(),
            text=before,
            progress=True,
        )

    partial = _FENCE_OPEN_PARTIAL.search(pending, start)
    if partial:
        before = pending[:partial.start()]
        return Step(state=FenceOpening(), consumed=len(before), text=before)

    ticks = _BACKTICKS_PARTIAL.search(pending, start)
    if ticks:
        before = pending[:ticks.start()]
        return Step(
            state=Normal(at_line_start=_emit_prose(before, state.at_line_start)),
            consumed=len(before),
            text=before,
        )

    return Step(
        state=Normal(at_line_start=_emit_prose(pending, state.at_line_start)),
        consumed=len(pending),
        text=pending,
    )


def _step_fence_opening(state: FenceOpening, pending: str) -> Step:
    nl = pending.find("\n")
    if nl == -1:
        if _FENCE_OPEN_PARTIAL.match(pending):
            return Step(state=state)
        # Turned out not to be a fence; let Normal emit it
        return Step(state=Normal(at_line_start=True), progress=True)

    line = _FENCE_LINE.fullmatch(pending[:nl])
    if line is None:
        return Step(state=Normal(at_line_start=True), progress=True)
    return Step(
        state=InCodeBlock(language=line.group(1) or None),
        consumed=nl + 1,
        progress=True,
    )


def _step_code_block(state: InCodeBlock, pending: str) -> Step:
    nl = pending.find("\n")
    if nl == -1:
        return Step(
            state=replace(state, line_buffer=state.line_buffer + pending),
            consumed=len(pending),
        )

    full_line = state.line_buffer + pending[:nl]
    if _FENCE_CLOSE.fullmatch(full_line):
        return Step(state=Normal(at_line_start=True), consumed=nl + 1, progress=True)
    return Step(
        state=replace(state, line_buffer=""),
        consumed=nl + 1,
        code_line=full_line,
        progress=True,
    )


def step(state: State, pending: str) -> Step:
    """Advance *state* over *pending* input by one transition."""
    if isinstance(state, Normal):
        return _step_normal(state, pending)
    if isinstance(state, FenceOpening):
        return _step_fence_opening(state, pending)
    if isinstance(state, InCodeBlock):
        return _step_code_block(state, pending)
    raise TypeError(f"Unknown buffer state: {state!r}")


# ── driver ──────────────────────────────────────────────────────────

class StreamBuffer:
    """Feeds text deltas through :func:`step` and collects terminal output.

    ``write`` returns whatever can be shown right now; ``flush`` returns
    the remainder at end of stream and resets the buffer.
    """

    def __init__(self, highlight: Callable[[str, str], str] = highlight_code) -> None:
        self._highlight = highlight
        self._state: State = Normal()
        self._pending = ""

    @property
    def state(self) -> State:
        return self._state

    @property
    def pending(self) -> str:
        return self._pending

    def _render(self, code: str) -> str:
        language = getattr(self._state, "language", None) or PLAIN_LANGUAGE
        return self._highlight(code, language)

    def write(self, chunk: str) -> str:
        """Consume *chunk* and return the output it makes available."""
        self._pending += chunk
        output: list[str] = []
        while self._pending:
            result = step(self._state, self._pending)
            if result.text:
                output.append(result.text)
            if result.code_line is not None:
                output.append(self._render(result.code_line) + "\n")
            self._state = result.state
            self._pending = self._pending[result.consumed:]
            if not result.progress:
                break
        return "".join(output)

    def flush(self) -> str:
        """Emit anything still held back and reset to the initial state."""
        output: list[str] = []
        state = self._state
        if isinstance(state, InCodeBlock) and state.line_buffer:
            if not _FENCE_CLOSE.fullmatch(state.line_buffer):
                output.append(self._render(state.line_buffer))
        if self._pending:
            output.append(self._pending)
        self._state = Normal()
        self._pending = ""
        return "".join(output)
