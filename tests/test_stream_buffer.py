"""Tests for StreamBuffer fence-aware buffering and line highlighting."""

from __future__ import annotations

import random
import re

import pytest

from chatterm.highlighter import highlight_code
from chatterm.stream_buffer import (
    FenceOpening,
    InCodeBlock,
    Normal,
    StreamBuffer,
    step,
)

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


def tagging(code: str, lang: str) -> str:
    """Fake highlighter that makes routing visible."""
    return f"<{lang}>{code}</{lang}>"


def identity(code: str, lang: str) -> str:
    return code


def run(chunks, highlight=tagging) -> str:
    buf = StreamBuffer(highlight=highlight)
    out = "".join(buf.write(c) for c in chunks)
    return out + buf.flush()


SAMPLE = (
    "Intro with `inline` and ``double`` ticks.\n"
    "```python title=f.py\n"
    "def f(x):\n"
    "    return x * 2\n"
    "```\n"
    "Between blocks.\n"
    "```\n"
    "no language here\n"
    "```  \n"
    "Tail without newline"
)

SAMPLE_WITHOUT_MARKERS = (
    "Intro with `inline` and ``double`` ticks.\n"
    "def f(x):\n"
    "    return x * 2\n"
    "Between blocks.\n"
    "no language here\n"
    "Tail without newline"
)


# ═══════════════════════════════════════════════════════════════════════
# Pure transition function
# ═══════════════════════════════════════════════════════════════════════

class TestStep:
    """The pure transition function, one state at a time."""

    def test_normal_plain_text_emits_everything(self):
        """Prose without fences is emitted in one step."""
        result = step(Normal(), "hello\n")
        assert result.text == "hello\n"
        assert result.consumed == 6
        assert result.state == Normal(at_line_start=True)
        assert not result.progress

    def test_normal_tracks_line_start(self):
        """Text without a trailing newline clears at_line_start."""
        result = step(Normal(), "no newline")
        assert result.state == Normal(at_line_start=False)

    def test_normal_complete_fence(self):
        """A full opening line enters the block and is consumed."""
        result = step(Normal(), "intro\n```rust\nfn main() {}\n")
        assert result.text == "intro\n"
        assert result.consumed == len("intro\n```rust\n")
        assert result.state == InCodeBlock(language="rust")
        assert result.progress

    def test_normal_fence_without_language(self):
        result = step(Normal(), "```\n")
        assert result.state == InCodeBlock(language=None)

    def test_normal_partial_fence_moves_to_opening(self):
        """An unfinished opening line is withheld."""
        result = step(Normal(), "intro\n```py")
        assert result.text == "intro\n"
        assert result.consumed == len("intro\n")
        assert result.state == FenceOpening()
        assert not result.progress

    @pytest.mark.parametrize("tail", ["`", "``"])
    def test_normal_withholds_trailing_backticks(self, tail):
        """One or two backticks at a line start are withheld."""
        result = step(Normal(), "intro\n" + tail)
        assert result.text == "intro\n"
        assert result.consumed == len("intro\n")
        assert isinstance(result.state, Normal)

    def test_normal_ignores_fence_mid_line(self):
        """Backticks after other text on the line are prose."""
        result = step(Normal(at_line_start=False), "```python\n")
        assert result.text == "```python\n"
        assert result.state == Normal(at_line_start=True)

    def test_opening_waits_for_newline(self):
        """Without a newline the opening line stays pending."""
        result = step(FenceOpening(), "```type")
        assert result.state == FenceOpening()
        assert result.consumed == 0
        assert not result.progress

    def test_opening_completes(self):
        """A newline completes the opening line."""
        result = step(FenceOpening(), "```typescript\nconst a = 1;\n")
        assert result.state == InCodeBlock(language="typescript")
        assert result.consumed == len("```typescript\n")
        assert result.progress

    def test_opening_accepts_info_string(self):
        """Text after the language word keeps the line a fence."""
        result = step(FenceOpening(), "```python title=x.py\nprint(1)\n")
        assert result.state == InCodeBlock(language="python")
        assert result.consumed == len("```python title=x.py\n")
        assert result.progress

    def test_opening_with_backtick_in_info_is_prose(self):
        """A backtick after the fence means inline code, not a block."""
        result = step(FenceOpening(), "```py `x`\n")
        assert result.state == Normal(at_line_start=True)
        assert result.consumed == 0
        assert result.progress

    def test_code_block_buffers_partial_line(self):
        """Partial code lines accumulate in line_buffer."""
        result = step(InCodeBlock("go", "fmt."), "Println(")
        assert result.state == InCodeBlock("go", "fmt.Println(")
        assert result.consumed == len("Println(")
        assert result.code_line is None

    def test_code_block_completes_line(self):
        """A newline hands the full line to the highlighter."""
        result = step(InCodeBlock("go", "x := "), "1\nrest")
        assert result.code_line == "x := 1"
        assert result.state == InCodeBlock("go", "")
        assert result.consumed == len("1\n")
        assert result.progress

    def test_code_block_close_marker(self):
        """A close marker split across the buffer still closes."""
        result = step(InCodeBlock("go", "``"), "`\nafter")
        assert result.state == Normal(at_line_start=True)
        assert result.code_line is None
        assert result.text == ""
        assert result.consumed == 2

    def test_code_block_fence_with_language_is_code(self):
        """Only a bare fence closes a block."""
        result = step(InCodeBlock("markdown"), "```python\n")
        assert result.code_line == "```python"
        assert isinstance(result.state, InCodeBlock)

    def test_unknown_state_raises(self):
        with pytest.raises(TypeError):
            step(object(), "x")


# ═══════════════════════════════════════════════════════════════════════
# Driver behaviour
# ═══════════════════════════════════════════════════════════════════════

class TestPlainText:
    """Prose passes through untouched."""

    def test_passthrough_is_immediate(self):
        """Prose is returned from the same write()."""
        buf = StreamBuffer(highlight=tagging)
        assert buf.write("Hello world") == "Hello world"

    def test_empty_chunk_is_noop(self):
        buf = StreamBuffer(highlight=tagging)
        assert buf.write("") == ""
        assert buf.flush() == ""

    def test_inline_code_unchanged(self):
        """Inline code spans never open a block."""
        text = "Here is `inline code` text.\n"
        buf = StreamBuffer(highlight=tagging)
        assert buf.write(text) == text
        assert buf.flush() == ""

    def test_double_backticks_unchanged(self):
        text = "use ``x`` here\n"
        assert run([text]) == text

    def test_no_fence_idempotent_char_by_char(self):
        """Feeding one character at a time changes nothing."""
        text = "line one\nline `two` ``three``\n  `` indented\nend"
        assert run(list(text)) == text

    def test_fence_after_text_on_same_line_is_prose(self):
        assert run(["before", "```python\n", "x = 1\n"]) == "before```python\nx = 1\n"

    def test_four_backticks_are_prose(self):
        """Four backticks do not form this fence."""
        assert run(["````\nx\n"]) == "````\nx\n"


class TestCodeBlocks:
    """Per-line highlighting inside blocks."""

    def test_single_block(self):
        """The code line is highlighted; markers vanish."""
        out = run(["```python\nx = 1\n```\n"])
        assert out == "<python>x = 1</python>\n"

    def test_each_line_highlighted_separately(self):
        """Each line is its own highlight call."""
        out = run(["```js\na();\nb();\n```\n"])
        assert out == "<js>a();</js>\n<js>b();</js>\n"

    def test_no_language_uses_plain(self):
        """A bare fence highlights as text."""
        out = run(["```\n", "plain text\n", "```\n"])
        assert out == "<text>plain text</text>\n"
        assert "```" not in out

    def test_line_emitted_as_soon_as_complete(self):
        """Lines are released as soon as their newline arrives."""
        buf = StreamBuffer(highlight=tagging)
        assert buf.write("```py\nprint(") == ""
        assert buf.write("1)\npri") == "<py>print(1)</py>\n"
        assert buf.write("nt(2)\n") == "<py>print(2)</py>\n"

    def test_blank_code_line(self):
        out = run(["```py\na\n\nb\n```\n"])
        assert out == "<py>a</py>\n<py></py>\n<py>b</py>\n"

    @pytest.mark.parametrize("fence", ["```python title=x.py\n", "```python {1,3}\n"])
    def test_info_string_after_language(self, fence):
        """Attributes after the language word still open a block."""
        out = run(["Intro\n" + fence + "print(1)\n```\nAfter the block.\n"])
        assert out == "Intro\n<python>print(1)</python>\nAfter the block.\n"

    def test_info_string_split_across_writes(self):
        """Info string arriving in pieces opens the same block."""
        out = run(["Intro\n```js", " {1,", "3}", "\nf();\n```\nEnd\n"])
        assert out == "Intro\n<js>f();</js>\nEnd\n"

    def test_close_marker_with_trailing_spaces(self):
        assert run(["```py\na\n```   \nafter\n"]) == "<py>a</py>\nafter\n"

    def test_opening_with_trailing_spaces(self):
        assert run(["```python  \nx\n```\n"]) == "<python>x</python>\n"

    def test_crlf_marker_lines(self):
        """CRLF fence lines open and close blocks."""
        out = run(["```py\r\na\n```\r\nafter\n"])
        assert out == "<py>a</py>\nafter\n"

    def test_multiple_blocks(self):
        out = run([
            "Text before\n", "```python\n", "x = 1\n", "```\n",
            "Text between\n", "```typescript\n", "const y = 2;\n", "```\n",
        ])
        assert out == (
            "Text before\n<python>x = 1</python>\n"
            "Text between\n<typescript>const y = 2;</typescript>\n"
        )

    def test_language_with_symbols(self):
        """Tags like c++ and c# keep their symbols."""
        assert run(["```c++\nint x;\n```\n"]) == "<c++>int x;</c++>\n"


class TestSplitMarkers:
    """Fence markers split across writes."""

    def test_opening_split_across_writes(self):
        """A tag split mid-word is joined."""
        out = run(["```java", "script\n", "const x = 1;\n", "`", "`", "`\n"])
        assert out == "<javascript>const x = 1;</javascript>\n"
        assert "```" not in out

    def test_backticks_split_before_language(self):
        """Backticks arriving before the tag are withheld, then consumed."""
        out = run([
            "Here is some code:\n", "``", "`typescript\n",
            "const x = 1;\n", "```\n", "End of code.",
        ])
        assert out == (
            "Here is some code:\n<typescript>const x = 1;</typescript>\nEnd of code."
        )

    def test_withheld_backticks_released_when_not_a_fence(self):
        """Withheld backticks come out once they are not a fence."""
        buf = StreamBuffer(highlight=tagging)
        assert buf.write("a\n``") == "a\n"
        assert buf.write("x``\n") == "``x``\n"

    def test_opening_abandoned_when_line_continues(self):
        """A backtick in the info text turns the pending fence back into prose."""
        buf = StreamBuffer(highlight=tagging)
        assert buf.write("```py") == ""
        assert isinstance(buf.state, FenceOpening)
        assert buf.write(" `x` is inline\n") == "```py `x` is inline\n"
        assert isinstance(buf.state, Normal)

    def test_char_by_char_matches_whole(self):
        assert run(list(SAMPLE)) == run([SAMPLE])


class TestFlush:
    """End-of-stream handling."""

    def test_unclosed_block_partial_line(self):
        """The partial code line is highlighted."""
        buf = StreamBuffer(highlight=tagging)
        buf.write("```javascript\nconst x = 1;")
        assert buf.flush() == "<javascript>const x = 1;</javascript>"

    def test_unclosed_block_complete_line(self):
        buf = StreamBuffer(highlight=tagging)
        out = buf.write("```javascript\nconst x = 1;\n")
        assert out == "<javascript>const x = 1;</javascript>\n"
        assert buf.flush() == ""

    def test_trailing_close_marker_without_newline(self):
        """A final bare close marker is dropped."""
        assert run(["```py\na\n```"]) == "<py>a</py>\n"

    def test_pending_partial_marker_released(self):
        """An unfinished fence line is released as prose."""
        buf = StreamBuffer(highlight=tagging)
        assert buf.write("intro\n```pyth") == "intro\n"
        assert buf.flush() == "```pyth"

    def test_pending_backticks_released(self):
        buf = StreamBuffer(highlight=tagging)
        buf.write("end\n``")
        assert buf.flush() == "``"

    def test_flush_resets_state(self):
        """After flush the buffer is back to its initial state."""
        buf = StreamBuffer(highlight=tagging)
        buf.write("```py\nx")
        buf.flush()
        assert buf.state == Normal()
        assert buf.pending == ""
        assert buf.write("plain\n") == "plain\n"


class TestRoundTrip:
    """Stripping markers and escapes gives back the original text."""

    def test_sample_with_identity_highlighter(self):
        assert run([SAMPLE], highlight=identity) == SAMPLE_WITHOUT_MARKERS

    @pytest.mark.parametrize("cut", range(1, len(SAMPLE)))
    def test_every_two_way_split(self, cut):
        """Every two-chunk split gives the same output."""
        out = run([SAMPLE[:cut], SAMPLE[cut:]], highlight=identity)
        assert out == SAMPLE_WITHOUT_MARKERS

    @pytest.mark.parametrize("seed", range(25))
    def test_random_splits_with_real_highlighter(self, seed):
        """Random chunking with real colors strips back to the text."""
        rng = random.Random(seed)
        chunks, i = [], 0
        while i < len(SAMPLE):
            n = rng.randint(1, 7)
            chunks.append(SAMPLE[i:i + n])
            i += n
        assert strip_ansi(run(chunks, highlight=highlight_code)) == SAMPLE_WITHOUT_MARKERS


class TestScenario:
    """End-to-end replies with the real highlighter."""

    def test_three_chunk_response(self):
        buf = StreamBuffer()
        out = buf.write("Intro text\n")
        out += buf.write("```python\nx = 1\n")
        out += buf.write("```\nOutro.\n")
        out += buf.flush()

        assert "Intro text" in out
        assert "Outro." in out
        assert "\x1b[" in out
        assert "x = 1" in strip_ansi(out)
        assert "```" not in out
        assert strip_ansi(out) == "Intro text\nx = 1\nOutro.\n"

    def test_unclosed_block_is_highlighted_on_flush(self):
        buf = StreamBuffer()
        out = buf.write("```python\n")
        out += buf.write("x = 1")
        out += buf.flush()
        assert "\x1b[" in out
        assert strip_ansi(out) == "x = 1"
