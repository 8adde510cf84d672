"""Hole filling tool: replace a ``.?.`` placeholder with model-written code.

The model sees the file (or a smaller context file) with the placeholder
swapped for ``{:FILL_HERE:}`` and answers inside ``<COMPLETION>`` tags.
Context files may pull in other files with import lines::

    //./relative/path//      --[./relative/path]--      #[./relative/path]#
"""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path

from chatterm.chat import ChatSession
from chatterm.cli import build_holefill_parser
from chatterm.errors import ChatTermError, PlaceholderError
from chatterm.main import configure_logging, connect

logger = logging.getLogger(__name__)

HOLE = ".?."
FILL_MARKER = "{:FILL_HERE:}"

SYSTEM_PROMPT = f"""You fill EXACTLY ONE placeholder inside a user-provided file.

The user will send you a complete file with a single {FILL_MARKER} marker.

Rules:
- Inspect the surrounding text to understand context
- Preserve indentation, spacing, and code style
- Output ONLY the replacement text (no explanations)
- Wrap your output in <COMPLETION>...</COMPLETION> tags
- Do not include the marker itself in your response

Example:
User sends: function test() {{\\n  {FILL_MARKER}\\n}}
You respond: <COMPLETION>return 42;</COMPLETION>"""

_HOLE_LINE_RE = re.compile(r"^[ \t]+(\.\?\.)$", re.MULTILINE)
_COMPLETION_RE = re.compile(r"<COMPLETION>(.*?)</COMPLETION>", re.DOTALL)
_IMPORT_LINE_RES = (
    re.compile(r"^//(\./.+)//$"),
    re.compile(r"^--\[(\./.+)\]--$"),
    re.compile(r"^#\[(\./.+)\]#$"),
)


def left_align_holes(code: str) -> str:
    """Drop indentation in front of placeholders that sit on their own line."""
    return _HOLE_LINE_RE.sub(r"\1", code)


def expand_inline_imports(code: str, base_dir: Path | str) -> str:
    """Replace import lines with the contents of the file they name."""
    lines = []
    for line in code.split("\n"):
        match = next((m for m in (r.match(line) for r in _IMPORT_LINE_RES) if m), None)
        if match:
            lines.append((Path(base_dir) / match.group(1)).read_text())
        else:
            lines.append(line)
    return "\n".join(lines)


def build_prompt(context: str, base_dir: Path | str) -> str:
    context = left_align_holes(expand_inline_imports(context, base_dir))
    return context.replace(HOLE, FILL_MARKER, 1)


def extract_completion(reply: str) -> str:
    """Text inside ``<COMPLETION>`` (or the whole reply), without outer newlines."""
    match = _COMPLETION_RE.search(reply)
    fill = match.group(1) if match else reply
    return fill.strip("\n")


def fill_hole(code: str, fill: str) -> str:
    return left_align_holes(code).replace(HOLE, fill, 1)


def fill_file(path: Path | str, session: ChatSession, mini_path: Path | str | None = None) -> str:
    """Ask the model for the placeholder in *path*, write the result, return the fill.

    *mini_path* is sent instead of the full file when given.
    """
    path = Path(path)
    code = path.read_text()
    context = Path(mini_path).read_text() if mini_path else code

    if HOLE not in context:
        raise PlaceholderError(f"No {HOLE} placeholder found")
    if HOLE not in code:
        raise PlaceholderError(f"No {HOLE} placeholder found in {path}")

    prompt = build_prompt(context, path.parent)
    logger.debug("Sending %d characters of context for %s", len(prompt), path)
    fill = extract_completion(session.ask(prompt, system=SYSTEM_PROMPT))

    path.write_text(fill_hole(code, fill))
    return fill


def main(argv: list[str] | None = None) -> None:
    args = build_holefill_parser().parse_args(argv)
    configure_logging(args.debug)

    try:
        client, model = connect(args.model)
        fill_file(args.file, ChatSession(client, model), args.mini_file)
    except (ChatTermError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"✓ Filled hole in {args.file}")


if __name__ == "__main__":
    main()
