"""Commit message tool: summarise the staged diff as a commitizen message."""

from __future__ import annotations

import logging
import re
import subprocess
import sys
from collections.abc import Callable
from typing import Any

from chatterm.chat import ChatMessage, chat_stream
from chatterm.cli import build_commitmsg_parser
from chatterm.errors import ChatTermError
from chatterm.main import configure_logging, connect
from chatterm.models import CopilotModel

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Write commit message for the change with commitizen convention. "
    "Keep the title under 50 characters and wrap message at 72 characters. "
    "Format as a gitcommit code block."
)

_GITCOMMIT_BLOCK_RE = re.compile(r"```gitcommit\s*\n(.*?)```", re.DOTALL)


def staged_diff(cwd: str | None = None) -> str:
    """Return ``git diff --staged``, or ``""`` outside a repository."""
    try:
        result = subprocess.run(
            ["git", "diff", "--staged"],
            capture_output=True,
            text=True,
            cwd=cwd,
        )
    except OSError as exc:
        logger.debug("git not runnable: %s", exc)
        return ""
    if result.returncode != 0:
        logger.debug("git diff failed: %s", result.stderr.strip())
        return ""
    return result.stdout


def extract_commit_message(reply: str) -> str:
    """Pull the message out of the ``gitcommit`` block, else the whole reply."""
    match = _GITCOMMIT_BLOCK_RE.search(reply)
    return match.group(1).strip() if match else reply.strip()


def generate_commit_message(
    client: Any,
    model: CopilotModel,
    diff: str,
    on_chunk: Callable[[str], None] | None = None,
) -> str:
    messages = [
        ChatMessage(role="system", content=SYSTEM_PROMPT),
        ChatMessage(role="user", content=f"Here are the staged changes:\n\n{diff}"),
    ]
    parts: list[str] = []
    for text in chat_stream(client, model, messages):
        parts.append(text)
        if on_chunk is not None:
            on_chunk(text)
    return extract_commit_message("".join(parts))


def _echo(text: str) -> None:
    sys.stderr.write(text)
    sys.stderr.flush()


def main(argv: list[str] | None = None) -> None:
    """Stream the reply to stderr and print only the message to stdout."""
    args = build_commitmsg_parser().parse_args(argv)
    configure_logging(args.debug)

    diff = staged_diff()
    if not diff.strip():
        print("No staged changes found", file=sys.stderr)
        sys.exit(1)

    try:
        client, model = connect(args.model)
        message = generate_commit_message(client, model, diff, on_chunk=_echo)
    except ChatTermError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    sys.stderr.write("\n")
    sys.stdout.write(message)


if __name__ == "__main__":
    main()
