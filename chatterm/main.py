"""Entry point for ChatTerm, an interactive terminal chat shell."""

from __future__ import annotations

import logging
import platform
import sys
from typing import TextIO

from chatterm.auth import Authenticator
from chatterm.chat import ChatSession
from chatterm.cli import build_parser
from chatterm.client import CopilotClient
from chatterm.errors import ChatTermError
from chatterm.highlighter import warmup
from chatterm.models import CopilotModel, ModelResolver
from chatterm.shell import as_context, extract_run_blocks, run_command
from chatterm.spinner import Spinner
from chatterm.stream_buffer import StreamBuffer
from chatterm.transcript import Transcript

logger = logging.getLogger(__name__)

# ── ANSI constants ───────────────────────────────────────────
_BOLD = "\033[1m"
_DIM = "\033[2m"
_RESET = "\033[0m"

PROMPT = f"{_BOLD}λ {_RESET}"

SYSTEM_PROMPT = f"""This conversation is running inside a terminal session on {platform.system()}.

To run bash commands, include scripts inside <RUN></RUN> tags like this:

<RUN>
shell_script_here
</RUN>

I will show you the outputs of every command you run.

IMPORTANT: Be CONCISE and DIRECT. Avoid unnecessary explanations."""


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def stream_reply(
    session: ChatSession,
    message: str,
    system: str | None = None,
    temperature: float | None = None,
    color: bool = True,
    out: TextIO | None = None,
) -> str:
    """Ask *session* and render the reply to *out* as it streams in.

    The spinner runs until the first delta arrives.  Whatever the fence
    buffer still holds is flushed even if the stream fails midway.
    """
    out = out if out is not None else sys.stdout
    buffer = StreamBuffer() if color else None
    spinner = Spinner()

    def on_chunk(chunk: str) -> None:
        spinner.stop()
        text = buffer.write(chunk) if buffer is not None else chunk
        if text:
            out.write(text)
            out.flush()

    spinner.start()
    try:
        reply = session.ask(message, system=system, temperature=temperature, on_chunk=on_chunk)
    finally:
        spinner.stop()
        if buffer is not None:
            out.write(buffer.flush())
        out.flush()
    if reply and not reply.endswith("\n"):
        out.write("\n")
    out.flush()
    return reply


def _dim(text: str, out: TextIO) -> None:
    out.write(f"{_DIM}{text}{_RESET}\n")
    out.flush()


def confirm(question: str) -> bool:
    try:
        answer = input(question)
    except EOFError:
        return False
    return answer.strip().lower() != "n"


def run_repl(
    session: ChatSession,
    system: str = SYSTEM_PROMPT,
    temperature: float | None = None,
    color: bool = True,
    transcript: Transcript | None = None,
    out: TextIO | None = None,
) -> None:
    """Read prompts until EOF; ``!cmd`` runs a local command."""
    out = out if out is not None else sys.stdout

    def log(text: str) -> None:
        if transcript is not None:
            transcript.append(text)

    ai_outputs: list[str] = []
    user_outputs: list[str] = []

    while True:
        try:
            line = input(PROMPT).strip()
        except EOFError:
            out.write("\n")
            return
        if not line:
            continue

        if line.startswith("!"):
            result = run_command(line[1:])
            _dim(result.output, out)
            user_outputs.append(as_context(result.output))
            log(f"\n$ {result.command}\n{result.output}\n")
            continue

        message = "\n".join([*ai_outputs, *user_outputs, line])
        ai_outputs = []
        user_outputs = []

        log(f"\n> {line}\n")
        try:
            reply = stream_reply(session, message, system=system,
                                 temperature=temperature, color=color, out=out)
        except ChatTermError as exc:
            logger.debug("Request failed", exc_info=True)
            out.write(f"Error: {exc}\n")
            continue
        log(reply + "\n")

        for script in extract_run_blocks(reply):
            if not confirm("\nExecute this command? [Y/n]: "):
                continue
            result = run_command(script)
            _dim(result.output, out)
            ai_outputs.append(as_context(result.output))
            log(f"\n# {script}\n{result.output}\n")


def connect(query: str) -> tuple[CopilotClient, CopilotModel]:
    """Authenticate and resolve *query* to a model."""
    client = CopilotClient(Authenticator())
    return client, ModelResolver(client).resolve(query)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.debug)

    try:
        client, model = connect(args.model)
    except ChatTermError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"{model.name} ({model.id})\n")
    if not args.no_color:
        warmup()

    transcript = None if args.no_log else Transcript()
    try:
        run_repl(
            ChatSession(client, model),
            system=args.system or SYSTEM_PROMPT,
            temperature=args.temperature,
            color=not args.no_color,
            transcript=transcript,
        )
    except KeyboardInterrupt:
        print()


if __name__ == "__main__":
    main()
