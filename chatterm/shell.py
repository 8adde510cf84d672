"""Shell command execution for ``!cmd`` input and ``<RUN>`` blocks."""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass

from chatterm.config import COMMAND_TIMEOUT, MAX_COMMAND_OUTPUT

_RUN_BLOCK_RE = re.compile(r"<RUN>(.*?)</RUN>", re.DOTALL)


@dataclass
class CommandResult:
    command: str
    output: str
    returncode: int | None = None


def extract_run_blocks(text: str) -> list[str]:
    """Return the non-empty scripts wrapped in ``<RUN>...</RUN>`` tags."""
    scripts = (m.group(1).strip() for m in _RUN_BLOCK_RE.finditer(text))
    return [s for s in scripts if s]


def run_command(
    command: str,
    cwd: str | None = None,
    timeout: float = COMMAND_TIMEOUT,
) -> CommandResult:
    """Run *command* through the shell and capture stdout + stderr."""
    try:
        result = subprocess.run(
            command,
            shell=True,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
        )
    except subprocess.TimeoutExpired:
        return CommandResult(command, f"Command timed out ({timeout:g}s limit)")
    except OSError as exc:
        return CommandResult(command, str(exc))

    output = result.stdout + result.stderr
    if len(output) > MAX_COMMAND_OUTPUT:
        output = output[:MAX_COMMAND_OUTPUT] + "\n... (truncated)"
    return CommandResult(command, output, result.returncode)


def as_context(output: str) -> str:
    """Wrap command output so it can be prepended to the next message."""
    return f"```sh\n{output.rstrip()}\n```"
