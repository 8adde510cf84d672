"""Plain-text conversation transcripts."""

from __future__ import annotations

import time
from pathlib import Path

from chatterm.config import LOG_DIR


class Transcript:
    """Appends a conversation to ``<log_dir>/<tool>/<prefix>_<ms>.txt``."""

    def __init__(
        self,
        tool: str = "chatsh",
        prefix: str = "conversation",
        log_dir: Path | str = LOG_DIR,
    ) -> None:
        directory = Path(log_dir) / tool
        directory.mkdir(parents=True, exist_ok=True)
        self.path = directory / f"{prefix}_{int(time.time() * 1000)}.txt"
        self.path.touch()

    def append(self, text: str) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(text)
