"""Terminal spinner shown while waiting for the first token of a reply."""

from __future__ import annotations

import sys
import threading
import time
from typing import TextIO

_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"
_INTERVAL = 0.08  # seconds between frames
_CLEAR_LINE = "\033[2K\r"


class Spinner:
    """Braille-dot spinner drawn on a background thread.

    Usable as a context manager; ``stop()`` is idempotent so the caller
    can stop it as soon as the first delta arrives and again on exit.
    Nothing is drawn when *stream* is not a TTY.
    """

    def __init__(self, msg: str = "thinking...", stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stderr
        self._lock = threading.Lock()
        self._msg = msg
        self._running = False
        self._thread: threading.Thread | None = None
        self._is_tty: bool = hasattr(self._stream, "isatty") and self._stream.isatty()

    def __enter__(self) -> Spinner:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    @property
    def running(self) -> bool:
        return self._running

    def start(self, msg: str | None = None) -> None:
        with self._lock:
            if msg is not None:
                self._msg = msg
            if self._running:
                return
            self._running = True
        if not self._is_tty:
            return
        self._thread = threading.Thread(target=self._spin, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop spinning and clear the spinner line."""
        with self._lock:
            if not self._running:
                return
            self._running = False
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        if self._is_tty:
            self._stream.write(_CLEAR_LINE)
            self._stream.flush()

    def _spin(self) -> None:
        idx = 0
        while True:
            with self._lock:
                if not self._running:
                    break
                msg = self._msg
            self._stream.write(f"{_CLEAR_LINE}{_FRAMES[idx % len(_FRAMES)]} {msg}")
            self._stream.flush()
            idx += 1
            time.sleep(_INTERVAL)
