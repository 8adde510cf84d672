"""Line-oriented syntax highlighting with 24-bit ANSI colors."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

import pygments
from pygments.formatters import TerminalTrueColorFormatter
from pygments.lexer import Lexer
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from chatterm.config import HIGHLIGHT_THEME

logger = logging.getLogger(__name__)

PLAIN_LANGUAGE = "text"

LANGUAGE_ALIASES: dict[str, str] = {
    "js": "javascript",
    "ts": "typescript",
    "py": "python",
    "rb": "ruby",
    "sh": "bash",
    "yml": "yaml",
    "md": "markdown",
    "rs": "rust",
    "kt": "kotlin",
    "cs": "csharp",
}

SUPPORTED_LANGUAGES: tuple[str, ...] = (
    "javascript", "typescript", "python", "java", "c", "cpp", "csharp",
    "go", "rust", "ruby", "php", "swift", "kotlin", "scala", "r", "bash",
    "shell", "powershell", "sql", "html", "css", "json", "yaml", "xml",
    "markdown", "text",
)

# Extra lexer options for languages whose snippets need them
_LEXER_OPTIONS: dict[str, dict] = {
    "php": {"startinline": True},
}


def normalize_language(language: str) -> str:
    """Lower-case *language* and resolve short aliases (``py`` -> ``python``)."""
    lang = (language or "").strip().lower()
    if not lang:
        return PLAIN_LANGUAGE
    return LANGUAGE_ALIASES.get(lang, lang)


@dataclass(frozen=True)
class _Engine:
    formatter: TerminalTrueColorFormatter
    lexers: dict[str, Lexer]

    def render(self, tokens: list[tuple]) -> str:
        return pygments.format(tokens, self.formatter)


def _build_engine() -> _Engine:
    formatter = TerminalTrueColorFormatter(style=HIGHLIGHT_THEME)
    lexers: dict[str, Lexer] = {}
    for lang in SUPPORTED_LANGUAGES:
        options = {"stripnl": False, **_LEXER_OPTIONS.get(lang, {})}
        try:
            lexers[lang] = get_lexer_by_name(lang, **options)
        except ClassNotFound:
            logger.debug("No lexer available for %s", lang)
    logger.debug("Highlighter ready: theme=%s, %d languages", HIGHLIGHT_THEME, len(lexers))
    return _Engine(formatter=formatter, lexers=lexers)


class _EngineCell:
    """Builds the engine on first use, exactly once per process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._engine: _Engine | None = None

    def get(self) -> _Engine:
        engine = self._engine
        if engine is not None:
            return engine
        with self._lock:
            if self._engine is None:
                self._engine = _build_engine()
            return self._engine


_ENGINE = _EngineCell()


def warmup() -> None:
    """Build the highlighting engine ahead of the first highlight call."""
    _ENGINE.get()


def highlight_code(code: str, language: str) -> str:
    """Return *code* with ANSI color escapes for *language*.

    Never raises: unknown languages and tokenizer failures return *code*
    unchanged.  Removing the escapes from the result always gives back
    *code* exactly.
    """
    if not code:
        return ""
    try:
        engine = _ENGINE.get()
        lexer = engine.lexers.get(normalize_language(language))
        if lexer is None:
            return code

        tokens = list(lexer.get_tokens(code))
        # The lexer appends a newline the input may not have had
        if not code.endswith("\n") and tokens and tokens[-1][1].endswith("\n"):
            ttype, value = tokens[-1]
            tokens[-1] = (ttype, value[:-1])

        if "".join(value for _, value in tokens) != code:
            # Lexer normalised the text (e.g. \r\n); keep the original bytes
            return code

        return engine.render(tokens)
    except Exception:
        logger.debug("Highlighting failed for language %r", language, exc_info=True)
        return code
