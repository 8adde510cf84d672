"""Model discovery and model name resolution."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Any

from chatterm.config import MODEL_CACHE_TTL, MODELS_PATH, RESPONSES_PATH
from chatterm.errors import ModelNotFoundError, ParseError

logger = logging.getLogger(__name__)

DEFAULT_TOKENIZER = "o200k_base"
DEFAULT_MAX_INPUT_TOKENS = 128000
DEFAULT_MAX_OUTPUT_TOKENS = 16384

# Single-letter shortcuts for model families
SHORTCUTS: dict[str, re.Pattern] = {
    "g": re.compile(r"^gpt", re.IGNORECASE),
    "c": re.compile(r"^claude", re.IGNORECASE),
    "i": re.compile(r"^gemini", re.IGNORECASE),
    "o": re.compile(r"^o\d", re.IGNORECASE),
}


@dataclass(frozen=True)
class CopilotModel:
    id: str
    name: str
    tokenizer: str = DEFAULT_TOKENIZER
    max_input_tokens: int = DEFAULT_MAX_INPUT_TOKENS
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    streaming: bool = False
    tools: bool = False
    use_responses: bool = False


def parse_model(entry: dict) -> CopilotModel:
    caps = entry.get("capabilities") or {}
    limits = caps.get("limits") or {}
    supports = caps.get("supports") or {}
    return CopilotModel(
        id=str(entry["id"]),
        name=str(entry.get("name") or entry["id"]),
        tokenizer=caps.get("tokenizer") or DEFAULT_TOKENIZER,
        max_input_tokens=limits.get("max_prompt_tokens") or DEFAULT_MAX_INPUT_TOKENS,
        max_output_tokens=limits.get("max_output_tokens") or DEFAULT_MAX_OUTPUT_TOKENS,
        streaming=bool(supports.get("streaming", False)),
        tools=bool(supports.get("tool_calls", False)),
        use_responses=RESPONSES_PATH in (entry.get("supported_endpoints") or []),
    )


def fetch_models(client: Any) -> list[CopilotModel]:
    """Return the chat models offered in the model picker."""
    raw = client.request("GET", MODELS_PATH)
    data = raw.get("data") if isinstance(raw, dict) else None
    if not isinstance(data, list):
        raise ParseError("Model list response has no 'data' array")

    models = []
    for entry in data:
        if not isinstance(entry, dict) or "id" not in entry:
            continue
        caps = entry.get("capabilities") or {}
        if caps.get("type") != "chat" or not entry.get("model_picker_enabled"):
            continue
        models.append(parse_model(entry))
    logger.debug("Fetched %d chat models", len(models))
    return models


class ModelResolver:
    """Resolves a user-supplied model query against the live model list."""

    def __init__(self, client: Any, ttl: float = MODEL_CACHE_TTL) -> None:
        self.client = client
        self.ttl = ttl
        self._models: list[CopilotModel] = []
        self._expires_at = 0.0

    def models(self) -> list[CopilotModel]:
        now = time.monotonic()
        if not self._models or now >= self._expires_at:
            self._models = fetch_models(self.client)
            self._expires_at = now + self.ttl
        return self._models

    def resolve(self, query: str) -> CopilotModel:
        """Find a model by shortcut letter, exact id, or id/name substring."""
        models = self.models()
        needle = query.lower()

        pattern = SHORTCUTS.get(needle)
        if pattern:
            for m in models:
                if pattern.search(m.id):
                    return m

        for m in models:
            if m.id == query:
                return m

        for m in models:
            if needle in m.id.lower() or needle in m.name.lower():
                return m

        available = "\n".join(f"  {m.id}" for m in models)
        raise ModelNotFoundError(f"Model not found: {query}. Available models:\n{available}")
