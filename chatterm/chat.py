"""Streaming chat requests with responses -> chat-completions fallback."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from chatterm.config import CHAT_COMPLETIONS_PATH, RESPONSES_PATH
from chatterm.deltas import DeltaShape, extract_delta
from chatterm.errors import ChatTermError
from chatterm.models import CopilotModel

logger = logging.getLogger(__name__)


@dataclass
class ChatMessage:
    role: str        # "system" | "user" | "assistant"
    content: str


def _responses_body(model: CopilotModel, messages: list[ChatMessage]) -> dict:
    system = next((m for m in messages if m.role == "system"), None)
    body: dict[str, Any] = {
        "model": model.id,
        "stream": True,
        "input": [
            {"role": m.role, "content": m.content}
            for m in messages if m.role != "system"
        ],
    }
    if system is not None:
        body["instructions"] = system.content
    return body


def _chat_body(
    model: CopilotModel,
    messages: list[ChatMessage],
    temperature: float | None,
) -> dict:
    body: dict[str, Any] = {
        "model": model.id,
        "stream": True,
        "messages": [{"role": m.role, "content": m.content} for m in messages],
    }
    if temperature is not None:
        body["temperature"] = temperature
    return body


def _deltas(client: Any, path: str, body: dict, shape: DeltaShape) -> Iterator[str]:
    for payload in client.stream(path, body):
        delta = extract_delta(payload, shape)
        if delta is not None:
            yield delta.text


def stream_responses(client: Any, model: CopilotModel, messages: list[ChatMessage]) -> Iterator[str]:
    """Text deltas from the ``/responses`` endpoint."""
    return _deltas(client, RESPONSES_PATH, _responses_body(model, messages), DeltaShape.RESPONSES)


def stream_chat_completions(
    client: Any,
    model: CopilotModel,
    messages: list[ChatMessage],
    temperature: float | None = None,
) -> Iterator[str]:
    """Text deltas from the ``/chat/completions`` endpoint."""
    return _deltas(
        client, CHAT_COMPLETIONS_PATH,
        _chat_body(model, messages, temperature), DeltaShape.CHAT_COMPLETIONS,
    )


def chat_stream(
    client: Any,
    model: CopilotModel,
    messages: list[ChatMessage],
    temperature: float | None = None,
) -> Iterator[str]:
    """Stream the assistant reply as text deltas.

    Models advertising ``/responses`` are tried there first.  If that
    endpoint fails before any text was produced, the whole request is
    retried against ``/chat/completions``.  A failure after text has been
    yielded propagates, since replaying would duplicate output.
    """
    if model.use_responses:
        yielded = False
        try:
            for text in stream_responses(client, model, messages):
                yielded = True
                yield text
            return
        except ChatTermError as exc:
            if yielded:
                raise
            logger.info("%s failed for %s (%s); falling back to %s",
                        RESPONSES_PATH, model.id, exc, CHAT_COMPLETIONS_PATH)
    yield from stream_chat_completions(client, model, messages, temperature)


class ChatSession:
    """A conversation that remembers its user/assistant turns."""

    def __init__(self, client: Any, model: CopilotModel) -> None:
        self.client = client
        self.model = model
        self._history: list[ChatMessage] = []

    def ask(
        self,
        user_message: str,
        system: str | None = None,
        temperature: float | None = None,
        on_chunk: Callable[[str], None] | None = None,
    ) -> str:
        """Send *user_message* with the history and return the full reply.

        Each delta is passed to *on_chunk* as it arrives.  History is only
        updated once the reply completed.
        """
        messages: list[ChatMessage] = []
        if system:
            messages.append(ChatMessage(role="system", content=system))
        messages.extend(self._history)
        messages.append(ChatMessage(role="user", content=user_message))

        parts: list[str] = []
        for text in chat_stream(self.client, self.model, messages, temperature):
            parts.append(text)
            if on_chunk is not None:
                on_chunk(text)

        reply = "".join(parts)
        self._history.append(ChatMessage(role="user", content=user_message))
        self._history.append(ChatMessage(role="assistant", content=reply))
        return reply

    def history(self) -> list[ChatMessage]:
        return list(self._history)

    def clear(self) -> None:
        self._history = []
