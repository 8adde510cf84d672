"""HTTP client for the chat API: JSON requests and SSE streams."""

from __future__ import annotations

import http.client
import json
import logging
import time
import urllib.error
import urllib.request
from collections.abc import Callable, Iterator
from typing import Any

from chatterm.config import API_BASE_URL, EDITOR_HEADERS, REQUEST_TIMEOUT
from chatterm.errors import ApiError, ParseError
from chatterm.sse import iter_payloads

logger = logging.getLogger(__name__)

_MAX_CONNECT_RETRIES = 3
_RETRY_DELAY = 2.0  # seconds between retries
_ERROR_BODY_LIMIT = 2000


def _read_error_body(exc: urllib.error.HTTPError) -> str:
    try:
        return exc.read().decode("utf-8", errors="replace").strip()[:_ERROR_BODY_LIMIT]
    except Exception:
        return ""


class CopilotClient:
    """Talks to the chat API with a bearer token from *token_provider*."""

    def __init__(
        self,
        token_provider: Callable[[], str],
        base_url: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self._token_provider = token_provider
        self.base_url = (base_url or API_BASE_URL).rstrip("/")
        self.timeout = timeout

    def _build_request(self, method: str, path: str, body: Any = None) -> urllib.request.Request:
        headers = {
            "Authorization": f"Bearer {self._token_provider()}",
            "Content-Type": "application/json",
            **EDITOR_HEADERS,
        }
        data = json.dumps(body).encode() if body is not None else None
        return urllib.request.Request(
            f"{self.base_url}{path}", data=data, headers=headers, method=method,
        )

    def _open(self, req: urllib.request.Request) -> http.client.HTTPResponse:
        """Open *req*, retrying connection failures and 5xx responses.

        4xx responses are raised immediately (client errors are not
        transient).  Every failure surfaces as :class:`ApiError`.
        """
        last_exc: Exception | None = None
        for attempt in range(_MAX_CONNECT_RETRIES):
            try:
                return urllib.request.urlopen(req, timeout=self.timeout)
            except urllib.error.HTTPError as exc:
                if 400 <= exc.code < 500:
                    raise ApiError(
                        f"API error {exc.code}: {_read_error_body(exc)}", status=exc.code,
                    ) from exc
                last_exc = exc
            except (urllib.error.URLError, OSError) as exc:
                last_exc = exc
            logger.debug("%s %s failed (attempt %d): %s",
                         req.get_method(), req.full_url, attempt + 1, last_exc)
            if attempt < _MAX_CONNECT_RETRIES - 1:
                time.sleep(_RETRY_DELAY)

        status = last_exc.code if isinstance(last_exc, urllib.error.HTTPError) else None
        raise ApiError(f"Cannot reach {self.base_url}: {last_exc}", status=status) from last_exc

    def request(self, method: str, path: str, body: Any = None) -> Any:
        """Send a JSON request and return the decoded JSON response."""
        req = self._build_request(method, path, body)
        with self._open(req) as resp:
            raw = resp.read()
        try:
            return json.loads(raw.decode())
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ParseError(f"Invalid JSON from {path}: {exc}") from exc

    def stream(self, path: str, body: Any) -> Iterator[Any]:
        """POST *body* to *path* and yield each SSE data payload as it arrives."""
        req = self._build_request("POST", path, body)
        resp = self._open(req)
        try:
            yield from iter_payloads(resp)
        except OSError as exc:
            raise ApiError(f"Stream from {path} interrupted: {exc}") from exc
        finally:
            resp.close()
