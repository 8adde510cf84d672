"""Bearer token acquisition from the cache, an editor OAuth token, or the device flow."""

from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.request
from collections.abc import Callable
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from chatterm.config import (
    ACCESS_TOKEN_URL,
    BEARER_TOKEN_URL,
    COPILOT_CONFIG_PATHS,
    DEVICE_CODE_URL,
    GITHUB_CLIENT_ID,
    TOKEN_PATH,
)
from chatterm.errors import AuthError

logger = logging.getLogger(__name__)

_DEFAULT_POLL_INTERVAL = 5  # seconds
_EXPIRY_MARGIN = 60  # refresh bearer tokens this many seconds early


@dataclass
class TokenCache:
    oauth_token: str | None = None
    bearer_token: str | None = None
    expires_at: float | None = None


class TokenStore:
    """JSON file holding the OAuth token and the latest bearer token."""

    def __init__(self, path: Path | str = TOKEN_PATH) -> None:
        self.path = Path(path)

    def load(self) -> TokenCache:
        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError):
            return TokenCache()
        if not isinstance(data, dict):
            return TokenCache()
        return TokenCache(
            oauth_token=data.get("oauth_token"),
            bearer_token=data.get("bearer_token"),
            expires_at=data.get("expires_at"),
        )

    def save(self, cache: TokenCache) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(asdict(cache), indent=2))
        try:
            self.path.chmod(0o600)
        except OSError:
            logger.debug("Could not restrict permissions on %s", self.path)


def _post_json(url: str, body: dict, headers: dict | None = None) -> Any:
    req = urllib.request.Request(
        url,
        data=json.dumps(body).encode(),
        headers={"Accept": "application/json", "Content-Type": "application/json", **(headers or {})},
        method="POST",
    )
    return _fetch_json(req)


def _fetch_json(req: urllib.request.Request) -> Any:
    try:
        with urllib.request.urlopen(req, timeout=30) as resp:
            return json.loads(resp.read().decode())
    except urllib.error.HTTPError as exc:
        raise AuthError(f"{req.full_url} answered HTTP {exc.code}") from exc
    except urllib.error.URLError as exc:
        raise AuthError(f"Cannot reach {req.full_url}: {exc.reason}") from exc
    except json.JSONDecodeError as exc:
        raise AuthError(f"Invalid JSON from {req.full_url}") from exc


def find_editor_token(paths: tuple[Path, ...] = COPILOT_CONFIG_PATHS) -> str | None:
    """Return a GitHub OAuth token already saved by an editor plugin."""
    for path in paths:
        try:
            data = json.loads(Path(path).read_text())
        except (OSError, json.JSONDecodeError):
            continue
        if not isinstance(data, dict):
            continue
        for key, value in data.items():
            if "github.com" in key and isinstance(value, dict) and value.get("oauth_token"):
                return str(value["oauth_token"])
    return None


def device_flow(
    client_id: str = GITHUB_CLIENT_ID,
    sleep: Callable[[float], None] = time.sleep,
    notify: Callable[[str], None] = print,
) -> str:
    """Run the GitHub device authorization flow and return an OAuth token."""
    device = _post_json(DEVICE_CODE_URL, {"client_id": client_id, "scope": ""})
    try:
        device_code = device["device_code"]
        user_code = device["user_code"]
        verification_uri = device["verification_uri"]
    except (KeyError, TypeError) as exc:
        raise AuthError("Invalid device code response") from exc
    interval = device.get("interval") or _DEFAULT_POLL_INTERVAL

    notify(f"\nVisit {verification_uri} and enter code: {user_code}\n")
    notify("Waiting for authorization...")

    while True:
        sleep(interval)
        data = _post_json(ACCESS_TOKEN_URL, {
            "client_id": client_id,
            "device_code": device_code,
            "grant_type": "urn:ietf:params:oauth:grant-type:device_code",
        })
        if not isinstance(data, dict):
            raise AuthError("Invalid access token response")
        if data.get("access_token"):
            return str(data["access_token"])
        error = data.get("error")
        if error == "slow_down":
            interval += _DEFAULT_POLL_INTERVAL
        elif error != "authorization_pending":
            raise AuthError(f"Auth error: {data.get('error_description') or error}")


def exchange_bearer_token(oauth_token: str) -> tuple[str, float]:
    """Trade a GitHub OAuth token for a short-lived API bearer token."""
    req = urllib.request.Request(
        BEARER_TOKEN_URL,
        headers={"Authorization": f"Token {oauth_token}", "Accept": "application/json"},
    )
    data = _fetch_json(req)
    token = data.get("token") if isinstance(data, dict) else None
    expires_at = data.get("expires_at") if isinstance(data, dict) else None
    if not isinstance(token, str) or not isinstance(expires_at, (int, float)):
        raise AuthError("Invalid bearer token response")
    return token, float(expires_at)


class Authenticator:
    """Hands out a valid bearer token, refreshing it when it expires."""

    def __init__(
        self,
        store: TokenStore | None = None,
        login: Callable[[], str] = device_flow,
    ) -> None:
        self.store = store or TokenStore()
        self._login = login

    def bearer_token(self) -> str:
        cache = self.store.load()
        if cache.bearer_token and cache.expires_at and cache.expires_at - _EXPIRY_MARGIN > time.time():
            return cache.bearer_token

        oauth_token = cache.oauth_token or find_editor_token()
        if not oauth_token:
            logger.info("No GitHub OAuth token found; starting device flow")
            oauth_token = self._login()

        token, expires_at = exchange_bearer_token(oauth_token)
        self.store.save(TokenCache(oauth_token=oauth_token, bearer_token=token, expires_at=expires_at))
        logger.debug("Bearer token refreshed, expires at %s", expires_at)
        return token

    __call__ = bearer_token
