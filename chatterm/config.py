"""Configuration constants for ChatTerm."""

from __future__ import annotations

import os
from pathlib import Path


# ── API ─────────────────────────────────────────────────────────────

API_BASE_URL = os.environ.get("CHATTERM_API_BASE_URL", "https://api.githubcopilot.com")

EDITOR_HEADERS: dict[str, str] = {
    "Editor-Version": "chatterm/0.1.0",
    "Editor-Plugin-Version": "chatterm/0.1.0",
    "Copilot-Integration-Id": "vscode-chat",
}

RESPONSES_PATH = "/responses"
CHAT_COMPLETIONS_PATH = "/chat/completions"
MODELS_PATH = "/models"

REQUEST_TIMEOUT = 300  # seconds
MODEL_CACHE_TTL = 300  # seconds

# ── Auth ────────────────────────────────────────────────────────────

GITHUB_CLIENT_ID = "Iv1.b507a08c87ecfe98"
DEVICE_CODE_URL = "https://github.com/login/device/code"
ACCESS_TOKEN_URL = "https://github.com/login/oauth/access_token"
BEARER_TOKEN_URL = "https://api.github.com/copilot_internal/v2/token"

CONFIG_DIR = Path(os.environ.get("CHATTERM_CONFIG_DIR", Path.home() / ".config" / "chatterm"))
TOKEN_PATH = CONFIG_DIR / "tokens.json"

# Editor plugins that already hold a GitHub OAuth token
COPILOT_CONFIG_PATHS = (
    Path.home() / ".config" / "github-copilot" / "hosts.json",
    Path.home() / ".config" / "github-copilot" / "apps.json",
)

# ── Highlighting ────────────────────────────────────────────────────

HIGHLIGHT_THEME = "github-dark"

# ── Shell ───────────────────────────────────────────────────────────

DEFAULT_MODEL = os.environ.get("CHATTERM_MODEL", "g")
LOG_DIR = Path(os.environ.get("CHATTERM_LOG_DIR", Path.home() / ".chatterm"))
COMMAND_TIMEOUT = 60  # seconds
MAX_COMMAND_OUTPUT = 10000  # characters
