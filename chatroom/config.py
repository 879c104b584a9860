"""Configuration management for the chat service."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

logger = logging.getLogger("chatroom.config")

MAX_MESSAGES = 500

DEFAULT_SESSION_SECRET = "change_this_to_env_secret"
DEFAULT_GOOGLE_CLIENT_ID = "YOUR_GOOGLE_CLIENT_ID"
DEFAULT_GOOGLE_CLIENT_SECRET = "YOUR_GOOGLE_CLIENT_SECRET"
DEFAULT_CALLBACK_URL = "/auth/google/callback"
DEFAULT_PORT = 3000

SESSION_COOKIE_NAME = "chatroom_session"
SESSION_MAX_AGE = 60 * 60 * 24


def _env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def resolve_port(value: Optional[str]) -> int:
    if not value:
        return DEFAULT_PORT
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring invalid PORT value %r; using %s", value, DEFAULT_PORT)
        return DEFAULT_PORT


def _trusted_proxy_hosts(raw: Optional[str]) -> List[str] | str:
    if not raw:
        return "*"
    hosts = [item.strip() for item in raw.split(",") if item.strip()]
    return hosts or "*"


def resolve_data_dir(env_value: Optional[str]) -> Path:
    """Resolve the directory holding the persisted JSON documents."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "data").resolve(strict=False)


@dataclass(frozen=True)
class ChatSettings:
    """Runtime settings for the chat service."""

    session_secret: str
    google_client_id: str
    google_client_secret: str
    callback_url: str
    port: int
    data_dir: Path
    secure_cookies: bool = False
    trusted_proxies: List[str] | str = "*"

    @staticmethod
    def from_env(environ: Mapping[str, str] | None = None) -> "ChatSettings":
        """Build settings from environment variables, falling back to insecure defaults."""
        env = os.environ if environ is None else environ

        session_secret = env.get("SESSION_SECRET") or ""
        if not session_secret:
            logger.warning("SESSION_SECRET is not set; using an insecure built-in secret")
            session_secret = DEFAULT_SESSION_SECRET

        client_id = env.get("GOOGLE_CLIENT_ID") or ""
        client_secret = env.get("GOOGLE_CLIENT_SECRET") or ""
        if not client_id or not client_secret:
            logger.warning("Google OAuth credentials are not configured; sign-in will fail")

        return ChatSettings(
            session_secret=session_secret,
            google_client_id=client_id or DEFAULT_GOOGLE_CLIENT_ID,
            google_client_secret=client_secret or DEFAULT_GOOGLE_CLIENT_SECRET,
            callback_url=env.get("GOOGLE_CALLBACK_URL") or DEFAULT_CALLBACK_URL,
            port=resolve_port(env.get("PORT")),
            data_dir=resolve_data_dir(env.get("CHAT_DATA_DIR")),
            secure_cookies=_env_flag(env.get("CHAT_SESSION_SECURE"), False),
            trusted_proxies=_trusted_proxy_hosts(env.get("CHAT_TRUSTED_PROXIES")),
        )


__all__ = [
    "ChatSettings",
    "MAX_MESSAGES",
    "SESSION_COOKIE_NAME",
    "SESSION_MAX_AGE",
    "resolve_data_dir",
    "resolve_port",
]
