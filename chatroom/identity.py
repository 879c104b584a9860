"""Identity gate: OAuth sign-in and display-name management."""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from authlib.integrations.starlette_client import OAuth

from .config import ChatSettings
from .errors import InvalidInput, Unauthenticated
from .models import SessionUser
from .storage import ChatStore

logger = logging.getLogger("chatroom.identity")

GOOGLE_DISCOVERY_URL = "https://accounts.google.com/.well-known/openid-configuration"
SESSION_USER_KEY = "user"
USERNAME_MIN_LENGTH = 2


def build_oauth(settings: ChatSettings):
    """Register the Google OpenID Connect client and return it."""

    oauth = OAuth()
    oauth.register(
        name="google",
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        server_metadata_url=GOOGLE_DISCOVERY_URL,
        client_kwargs={"scope": "openid email profile"},
    )
    return oauth.create_client("google")


def session_user_from_token(token: Mapping[str, Any]) -> Optional[SessionUser]:
    """Extract the verified email and name from an OAuth token response."""

    userinfo = token.get("userinfo") if isinstance(token, Mapping) else None
    if not isinstance(userinfo, Mapping):
        return None
    email = userinfo.get("email")
    if not isinstance(email, str) or not email:
        return None
    name = userinfo.get("name")
    return SessionUser(email=email, name=name if isinstance(name, str) else None)


def session_user(session: object) -> Optional[SessionUser]:
    if not isinstance(session, Mapping):
        return None
    raw = session.get(SESSION_USER_KEY)
    if not isinstance(raw, Mapping):
        return None
    email = raw.get("email")
    if not isinstance(email, str) or not email:
        return None
    name = raw.get("name")
    return SessionUser(email=email, name=name if isinstance(name, str) else None)


def get_current_user(session: object, store: ChatStore) -> Dict[str, object]:
    """Describe the caller bound to ``session``."""

    user = session_user(session)
    if user is None:
        return {"authenticated": False}
    return {
        "authenticated": True,
        "email": user.email,
        "name": user.name,
        "username": store.get_username(user.email),
    }


def set_username(store: ChatStore, email: Optional[str], candidate: object) -> str:
    """Store ``candidate`` as the display name for ``email``."""

    if not email:
        raise Unauthenticated("not authenticated")
    if not candidate or not isinstance(candidate, str) or len(candidate) < USERNAME_MIN_LENGTH:
        raise InvalidInput("invalid username")
    stored = store.set_username(email, candidate)
    logger.info("Display name for %s set to %r", email, stored)
    return stored


__all__ = [
    "SESSION_USER_KEY",
    "build_oauth",
    "get_current_user",
    "session_user",
    "session_user_from_token",
    "set_username",
]
