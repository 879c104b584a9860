"""Admission check applied once per new real-time connection."""
from __future__ import annotations

import logging
from typing import Optional

from .errors import Unauthenticated
from .models import Identity, SessionUser
from .storage import ChatStore

logger = logging.getLogger("chatroom.admission")

REJECTION_MESSAGE = "Authentication invalid. Please reload and login."
REJECTION_CLOSE_CODE = 4401


def admit(
    store: ChatStore,
    user: Optional[SessionUser],
    *,
    asserted_email: Optional[str] = None,
    asserted_username: Optional[str] = None,
) -> Identity:
    """Resolve the sender identity for a new connection.

    The identity always comes from the verified session and the stored display
    name. Fields asserted by the client are optional, but when present they
    must match that identity exactly.
    """

    if user is None:
        raise Unauthenticated("no verified session")

    username = store.get_username(user.email)
    if not username:
        raise Unauthenticated(f"no display name registered for {user.email}")

    if asserted_email is not None and asserted_email != user.email:
        raise Unauthenticated("asserted email does not match the session")
    if asserted_username is not None and asserted_username != username:
        raise Unauthenticated("asserted username does not match the stored name")

    return Identity(email=user.email, username=username)


__all__ = ["REJECTION_CLOSE_CODE", "REJECTION_MESSAGE", "admit"]
