"""Domain models for the chat service."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict


def now_ms() -> int:
    return int(time.time() * 1000)


class ChatMessage(BaseModel):
    """A single persisted chat message."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    sender: str
    email: str
    text: str
    ts: int

    def to_dict(self) -> Dict[str, object]:
        return self.model_dump()


@dataclass(frozen=True)
class SessionUser:
    """Identity verified by the OAuth provider and kept in the session."""

    email: str
    name: Optional[str] = None

    def to_session(self) -> Dict[str, Optional[str]]:
        return {"email": self.email, "name": self.name}


@dataclass(frozen=True)
class Identity:
    """An admitted real-time connection's sender identity."""

    email: str
    username: str


__all__ = ["ChatMessage", "Identity", "SessionUser", "now_ms"]
