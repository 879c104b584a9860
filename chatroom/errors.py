"""Error taxonomy shared by the chat service components."""
from __future__ import annotations


class ChatError(Exception):
    """Base class for chat service failures."""


class Unauthenticated(ChatError):
    """Raised when no verified identity is available or admission fails."""


class InvalidInput(ChatError):
    """Raised when a caller supplies a malformed username or payload."""


class StorageReadFailure(ChatError):
    """Raised when a persisted JSON document cannot be read or parsed."""


__all__ = ["ChatError", "InvalidInput", "StorageReadFailure", "Unauthenticated"]
