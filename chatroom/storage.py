"""Flat-file persistence for display names and the chat message log."""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import suppress
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from .config import MAX_MESSAGES
from .errors import StorageReadFailure
from .models import ChatMessage

logger = logging.getLogger("chatroom.storage")

USERS_FILENAME = "users.json"
MESSAGES_FILENAME = "messages.json"


def _ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path) -> object:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, ValueError) as exc:
        raise StorageReadFailure(f"Unable to read {path}: {exc}") from exc


def _write_json(path: Path, payload: object) -> None:
    _ensure_directory(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        with suppress(OSError):
            os.unlink(tmp_name)
        raise


def _parse_messages(raw: object) -> List[ChatMessage]:
    if not isinstance(raw, list):
        raise StorageReadFailure("Message log must be a JSON array")
    messages: List[ChatMessage] = []
    for item in raw:
        try:
            messages.append(ChatMessage.model_validate(item))
        except ValidationError:
            logger.warning("Skipping malformed message record: %r", item)
    return messages


def _trim(messages: List[ChatMessage], limit: int) -> List[ChatMessage]:
    if len(messages) > limit:
        return messages[len(messages) - limit:]
    return messages


class ChatStore(ABC):
    """Interface for the Identity Record mapping and the Message Log.

    Implementations must make :meth:`set_username` and :meth:`append_message`
    atomic with respect to every other call on the same store.
    """

    max_messages: int = MAX_MESSAGES

    def initialize(self) -> None:
        """Prepare backing storage. The default implementation does nothing."""

    @abstractmethod
    def get_username(self, email: str) -> Optional[str]:
        """Return the display name stored for ``email``, if any."""

    @abstractmethod
    def set_username(self, email: str, username: str) -> str:
        """Upsert the display name for ``email`` and return it."""

    @abstractmethod
    def list_messages(self) -> List[ChatMessage]:
        """Return the whole message log, oldest first."""

    @abstractmethod
    def append_message(self, message: ChatMessage) -> ChatMessage:
        """Append ``message``, dropping the oldest records beyond the bound."""


class MemoryStore(ChatStore):
    """In-process store, mainly useful for tests."""

    def __init__(self, *, max_messages: int = MAX_MESSAGES) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self.max_messages = max_messages
        self._users: Dict[str, str] = {}
        self._messages: List[ChatMessage] = []
        self._lock = threading.Lock()

    def get_username(self, email: str) -> Optional[str]:
        with self._lock:
            return self._users.get(email)

    def set_username(self, email: str, username: str) -> str:
        with self._lock:
            self._users[email] = username
        return username

    def list_messages(self) -> List[ChatMessage]:
        with self._lock:
            return list(self._messages)

    def append_message(self, message: ChatMessage) -> ChatMessage:
        with self._lock:
            self._messages = _trim([*self._messages, message], self.max_messages)
        return message


class JSONFileStore(ChatStore):
    """Keeps ``users.json`` and ``messages.json`` under a data directory.

    Every mutation rewrites the affected document in full. Writes go through a
    temporary file followed by :func:`os.replace`, and a lock serialises each
    read-modify-write cycle so concurrent submissions never lose updates.
    Unreadable or malformed documents are logged and treated as empty.
    """

    def __init__(self, data_dir: Path, *, max_messages: int = MAX_MESSAGES) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self._data_dir = Path(data_dir)
        self.max_messages = max_messages
        self._lock = threading.RLock()

    @property
    def users_path(self) -> Path:
        return self._data_dir / USERS_FILENAME

    @property
    def messages_path(self) -> Path:
        return self._data_dir / MESSAGES_FILENAME

    def initialize(self) -> None:
        """Create the data directory and empty documents if they are missing."""

        with self._lock:
            _ensure_directory(self._data_dir)
            if not self.users_path.exists():
                _write_json(self.users_path, {})
            if not self.messages_path.exists():
                _write_json(self.messages_path, [])

    # ------------------------------------------------------------------
    # Identity records
    # ------------------------------------------------------------------
    def _load_users(self) -> Dict[str, str]:
        if not self.users_path.exists():
            return {}
        try:
            raw = _read_json(self.users_path)
            if not isinstance(raw, dict):
                raise StorageReadFailure("User mapping must be a JSON object")
        except StorageReadFailure as exc:
            logger.warning("Treating user mapping as empty: %s", exc)
            return {}
        return {str(key): value for key, value in raw.items() if isinstance(value, str)}

    def get_username(self, email: str) -> Optional[str]:
        with self._lock:
            return self._load_users().get(email)

    def set_username(self, email: str, username: str) -> str:
        with self._lock:
            users = self._load_users()
            users[email] = username
            _write_json(self.users_path, users)
        return username

    # ------------------------------------------------------------------
    # Message log
    # ------------------------------------------------------------------
    def _load_messages(self) -> List[ChatMessage]:
        if not self.messages_path.exists():
            return []
        try:
            return _parse_messages(_read_json(self.messages_path))
        except StorageReadFailure as exc:
            logger.warning("Treating message log as empty: %s", exc)
            return []

    def list_messages(self) -> List[ChatMessage]:
        with self._lock:
            return self._load_messages()

    def append_message(self, message: ChatMessage) -> ChatMessage:
        with self._lock:
            messages = _trim([*self._load_messages(), message], self.max_messages)
            _write_json(self.messages_path, [item.to_dict() for item in messages])
        return message


__all__ = ["ChatStore", "JSONFileStore", "MemoryStore"]
