"""Message relay: persists accepted messages and fans them out."""
from __future__ import annotations

import logging
from typing import List, Optional

import anyio

from .broadcast import BroadcastHub, BufferedSubscriber, Subscriber
from .models import ChatMessage, Identity, now_ms
from .storage import ChatStore

logger = logging.getLogger("chatroom.relay")


class MessageRelay:
    """Glue between the message store and the broadcast hub."""

    def __init__(self, store: ChatStore, hub: BroadcastHub) -> None:
        self._store = store
        self._hub = hub

    @property
    def store(self) -> ChatStore:
        return self._store

    @property
    def hub(self) -> BroadcastHub:
        return self._hub

    async def list_recent(self) -> List[ChatMessage]:
        return await anyio.to_thread.run_sync(self._store.list_messages)

    async def submit(self, identity: Identity, text: object) -> Optional[ChatMessage]:
        """Persist and broadcast ``text`` on behalf of ``identity``.

        Payloads that are missing, not strings, or blank are ignored.
        """

        if not text or not isinstance(text, str):
            return None
        cleaned = text.strip()
        if not cleaned:
            return None

        message = ChatMessage(
            sender=identity.username,
            email=identity.email,
            text=cleaned,
            ts=now_ms(),
        )
        await anyio.to_thread.run_sync(self._store.append_message, message)
        delivered = await self._hub.publish("message", message.to_dict())
        logger.debug("Relayed message from %s to %d subscriber(s)", identity.email, delivered)
        return message

    async def replay(self, subscriber: BufferedSubscriber) -> None:
        """Send the full log as one ``init`` event, then release held events.

        ``subscriber`` must already be subscribed to the hub so that messages
        accepted while the log is being read are not lost.
        """

        messages = await self.list_recent()
        await subscriber.release("init", [message.to_dict() for message in messages])

    async def announce_join(self, identity: Identity, subscriber: Subscriber) -> None:
        await self._announce(f"{identity.username} joined", exclude=subscriber)

    async def announce_leave(self, identity: Identity, subscriber: Subscriber) -> None:
        await self._announce(f"{identity.username} left", exclude=subscriber)

    async def _announce(self, text: str, *, exclude: Subscriber) -> None:
        await self._hub.publish("system", {"text": text, "ts": now_ms()}, exclude=exclude)


__all__ = ["MessageRelay"]
