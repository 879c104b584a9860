"""Publish/subscribe fan-out for real-time chat connections."""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from contextlib import suppress
from typing import Any, Iterable, List, Optional, Tuple

from fastapi import WebSocket
from starlette.websockets import WebSocketState


async def send_websocket_json(websocket: WebSocket, payload: dict[str, Any]) -> None:
    """Safely send a JSON payload to a websocket client."""

    if websocket.client_state == WebSocketState.DISCONNECTED:
        return
    if websocket.application_state == WebSocketState.DISCONNECTED:
        return
    with suppress(Exception):
        await websocket.send_json(payload)


class Subscriber(ABC):
    """Receives named events published through a :class:`BroadcastHub`."""

    @abstractmethod
    async def send(self, event: str, data: Any) -> None:
        """Deliver one event to this subscriber."""


class WebSocketSubscriber(Subscriber):
    """Frames events as ``{"event": ..., "data": ...}`` JSON messages."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    async def send(self, event: str, data: Any) -> None:
        await send_websocket_json(self.websocket, {"event": event, "data": data})


class BufferedSubscriber(Subscriber):
    """Holds published events until a history snapshot has been delivered.

    Subscribe this wrapper to the hub before reading the history, then call
    :meth:`release`. Events published in between are forwarded after the
    snapshot; ``message`` events already present in it are dropped.
    """

    def __init__(self, inner: Subscriber) -> None:
        self.inner = inner
        self._pending: List[Tuple[str, Any]] = []
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    async def send(self, event: str, data: Any) -> None:
        if not self._released:
            self._pending.append((event, data))
            return
        await self.inner.send(event, data)

    async def release(self, event: str, snapshot: List[Any]) -> None:
        if self._released:
            raise RuntimeError("Subscriber has already been released")
        await self.inner.send(event, snapshot)
        while self._pending:
            pending_event, data = self._pending.pop(0)
            if pending_event == "message" and data in snapshot:
                continue
            await self.inner.send(pending_event, data)
        self._released = True


class BroadcastHub:
    """A single broadcast domain shared by every connected subscriber."""

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []
        self._lock = asyncio.Lock()

    @property
    def subscribers(self) -> int:
        return len(self._subscribers)

    async def subscribe(self, subscriber: Subscriber) -> None:
        async with self._lock:
            if subscriber not in self._subscribers:
                self._subscribers.append(subscriber)

    async def unsubscribe(self, subscriber: Subscriber) -> None:
        async with self._lock:
            with suppress(ValueError):
                self._subscribers.remove(subscriber)

    async def publish(
        self,
        event: str,
        data: Any,
        *,
        exclude: Optional[Subscriber] = None,
    ) -> int:
        """Deliver ``event`` to every subscriber except ``exclude``.

        Returns the number of subscribers the event was handed to.
        """

        async with self._lock:
            targets: Iterable[Subscriber] = [
                subscriber for subscriber in self._subscribers if subscriber is not exclude
            ]
        delivered = 0
        for subscriber in targets:
            await subscriber.send(event, data)
            delivered += 1
        return delivered


__all__ = ["BroadcastHub", "BufferedSubscriber", "Subscriber", "WebSocketSubscriber", "send_websocket_json"]
