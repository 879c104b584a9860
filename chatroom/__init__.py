"""Authenticated real-time chat service."""

from __future__ import annotations

from typing import Any

from .storage import ChatStore, JSONFileStore, MemoryStore


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the chat web application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


def create_health_app():
    """Factory function for the standalone liveness application."""

    from .health import create_health_app as _create_health_app

    return _create_health_app()


__all__ = [
    "ChatStore",
    "JSONFileStore",
    "MemoryStore",
    "create_app",
    "create_health_app",
]
