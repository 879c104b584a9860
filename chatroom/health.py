"""Standalone liveness endpoint."""
from __future__ import annotations

from typing import Dict

from fastapi import FastAPI


def create_health_app() -> FastAPI:
    app = FastAPI(title="Chatroom Liveness", docs_url=None, redoc_url=None, openapi_url=None)

    @app.get("/")
    async def liveness() -> Dict[str, str]:
        return {"status": "ok"}

    return app


__all__ = ["create_health_app"]
