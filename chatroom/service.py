"""FastAPI application serving the chat page, JSON API and real-time socket."""
from __future__ import annotations

import json
import logging
from contextlib import suppress
from functools import partial
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import anyio
from authlib.integrations.starlette_client import OAuthError
from fastapi import FastAPI, Request, WebSocket, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .admission import REJECTION_CLOSE_CODE, REJECTION_MESSAGE, admit
from .broadcast import BroadcastHub, BufferedSubscriber, WebSocketSubscriber
from .config import SESSION_COOKIE_NAME, SESSION_MAX_AGE, ChatSettings
from .errors import InvalidInput, Unauthenticated
from .health import create_health_app
from .identity import (
    SESSION_USER_KEY,
    build_oauth,
    get_current_user,
    session_user,
    session_user_from_token,
    set_username,
)
from .relay import MessageRelay
from .storage import ChatStore, JSONFileStore

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

logger = logging.getLogger("chatroom.service")


def _parse_client_frame(text: str) -> Tuple[Optional[str], Any]:
    """Split an inbound text frame into ``(event, data)``.

    Frames that are not JSON objects are treated as a raw ``sendMessage``.
    """

    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return "sendMessage", text
    if not isinstance(payload, dict):
        return "sendMessage", text
    event = payload.get("event")
    return (event if isinstance(event, str) else None), payload.get("data")


def create_app(
    *,
    settings: Optional[ChatSettings] = None,
    store: Optional[ChatStore] = None,
    oauth_client: Any = None,
    hub: Optional[BroadcastHub] = None,
) -> FastAPI:
    """Create the chat web application."""

    if settings is None:
        settings = ChatSettings.from_env()

    if store is None:
        store = JSONFileStore(settings.data_dir)
    store.initialize()

    if oauth_client is None:
        oauth_client = build_oauth(settings)

    if hub is None:
        hub = BroadcastHub()
    relay = MessageRelay(store, hub)

    app = FastAPI(
        title="Chatroom",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=settings.trusted_proxies)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=SESSION_COOKIE_NAME,
        https_only=settings.secure_cookies,
        same_site="lax",
        max_age=SESSION_MAX_AGE,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.hub = hub
    app.state.relay = relay
    app.state.oauth_client = oauth_client

    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))

    def _callback_url(request: Request) -> str:
        configured = settings.callback_url.strip()
        if configured.startswith(("http://", "https://")):
            return configured
        return str(request.url_for("auth_google_callback"))

    def _redirect_home() -> RedirectResponse:
        return RedirectResponse("/", status_code=status.HTTP_302_FOUND)

    @app.get("/", response_class=HTMLResponse, name="index")
    async def index(request: Request):
        return templates.TemplateResponse(request, "index.html", {})

    @app.get("/auth/google", name="auth_google")
    async def auth_google(request: Request):
        return await oauth_client.authorize_redirect(request, _callback_url(request))

    @app.get("/auth/google/callback", name="auth_google_callback")
    async def auth_google_callback(request: Request):
        try:
            token = await oauth_client.authorize_access_token(request)
        except OAuthError as exc:
            logger.warning("OAuth callback failed: %s", exc)
            return _redirect_home()

        user = session_user_from_token(token)
        if user is None:
            logger.warning("OAuth provider did not return a verified email address")
            return _redirect_home()

        request.session[SESSION_USER_KEY] = user.to_session()
        logger.info("Signed in %s", user.email)
        return _redirect_home()

    @app.get("/logout", name="logout")
    async def logout(request: Request):
        request.session.pop(SESSION_USER_KEY, None)
        return _redirect_home()

    @app.get("/api/user")
    async def read_current_user(request: Request) -> Dict[str, object]:
        return await anyio.to_thread.run_sync(get_current_user, request.session, store)

    @app.post("/api/set-username")
    async def update_username(request: Request):
        user = session_user(request.session)
        try:
            body = await request.json()
        except ValueError:
            body = None
        candidate = body.get("username") if isinstance(body, dict) else None

        try:
            stored = await anyio.to_thread.run_sync(
                set_username, store, user.email if user else None, candidate
            )
        except Unauthenticated as exc:
            return JSONResponse(
                {"ok": False, "error": str(exc)},
                status_code=status.HTTP_401_UNAUTHORIZED,
            )
        except InvalidInput as exc:
            return JSONResponse(
                {"ok": False, "error": str(exc)},
                status_code=status.HTTP_400_BAD_REQUEST,
            )
        return {"ok": True, "username": stored}

    @app.get("/api/messages")
    async def list_messages():
        messages = await relay.list_recent()
        return [message.to_dict() for message in messages]

    @app.websocket("/ws")
    async def chat_socket(websocket: WebSocket):
        user = session_user(websocket.session)
        await websocket.accept()
        connection = WebSocketSubscriber(websocket)

        try:
            identity = await anyio.to_thread.run_sync(
                partial(
                    admit,
                    store,
                    user,
                    asserted_email=websocket.query_params.get("email"),
                    asserted_username=websocket.query_params.get("username"),
                )
            )
        except Unauthenticated as exc:
            logger.info("Rejected chat connection: %s", exc)
            await connection.send("errorMsg", REJECTION_MESSAGE)
            with suppress(Exception):
                await websocket.close(code=REJECTION_CLOSE_CODE)
            return

        logger.info("Admitted chat connection for %s as %r", identity.email, identity.username)
        subscriber = BufferedSubscriber(connection)
        await hub.subscribe(subscriber)

        try:
            await relay.replay(subscriber)
            await relay.announce_join(identity, subscriber)
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                text = message.get("text")
                if text is None:
                    continue
                event, data = _parse_client_frame(text)
                if event == "sendMessage":
                    await relay.submit(identity, data)
        finally:
            with anyio.CancelScope(shield=True):
                await hub.unsubscribe(subscriber)
                await relay.announce_leave(identity, subscriber)
            logger.info("Chat connection for %s closed", identity.email)

    app.mount("/healthz", create_health_app())

    return app


__all__ = ["create_app"]
