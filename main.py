"""Command-line interface for the chat service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence


def _running_in_virtualenv() -> bool:
    """Return ``True`` when the current interpreter is executing inside a venv."""

    base_prefix = getattr(sys, "base_prefix", sys.prefix)
    return sys.prefix != base_prefix


def _bootstrap_virtualenv() -> None:
    """Re-exec the script using the bundled virtualenv interpreter when available."""

    if _running_in_virtualenv():
        return

    root = Path(__file__).resolve().parent
    venv_dir = root / ".venv"
    if not venv_dir.is_dir():
        return

    candidates = (
        venv_dir / "bin" / "python",
        venv_dir / "bin" / "python3",
        venv_dir / "Scripts" / "python.exe",
        venv_dir / "Scripts" / "python",
    )

    script = str(Path(__file__).resolve())
    for candidate in candidates:
        if candidate.exists():
            os.execv(str(candidate), [str(candidate), script, *sys.argv[1:]])


if __name__ == "__main__":
    _bootstrap_virtualenv()

from chatroom.config import ChatSettings, resolve_port
from chatroom.storage import JSONFileStore

logger = logging.getLogger("chatroom.main")

_DEFAULT_HEALTH_PORT = 8080


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Chatroom service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-data", help="Create the data directory and empty JSON documents")

    serve_parser = subparsers.add_parser("serve", help="Start the chat service")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the service")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=resolve_port(os.getenv("PORT")),
        help="Port for the chat service (default: $PORT or 3000)",
    )

    health_parser = subparsers.add_parser("health", help="Start the standalone liveness endpoint")
    health_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the endpoint")
    health_parser.add_argument(
        "--port",
        type=int,
        default=_DEFAULT_HEALTH_PORT,
        help=f"Port for the liveness endpoint (default: {_DEFAULT_HEALTH_PORT})",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "health", "init-data"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_store(settings: ChatSettings) -> JSONFileStore:
    store = JSONFileStore(settings.data_dir)
    store.initialize()
    logger.info("Chat data directory initialised at %s", settings.data_dir)
    return store


def _serve(*, settings: ChatSettings, store: JSONFileStore, host: str, port: int) -> None:
    from chatroom.service import create_app
    import uvicorn

    logger.info("Starting chat service on http://%s:%s", host, port)
    app = create_app(settings=settings, store=store)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _serve_health(*, host: str, port: int) -> None:
    from chatroom.health import create_health_app
    import uvicorn

    logger.info("Starting liveness endpoint on http://%s:%s", host, port)
    uvicorn.run(create_health_app(), host=host, port=port, log_level="info")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)

    if args.command == "health":
        _serve_health(host=args.host, port=args.port)
        return

    settings = ChatSettings.from_env()
    store = _initialise_store(settings)

    if args.command == "serve":
        _serve(settings=settings, store=store, host=args.host, port=args.port)
    elif args.command == "init-data":
        print("Data initialisation complete.")


if __name__ == "__main__":
    main()
