import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from main import _parse_args, main


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "127.0.0.1", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 8080


def test_health_subcommand_has_its_own_port() -> None:
    args = _parse_args(["health"])
    assert args.command == "health"
    assert args.port == 8080


def test_init_data_creates_documents(tmp_path, monkeypatch, capsys) -> None:
    data_dir = tmp_path / "data"
    monkeypatch.setenv("CHAT_DATA_DIR", str(data_dir))

    main(["init-data"])

    assert (data_dir / "users.json").read_text(encoding="utf-8") == "{}"
    assert (data_dir / "messages.json").read_text(encoding="utf-8") == "[]"
    assert "Data initialisation complete." in capsys.readouterr().out


def test_serve_port_comes_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("PORT", "4100")
    assert _parse_args([]).port == 4100


def test_invalid_port_environment_falls_back_with_warning(monkeypatch, caplog) -> None:
    monkeypatch.setenv("PORT", "not-a-port")

    with caplog.at_level(logging.WARNING, logger="chatroom.config"):
        args = _parse_args(["serve"])

    assert args.port == 3000
    assert "Ignoring invalid PORT value" in caplog.text
