from __future__ import annotations

import json
import sys
import threading
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from chatroom.models import ChatMessage
from chatroom.storage import JSONFileStore, MemoryStore


def _message(index: int, *, sender: str = "alice", email: str = "a@x.com") -> ChatMessage:
    return ChatMessage(sender=sender, email=email, text=f"message {index}", ts=1_700_000_000_000 + index)


@pytest.fixture()
def store(tmp_path: Path) -> JSONFileStore:
    store = JSONFileStore(tmp_path / "data")
    store.initialize()
    return store


def test_initialize_creates_empty_documents(store: JSONFileStore) -> None:
    assert json.loads(store.users_path.read_text(encoding="utf-8")) == {}
    assert json.loads(store.messages_path.read_text(encoding="utf-8")) == []


def test_initialize_preserves_existing_documents(tmp_path: Path) -> None:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "users.json").write_text(json.dumps({"a@x.com": "alice"}), encoding="utf-8")

    store = JSONFileStore(data_dir)
    store.initialize()

    assert store.get_username("a@x.com") == "alice"


def test_set_username_upserts_and_persists(store: JSONFileStore) -> None:
    store.set_username("a@x.com", "alice")
    store.set_username("b@x.com", "alice")
    store.set_username("a@x.com", "alicia")

    assert store.get_username("a@x.com") == "alicia"
    assert store.get_username("b@x.com") == "alice"
    assert store.get_username("missing@x.com") is None
    on_disk = json.loads(store.users_path.read_text(encoding="utf-8"))
    assert on_disk == {"a@x.com": "alicia", "b@x.com": "alice"}


def test_append_message_persists_in_order(store: JSONFileStore) -> None:
    for index in range(3):
        store.append_message(_message(index))

    reloaded = JSONFileStore(store.messages_path.parent)
    assert [message.text for message in reloaded.list_messages()] == [
        "message 0",
        "message 1",
        "message 2",
    ]
    raw = json.loads(store.messages_path.read_text(encoding="utf-8"))
    assert raw[0] == {"sender": "alice", "email": "a@x.com", "text": "message 0", "ts": 1_700_000_000_000}


def test_message_log_keeps_most_recent_records(tmp_path: Path) -> None:
    store = JSONFileStore(tmp_path, max_messages=5)
    store.initialize()

    for index in range(12):
        store.append_message(_message(index))

    messages = store.list_messages()
    assert len(messages) == 5
    assert [message.text for message in messages] == [f"message {i}" for i in range(7, 12)]


def test_default_retention_is_five_hundred(tmp_path: Path) -> None:
    store = JSONFileStore(tmp_path)
    store.initialize()

    for index in range(505):
        store.append_message(_message(index))

    messages = store.list_messages()
    assert len(messages) == 500
    assert messages[0].text == "message 5"
    assert messages[-1].text == "message 504"


def test_malformed_documents_are_treated_as_empty(store: JSONFileStore) -> None:
    store.users_path.write_text("{not json", encoding="utf-8")
    store.messages_path.write_text('{"unexpected": "object"}', encoding="utf-8")

    assert store.get_username("a@x.com") is None
    assert store.list_messages() == []

    store.append_message(_message(1))
    assert [message.text for message in store.list_messages()] == ["message 1"]


def test_malformed_message_entries_are_skipped(store: JSONFileStore) -> None:
    store.messages_path.write_text(
        json.dumps(
            [
                {"sender": "alice", "email": "a@x.com", "text": "kept", "ts": 1},
                {"sender": "bob"},
                "garbage",
            ]
        ),
        encoding="utf-8",
    )

    assert [message.text for message in store.list_messages()] == ["kept"]


def test_missing_documents_read_as_empty(tmp_path: Path) -> None:
    store = JSONFileStore(tmp_path / "never-initialised")

    assert store.get_username("a@x.com") is None
    assert store.list_messages() == []


def test_concurrent_appends_do_not_lose_updates(store: JSONFileStore) -> None:
    def worker(offset: int) -> None:
        for index in range(20):
            store.append_message(_message(offset * 100 + index))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(store.list_messages()) == 80


def test_memory_store_matches_file_semantics() -> None:
    store = MemoryStore(max_messages=2)
    store.set_username("a@x.com", "alice")
    for index in range(3):
        store.append_message(_message(index))

    assert store.get_username("a@x.com") == "alice"
    assert [message.text for message in store.list_messages()] == ["message 1", "message 2"]


def test_retention_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        JSONFileStore(tmp_path, max_messages=0)
    with pytest.raises(ValueError):
        MemoryStore(max_messages=0)


def test_partial_store_cannot_be_created() -> None:
    from chatroom.storage import ChatStore

    class ReadOnlyStore(ChatStore):
        def get_username(self, email):
            return None

        def list_messages(self):
            return []

    with pytest.raises(TypeError):
        ReadOnlyStore()
