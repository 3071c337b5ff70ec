"""Tests for JSON-file conversation storage."""

import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from dwight.chat.types import ChatMessage
from dwight.errors import ConversationNotFound, PersistenceError
from dwight.storage.conversations import ConversationStore
from dwight.storage.schema import (
    Conversation,
    conversation_title,
    new_conversation_id,
)


@pytest.fixture
def store():
    """Create a temporary store for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield ConversationStore(Path(tmpdir) / "conversations")


def _conversation(conv_id: str, title: str = "Hello there", model: str = "llama3.2:3b", tags=None):
    now = datetime.now()
    return Conversation(
        id=conv_id,
        title=title,
        model=model,
        profile_name="General Assistant",
        created=now,
        last_modified=now,
        tags=tags or [],
        messages=[
            ChatMessage(role="user", content="hello"),
            ChatMessage(
                role="assistant",
                content="Hello!",
                duration=1.5,
                prompt_tokens=5,
                total_tokens=7,
            ),
        ],
    )


def test_save_and_load(store):
    """Test that a saved conversation loads back with the same content."""
    conv = _conversation("conv_1")
    store.save(conv)

    loaded = store.load("conv_1")

    assert loaded.id == "conv_1"
    assert loaded.title == "Hello there"
    assert loaded.profile_name == "General Assistant"
    assert [m.content for m in loaded.messages] == ["hello", "Hello!"]
    assert loaded.messages[1].duration == 1.5
    assert loaded.messages[1].response_tokens == 2


def test_save_refreshes_aggregates(store):
    conv = _conversation("conv_1")
    store.save(conv)

    loaded = store.load("conv_1")

    assert loaded.message_count == 2
    assert loaded.prompt_tokens == 5
    assert loaded.total_tokens == 7


def test_save_writes_indented_json(store):
    store.save(_conversation("conv_1"))

    text = (store.directory / "conv_1.json").read_text()
    assert text.startswith("{\n  ")


def test_save_updates_last_modified(store):
    conv = _conversation("conv_1")
    conv.last_modified = datetime(2020, 1, 1)

    store.save(conv)

    assert conv.last_modified > datetime(2020, 1, 1)


def test_load_missing(store):
    with pytest.raises(ConversationNotFound):
        store.load("conv_missing")


def test_load_corrupt_file(store):
    store.directory.mkdir(parents=True)
    (store.directory / "conv_bad.json").write_text("{not json")

    with pytest.raises(PersistenceError):
        store.load("conv_bad")


def test_invalid_id_rejected(store):
    with pytest.raises(ConversationNotFound):
        store.load("../etc/passwd")


def test_delete(store):
    store.save(_conversation("conv_1"))

    store.delete("conv_1")

    assert store.list() == []
    with pytest.raises(ConversationNotFound):
        store.delete("conv_1")


def test_list_missing_directory(store):
    assert store.list() == []


def test_list_sorted_newest_first(store):
    """Test that list() returns conversations by last_modified, descending."""
    for conv_id in ("conv_a", "conv_b", "conv_c"):
        store.save(_conversation(conv_id))

    # Rewrite timestamps directly so ordering does not depend on the clock
    base = datetime(2026, 1, 1)
    for offset, conv_id in enumerate(("conv_b", "conv_c", "conv_a")):
        conv = store.load(conv_id)
        conv.last_modified = base + timedelta(hours=offset)
        (store.directory / f"{conv_id}.json").write_text(conv.model_dump_json(indent=2))

    assert [meta.id for meta in store.list()] == ["conv_a", "conv_c", "conv_b"]


def test_list_skips_unreadable_files(store):
    store.save(_conversation("conv_good"))
    (store.directory / "conv_bad.json").write_text("{not json")
    (store.directory / "notes.txt").write_text("ignored")

    assert [meta.id for meta in store.list()] == ["conv_good"]


def test_list_skips_undecodable_files(store):
    store.save(_conversation("conv_good"))
    (store.directory / "conv_bad.json").write_bytes(b"\xff\xfe\x00garbage")

    assert [meta.id for meta in store.list()] == ["conv_good"]
    with pytest.raises(PersistenceError):
        store.load("conv_bad")


def test_list_returns_metadata_only(store):
    store.save(_conversation("conv_1"))

    meta = store.list()[0]

    assert meta.message_count == 2
    assert not hasattr(meta, "messages")


def test_search(store):
    store.save(_conversation("conv_1", title="Python decorators"))
    store.save(_conversation("conv_2", title="Dinner ideas", model="mistral:7b"))
    store.save(_conversation("conv_3", title="Trip plan", tags=["Travel"]))

    assert [m.id for m in store.search("python")] == ["conv_1"]
    assert [m.id for m in store.search("MISTRAL")] == ["conv_2"]
    assert [m.id for m in store.search("travel")] == ["conv_3"]
    assert store.search("nothing matches") == []


def test_empty_search_equals_list(store):
    store.save(_conversation("conv_1"))
    store.save(_conversation("conv_2"))

    assert store.search("") == store.list()


def test_export_dispatch(store):
    store.save(_conversation("conv_1"))

    assert store.export("conv_1", "markdown") == store.export_markdown("conv_1")
    assert store.export("conv_1", "json") == store.export_json("conv_1")
    assert store.export("conv_1", "text") == store.export_plain_text("conv_1")

    with pytest.raises(ValueError):
        store.export("conv_1", "pdf")


def test_conversation_ids_increase():
    ids = [new_conversation_id() for _ in range(5)]

    assert all(i.startswith("conv_") for i in ids)
    assert [int(i[5:]) for i in ids] == sorted({int(i[5:]) for i in ids})


def test_conversation_title():
    assert conversation_title([]) == "Untitled Conversation"
    assert conversation_title([ChatMessage(role="assistant", content="Hi")]) == (
        "Untitled Conversation"
    )
    assert conversation_title([ChatMessage(role="user", content="line one\nline two")]) == (
        "line one line two"
    )
    assert conversation_title([ChatMessage(role="user", content="a\rb")]) == "a b"
    assert conversation_title([ChatMessage(role="user", content="a\r\nb")]) == "a b"

    long_title = conversation_title([ChatMessage(role="user", content="x" * 80)])
    assert long_title == "x" * 50 + "..."
