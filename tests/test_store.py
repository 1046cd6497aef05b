"""Tests for the session store and its storage backends."""
import json

import pytest

from companion.api.errors import PersistenceError
from companion.session.models import AudioMessage, ImageMessage, Role, TextMessage
from companion.session.storage import InMemoryStorage, KeyValueStorage, SQLiteStorage
from companion.session.store import STORAGE_KEY, SessionStore


class BrokenStorage(KeyValueStorage):
    def get(self, key):
        raise PersistenceError("disk on fire")

    def set(self, key, value):
        raise PersistenceError("disk on fire")


class TestThreads:
    def test_starts_with_one_active_thread(self, store):
        assert len(store) == 1
        assert store.active_thread.name == "Session 1"
        assert store.active_thread.messages == ()

    def test_create_does_not_select(self, store):
        first = store.active_thread_id
        thread = store.create_thread("Chat 2")

        assert thread.id in store
        assert thread.messages == ()
        assert store.active_thread_id == first

    def test_create_default_name(self, store):
        assert store.create_thread().name == "New chat"

    def test_select_unknown_thread_is_ignored(self, store):
        active = store.active_thread_id
        assert store.select_thread("nope") is False
        assert store.active_thread_id == active

    def test_cannot_delete_last_thread(self, store):
        only = store.active_thread_id
        assert store.delete_thread(only) is False
        assert len(store) == 1

    def test_delete_active_falls_to_most_recent(self, store):
        first = store.active_thread
        second = store.create_thread("Chat 2")
        third = store.create_thread("Chat 3")
        store.select_thread(second.id)

        assert store.delete_thread(second.id) is True
        assert store.active_thread_id == third.id
        assert [t.id for t in store.threads] == [first.id, third.id]

    def test_delete_inactive_keeps_active(self, store):
        active = store.active_thread_id
        other = store.create_thread()
        store.delete_thread(other.id)
        assert store.active_thread_id == active


class TestAppend:
    def test_append_is_ordered_and_monotonic(self, store):
        thread_id = store.active_thread_id
        lengths = [len(store.get(thread_id).messages)]

        for batch in (
            [TextMessage(role=Role.USER, content="hello")],
            [TextMessage(role=Role.ASSISTANT, content="hi"), ImageMessage(image_data="B")],
            [],
        ):
            store.append_messages(thread_id, batch)
            lengths.append(len(store.get(thread_id).messages))

        assert lengths == sorted(lengths)
        contents = [getattr(m, "content", None) for m in store.get(thread_id).messages]
        assert contents == ["hello", "hi", None]

    def test_append_replaces_thread_object(self, store):
        before = store.active_thread
        store.append_messages(before.id, [TextMessage(role=Role.USER, content="x")])

        assert before.messages == ()
        assert len(store.active_thread.messages) == 1

    def test_append_to_unknown_thread_raises(self, store):
        with pytest.raises(KeyError):
            store.append_messages("missing", [])


class TestPersistence:
    def test_snapshot_format(self, store):
        thread_id = store.active_thread_id
        store.append_messages(thread_id, [
            TextMessage(role=Role.USER, content="hello"),
            ImageMessage(image_data="B", description="a fox"),
            AudioMessage(audio_data="A", mime_type="audio/wav", transcript="ok"),
        ])

        snap = store.snapshot()

        assert snap["activeThreadId"] == thread_id
        messages = snap["threads"][0]["messages"]
        assert [m["type"] for m in messages] == ["text", "image", "audio"]
        assert messages[1]["imageBase64"] == "B"
        assert messages[1]["description"] == "a fox"
        assert messages[2]["mimeType"] == "audio/wav"
        assert messages[2]["text"] == "ok"

    def test_round_trip_through_storage(self, storage, store):
        thread = store.create_thread("Chat 2")
        store.select_thread(thread.id)
        store.append_messages(thread.id, [TextMessage(role=Role.USER, content="hello")])

        restored = SessionStore(storage=storage)
        assert restored.load() is True

        assert restored.active_thread_id == thread.id
        assert [t.name for t in restored.threads] == ["Session 1", "Chat 2"]
        assert restored.active_thread.messages[0].content == "hello"

    def test_stale_active_id_falls_back_to_first(self):
        store = SessionStore()
        ok = store.restore({
            "activeThreadId": "gone",
            "threads": [
                {"id": "a", "name": "A", "createdAt": 1, "messages": []},
                {"id": "b", "name": "B", "createdAt": 2, "messages": []},
            ],
        })

        assert ok is True
        assert store.active_thread_id == "a"

    def test_empty_or_malformed_snapshot_is_ignored(self):
        store = SessionStore()
        original = store.active_thread_id

        assert store.restore({"activeThreadId": "x", "threads": []}) is False
        assert store.restore({"threads": [{"name": "no id"}]}) is False
        assert store.restore("garbage") is False
        assert store.active_thread_id == original

    def test_unparseable_storage_is_ignored(self, storage):
        storage.set(STORAGE_KEY, "{not json")
        store = SessionStore(storage=storage)

        assert store.load() is False
        assert len(store) == 1

    def test_storage_failures_are_swallowed(self):
        store = SessionStore(storage=BrokenStorage())
        assert store.load() is False

        thread = store.create_thread()
        store.append_messages(thread.id, [TextMessage(role=Role.USER, content="still works")])
        assert len(store.get(thread.id).messages) == 1

    def test_nothing_saved_before_hydration(self, storage):
        store = SessionStore(storage=storage)
        store.create_thread()
        assert storage.get(STORAGE_KEY) is None

        store.load()
        store.create_thread()
        assert len(json.loads(storage.get(STORAGE_KEY))["threads"]) == 3

    def test_custom_storage_key(self, storage):
        store = SessionStore(storage=storage, storage_key="other")
        store.load()
        store.create_thread()
        assert storage.get("other") is not None
        assert storage.get(STORAGE_KEY) is None


class TestSQLiteStorage:
    def test_set_get_overwrite(self, tmp_path):
        db = SQLiteStorage(tmp_path / "kv.db")
        assert db.get("k") is None

        db.set("k", "one")
        db.set("k", "two")
        assert db.get("k") == "two"
        db.close()

    def test_store_survives_reopen(self, tmp_path):
        path = tmp_path / "kv.db"
        first = SessionStore(storage=SQLiteStorage(path))
        first.load()
        first.append_messages(first.active_thread_id, [TextMessage(role=Role.USER, content="hi")])
        first.storage.close()

        second = SessionStore(storage=SQLiteStorage(path))
        assert second.load() is True
        assert second.active_thread.messages[0].content == "hi"
        second.storage.close()

    def test_closed_connection_raises_persistence_error(self, tmp_path):
        db = SQLiteStorage(tmp_path / "kv.db")
        db.close()
        with pytest.raises(PersistenceError):
            db.get("k")


def test_in_memory_storage():
    storage = InMemoryStorage()
    storage.set("a", "1")
    assert storage.get("a") == "1"
    assert storage.get("b") is None
