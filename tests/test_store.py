"""Tests for the in-memory/JSON document store."""

import threading
from types import SimpleNamespace

import pytest

from unscroll.errors import NotFoundError
from unscroll.store import DocumentStore, MemoryDocumentStore, Subscription, create_store


def test_create_assigns_id_and_returns_copy(store):
    doc = store.create("films", {"title": "Heat"})

    assert doc["id"]
    assert store.get("films", doc["id"]) == doc

    doc["title"] = "changed"
    assert store.get("films", doc["id"])["title"] == "Heat"


def test_get_missing_returns_none(store):
    assert store.get("films", "nope") is None


def test_set_and_update(store):
    store.set("films", "heat", {"title": "Heat", "year": 1995})
    updated = store.update("films", "heat", {"year": 1996})

    assert updated == {"id": "heat", "title": "Heat", "year": 1996}

    with pytest.raises(NotFoundError):
        store.update("films", "missing", {"year": 1})


def test_transact_merges_changes(store):
    store.set("films", "heat", {"title": "Heat", "count": 1})

    doc = store.transact("films", "heat", lambda current: {"count": current["count"] + 1})

    assert doc == {"id": "heat", "title": "Heat", "count": 2}


def test_transact_writes_nothing_when_fn_raises(store):
    store.set("films", "heat", {"title": "Heat", "count": 1})

    def boom(current):
        current["count"] = 99
        raise ValueError("no")

    with pytest.raises(ValueError):
        store.transact("films", "heat", boom)

    assert store.get("films", "heat")["count"] == 1


def test_transact_none_leaves_document_unchanged(store):
    store.set("films", "heat", {"title": "Heat"})
    assert store.transact("films", "heat", lambda current: None) == {"id": "heat", "title": "Heat"}


def test_concurrent_transactions_do_not_lose_updates(store):
    store.set("films", "heat", {"count": 0})

    def bump():
        for _ in range(50):
            store.transact("films", "heat", lambda current: {"count": current["count"] + 1})

    threads = [threading.Thread(target=bump) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.get("films", "heat")["count"] == 400


def test_delete_and_batch_delete(store):
    for name in ("a", "b", "c"):
        store.set("films", name, {"title": name})

    assert store.delete("films", "a") is True
    assert store.delete("films", "a") is False
    assert store.batch_delete("films", ["b", "c", "c", "zzz"]) == 2
    assert store.query("films") == []


def test_query_filters_and_orders(store):
    store.set("films", "1", {"user_id": "u1", "created_at": "2024-01-01"})
    store.set("films", "2", {"user_id": "u1", "created_at": "2024-03-01"})
    store.set("films", "3", {"user_id": "u2", "created_at": "2024-02-01"})
    store.set("films", "4", {"user_id": "u1"})

    docs = store.query("films", where=[("user_id", "u1")], order_by="created_at", descending=True)
    assert [d["id"] for d in docs] == ["2", "1", "4"]

    docs = store.query("films", order_by="created_at", limit=2)
    assert [d["id"] for d in docs] == ["1", "3"]


def test_subscribe_delivers_snapshots_until_closed(store):
    snapshots = []
    subscription = store.subscribe("films", snapshots.append, where=[("user_id", "u1")])

    store.set("films", "1", {"user_id": "u1"})
    store.set("films", "2", {"user_id": "u2"})
    subscription.close()
    store.set("films", "3", {"user_id": "u1"})

    assert [len(s) for s in snapshots] == [0, 1, 1]
    assert not subscription.active
    subscription.close()


def test_subscription_context_manager():
    calls = []
    with Subscription(lambda: calls.append("closed")) as subscription:
        assert subscription.active
    assert calls == ["closed"]


def test_failing_listener_does_not_break_writes(store):
    def listener(docs):
        if docs:
            raise RuntimeError("listener bug")

    store.subscribe("films", listener)
    store.set("films", "1", {"title": "Heat"})

    assert store.get("films", "1") == {"id": "1", "title": "Heat"}


def test_json_persistence(tmp_path):
    path = tmp_path / "data" / "store.json"
    first = MemoryDocumentStore(path=path)
    doc = first.create("films", {"title": "Heat"})

    assert path.exists()
    assert MemoryDocumentStore(path=path).get("films", doc["id"]) == doc


def test_create_store_backends(tmp_path):
    memory = create_store(SimpleNamespace(store_backend="memory"))
    assert isinstance(memory, MemoryDocumentStore)
    assert memory.path is None

    json_store = create_store(SimpleNamespace(store_backend="json", store_path=tmp_path / "s.json"))
    assert json_store.path == tmp_path / "s.json"

    with pytest.raises(ValueError):
        create_store(SimpleNamespace(store_backend="redis"))


def _failing_save(*args):
    raise OSError("disk full")


def test_failed_save_leaves_previous_state(tmp_path, monkeypatch):
    store = MemoryDocumentStore(path=tmp_path / "store.json")
    store.set("films", "heat", {"title": "Heat", "rewatch_dates": ["2021-01-01"]})
    monkeypatch.setattr(store, "_save", _failing_save)

    with pytest.raises(OSError):
        store.transact("films", "heat", lambda current: {"rewatch_dates": [*current["rewatch_dates"], "2024-05-01"]})
    with pytest.raises(OSError):
        store.update("films", "heat", {"title": "changed"})
    with pytest.raises(OSError):
        store.create("films", {"title": "Ronin"})
    with pytest.raises(OSError):
        store.delete("films", "heat")
    with pytest.raises(OSError):
        store.batch_delete("films", ["heat"])

    assert store.query("films") == [{"id": "heat", "title": "Heat", "rewatch_dates": ["2021-01-01"]}]


def test_failed_save_does_not_notify_listeners(tmp_path, monkeypatch):
    store = MemoryDocumentStore(path=tmp_path / "store.json")
    snapshots = []
    store.subscribe("films", snapshots.append)
    monkeypatch.setattr(store, "_save", _failing_save)

    with pytest.raises(OSError):
        store.set("films", "heat", {"title": "Heat"})

    assert snapshots == [[]]


def test_document_store_is_abstract():
    with pytest.raises(TypeError):
        DocumentStore()

    class Partial(DocumentStore):
        def get(self, collection, doc_id):
            return None

    with pytest.raises(TypeError):
        Partial()
