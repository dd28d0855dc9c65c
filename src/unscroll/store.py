"""Document store backends (in-memory/JSON file and Firestore)."""

import copy
import itertools
import json
import logging
import os
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

from .errors import NotFoundError

logger = logging.getLogger(__name__)

Where = list[tuple[str, object]]
SnapshotCallback = Callable[[list[dict]], None]
TransactFn = Callable[[Optional[dict]], Optional[dict]]

# Firestore rejects write batches above this size
FIRESTORE_BATCH_LIMIT = 500


class Subscription:
    """Handle for a live query; close it to stop receiving snapshots."""

    def __init__(self, unsubscribe: Callable[[], None]):
        self._unsubscribe = unsubscribe
        self._closed = False

    @property
    def active(self) -> bool:
        return not self._closed

    def close(self) -> None:
        """Stop the subscription (idempotent)."""
        if not self._closed:
            self._closed = True
            self._unsubscribe()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class DocumentStore(ABC):
    """Interface every backend implements.

    Documents are plain dicts carrying their own ``id``.
    """

    @abstractmethod
    def create(self, collection: str, data: dict) -> dict:
        """Insert a document with a store-assigned id and return it."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        pass

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: dict) -> None:
        """Create or replace a document."""

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: dict) -> dict:
        """Merge ``fields`` into an existing document (NotFoundError if missing)."""

    @abstractmethod
    def transact(self, collection: str, doc_id: str, fn: TransactFn) -> Optional[dict]:
        """Atomic read-modify-write of one document.

        ``fn`` receives the current document (or None) and returns the field
        changes to write. If ``fn`` raises, nothing is written. Returns the
        document as written.
        """

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        pass

    @abstractmethod
    def batch_delete(self, collection: str, doc_ids: list[str]) -> int:
        """Delete many documents, all-or-nothing per batch; returns how many existed."""

    @abstractmethod
    def query(
        self,
        collection: str,
        where: Optional[Where] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """Equality-filtered, optionally sorted query."""

    @abstractmethod
    def subscribe(
        self,
        collection: str,
        callback: SnapshotCallback,
        where: Optional[Where] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Subscription:
        """Deliver the full matching set now and after every change."""


def _matches(doc: dict, where: Optional[Where]) -> bool:
    return all(doc.get(field) == value for field, value in (where or []))


def _sorted(docs: list[dict], order_by: Optional[str], descending: bool) -> list[dict]:
    if not order_by:
        return docs
    present = [d for d in docs if d.get(order_by) is not None]
    missing = [d for d in docs if d.get(order_by) is None]
    return sorted(present, key=lambda d: d[order_by], reverse=descending) + missing


class MemoryDocumentStore(DocumentStore):
    """Thread-safe in-process store, optionally persisted to a JSON file.

    Writes are copy-on-write: a mutation builds a new collection dict, saves
    it, and only then becomes visible. A failed save leaves the previous
    state in place.
    """

    def __init__(self, path: Optional[Path] = None):
        """Initialize the store, loading ``path`` if it exists."""
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._collections: dict[str, dict[str, dict]] = {}
        self._listeners: dict[int, tuple] = {}
        self._listener_ids = itertools.count()
        if self.path:
            self._load()

    def _load(self) -> None:
        """Load collections from the JSON file."""
        if not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                self._collections = json.load(f) or {}
            logger.info(f"Loaded store from {self.path}")
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load store from {self.path}: {e}")
            raise

    def _save(self, collections: dict) -> None:
        """Write ``collections`` to the JSON file (replace-on-write)."""
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(collections, f, indent=4)
        os.replace(tmp_path, self.path)

    def _collection(self, collection: str) -> dict[str, dict]:
        return self._collections.get(collection, {})

    def _select(self, collection, where, order_by, descending, limit=None) -> list[dict]:
        docs = [d for d in self._collection(collection).values() if _matches(d, where)]
        docs = _sorted(docs, order_by, descending)
        if limit is not None:
            docs = docs[:limit]
        return copy.deepcopy(docs)

    def _commit(self, collection: str, docs: dict[str, dict]) -> None:
        """Persist ``docs`` as the new ``collection``, then notify listeners."""
        collections = {**self._collections, collection: docs}
        self._save(collections)
        self._collections = collections

        pending = []
        for listener_id, (coll, callback, where, order_by, descending) in list(self._listeners.items()):
            if coll == collection:
                pending.append((listener_id, callback, self._select(coll, where, order_by, descending)))
        for listener_id, callback, snapshot in pending:
            try:
                callback(snapshot)
            except Exception:
                logger.exception(f"Snapshot listener {listener_id} failed")

    def create(self, collection: str, data: dict) -> dict:
        with self._lock:
            doc_id = uuid.uuid4().hex
            doc = {**copy.deepcopy(data), "id": doc_id}
            self._commit(collection, {**self._collection(collection), doc_id: doc})
            return copy.deepcopy(doc)

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        with self._lock:
            doc = {**copy.deepcopy(data), "id": doc_id}
            self._commit(collection, {**self._collection(collection), doc_id: doc})

    def update(self, collection: str, doc_id: str, fields: dict) -> dict:
        with self._lock:
            current = self._collection(collection).get(doc_id)
            if current is None:
                raise NotFoundError(f"Document {collection}/{doc_id} not found")
            doc = {**current, **copy.deepcopy(fields)}
            self._commit(collection, {**self._collection(collection), doc_id: doc})
            return copy.deepcopy(doc)

    def transact(self, collection: str, doc_id: str, fn: TransactFn) -> Optional[dict]:
        with self._lock:
            current = copy.deepcopy(self._collection(collection).get(doc_id))
            changes = fn(copy.deepcopy(current))
            if changes is None:
                return current
            doc = {**(current or {"id": doc_id}), **copy.deepcopy(changes)}
            self._commit(collection, {**self._collection(collection), doc_id: doc})
            return copy.deepcopy(doc)

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            docs = dict(self._collection(collection))
            existed = docs.pop(doc_id, None) is not None
            if existed:
                self._commit(collection, docs)
            return existed

    def batch_delete(self, collection: str, doc_ids: list[str]) -> int:
        with self._lock:
            docs = dict(self._collection(collection))
            deleted = 0
            for doc_id in set(doc_ids):
                if docs.pop(doc_id, None) is not None:
                    deleted += 1
            if deleted:
                self._commit(collection, docs)
            return deleted

    def query(self, collection, where=None, order_by=None, descending=False, limit=None) -> list[dict]:
        with self._lock:
            return self._select(collection, where, order_by, descending, limit)

    def subscribe(self, collection, callback, where=None, order_by=None, descending=False) -> Subscription:
        with self._lock:
            listener_id = next(self._listener_ids)
            self._listeners[listener_id] = (collection, callback, where, order_by, descending)
            snapshot = self._select(collection, where, order_by, descending)

        def unsubscribe():
            with self._lock:
                self._listeners.pop(listener_id, None)

        callback(snapshot)
        return Subscription(unsubscribe)


class FirestoreDocumentStore(DocumentStore):
    """Backend for Google Cloud Firestore (requires the ``firestore`` extra).

    ``firestore`` is the client library module; it supplies ``Client``,
    ``Query``, ``FieldFilter`` and ``transactional``. It defaults to
    ``google.cloud.firestore``.
    """

    def __init__(self, client=None, project_id: Optional[str] = None, firestore=None):
        """Initialize with an existing client or create one for ``project_id``."""
        if firestore is None:
            from google.cloud import firestore

        self._firestore = firestore
        self._field_filter = firestore.FieldFilter
        self.client = client or firestore.Client(project=project_id)

    @staticmethod
    def _to_dict(snapshot) -> dict:
        return {**(snapshot.to_dict() or {}), "id": snapshot.id}

    def _ref(self, collection: str, doc_id: str):
        return self.client.collection(collection).document(doc_id)

    def _build_query(self, collection, where, order_by, descending, limit=None):
        query = self.client.collection(collection)
        for field, value in where or []:
            query = query.where(filter=self._field_filter(field, "==", value))
        if order_by:
            direction = self._firestore.Query.DESCENDING if descending else self._firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit is not None:
            query = query.limit(limit)
        return query

    def create(self, collection: str, data: dict) -> dict:
        ref = self.client.collection(collection).document()
        doc = {**data, "id": ref.id}
        ref.set(doc)
        return doc

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        snapshot = self._ref(collection, doc_id).get()
        return self._to_dict(snapshot) if snapshot.exists else None

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        self._ref(collection, doc_id).set({**data, "id": doc_id})

    def update(self, collection: str, doc_id: str, fields: dict) -> dict:
        from google.api_core.exceptions import NotFound

        try:
            self._ref(collection, doc_id).update(fields)
        except NotFound:
            raise NotFoundError(f"Document {collection}/{doc_id} not found")
        return self.get(collection, doc_id)

    def transact(self, collection: str, doc_id: str, fn: TransactFn) -> Optional[dict]:
        ref = self._ref(collection, doc_id)

        # Firestore may re-run this on contention; fn must stay side-effect free.
        @self._firestore.transactional
        def run(transaction):
            snapshot = ref.get(transaction=transaction)
            current = self._to_dict(snapshot) if snapshot.exists else None
            changes = fn(copy.deepcopy(current))
            if changes is None:
                return current
            if current is None:
                doc = {"id": doc_id, **changes}
                transaction.set(ref, doc)
                return doc
            transaction.update(ref, changes)
            return {**current, **changes}

        return run(self.client.transaction())

    def delete(self, collection: str, doc_id: str) -> bool:
        ref = self._ref(collection, doc_id)
        if not ref.get().exists:
            return False
        ref.delete()
        return True

    def batch_delete(self, collection: str, doc_ids: list[str]) -> int:
        unique_ids = list(dict.fromkeys(doc_ids))
        deleted = 0
        for start in range(0, len(unique_ids), FIRESTORE_BATCH_LIMIT):
            refs = [self._ref(collection, doc_id) for doc_id in unique_ids[start:start + FIRESTORE_BATCH_LIMIT]]
            existing = [snapshot.reference for snapshot in self.client.get_all(refs) if snapshot.exists]
            if not existing:
                continue
            batch = self.client.batch()
            for ref in existing:
                batch.delete(ref)
            batch.commit()
            deleted += len(existing)
        logger.debug(f"Batch deleted {deleted} of {len(unique_ids)} documents from {collection}")
        return deleted

    def query(self, collection, where=None, order_by=None, descending=False, limit=None) -> list[dict]:
        query = self._build_query(collection, where, order_by, descending, limit)
        return [self._to_dict(snapshot) for snapshot in query.stream()]

    def subscribe(self, collection, callback, where=None, order_by=None, descending=False) -> Subscription:
        query = self._build_query(collection, where, order_by, descending)

        def on_snapshot(snapshots, changes, read_time):
            callback([self._to_dict(snapshot) for snapshot in snapshots])

        watch = query.on_snapshot(on_snapshot)
        return Subscription(watch.unsubscribe)


def create_store(settings) -> DocumentStore:
    """Build the backend selected in the configuration."""
    backend = settings.store_backend
    if backend == "memory":
        return MemoryDocumentStore()
    if backend == "json":
        return MemoryDocumentStore(path=settings.store_path)
    if backend == "firestore":
        return FirestoreDocumentStore(project_id=settings.firestore_project_id)
    raise ValueError(f"Unknown store backend: {backend}")
