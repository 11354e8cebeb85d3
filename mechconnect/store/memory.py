# mechconnect/store/memory.py
"""Process-local document store.

All operations are serialized by one asyncio lock; a transaction holds that
lock for its whole body and restores a snapshot if the body raises. Live
queries are re-evaluated after each committed write to their collection.
"""
import asyncio
import copy
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from .base import (
    Document,
    DocumentNotFound,
    DocumentStore,
    DuplicateDocument,
    Filter,
    SnapshotCallback,
    Subscription,
    check_filters,
    matches,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _MemorySubscription(Subscription):
    def __init__(self, store: "MemoryStore", collection: str, callback: SnapshotCallback, query_args: dict):
        self.store = store
        self.collection = collection
        self.callback = callback
        self.query_args = query_args
        self.closed = False

    def deliver(self) -> None:
        if self.closed:
            return
        snapshot = self.store._query(self.collection, **self.query_args)
        try:
            self.callback(snapshot)
        except Exception:
            logger.exception(f"Live query callback on {self.collection} failed")

    async def close(self) -> None:
        self.closed = True
        watchers = self.store._watchers.get(self.collection, [])
        if self in watchers:
            watchers.remove(self)


class MemoryStore(DocumentStore):
    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._collections: Dict[str, Dict[str, Document]] = {}
        self._watchers: Dict[str, List[_MemorySubscription]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock or _utcnow

    def now(self) -> datetime:
        return self._clock()

    # -- unlocked primitives, shared with _MemoryTransaction --

    def _docs(self, collection: str) -> Dict[str, Document]:
        return self._collections.setdefault(collection, {})

    def _check_unique(self, collection: str, doc: Document) -> None:
        for key in self.unique_keys:
            if key.collection != collection or not key.applies_to(doc):
                continue
            value = key.key_of(doc)
            if value is None:
                continue
            for other in self._docs(collection).values():
                if other["id"] == doc["id"]:
                    continue
                if key.applies_to(other) and key.key_of(other) == value:
                    raise DuplicateDocument(f"Duplicate {key.name}")

    def _add(self, collection: str, data: Document) -> str:
        doc = copy.deepcopy(data)
        doc["id"] = doc.get("id") or uuid.uuid4().hex
        if doc.get("created_at") is None:
            doc["created_at"] = self.now()
        docs = self._docs(collection)
        if doc["id"] in docs:
            raise DuplicateDocument(f"{collection}/{doc['id']} already exists")
        self._check_unique(collection, doc)
        docs[doc["id"]] = doc
        return doc["id"]

    def _get(self, collection: str, doc_id: str) -> Optional[Document]:
        doc = self._docs(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def _query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        check_filters(filters)
        found = [doc for doc in self._docs(collection).values() if matches(doc, filters)]
        if order_by:
            present = [doc for doc in found if doc.get(order_by) is not None]
            missing = [doc for doc in found if doc.get(order_by) is None]
            present.sort(key=lambda doc: doc[order_by], reverse=descending)
            found = present + missing
        if limit is not None:
            found = found[:limit]
        return copy.deepcopy(found)

    def _update(
        self,
        collection: str,
        doc_id: str,
        changes: Document,
        expect: Optional[Dict[str, Any]] = None,
    ) -> Optional[Document]:
        docs = self._docs(collection)
        current = docs.get(doc_id)
        if current is None:
            raise DocumentNotFound(f"{collection}/{doc_id} not found")
        for field, value in (expect or {}).items():
            if current.get(field) != value:
                return None
        updated = {**current, **copy.deepcopy(changes), "id": doc_id}
        self._check_unique(collection, updated)
        docs[doc_id] = updated
        return copy.deepcopy(updated)

    def _increment(
        self,
        collection: str,
        doc_id: str,
        field: str,
        delta: float,
        floor: Optional[float] = None,
    ) -> Optional[float]:
        current = self._docs(collection).get(doc_id)
        if current is None:
            raise DocumentNotFound(f"{collection}/{doc_id} not found")
        value = (current.get(field) or 0) + delta
        if floor is not None and value < floor:
            return None
        current[field] = value
        return value

    def _subscribe(self, collection: str, callback: SnapshotCallback, query_args: dict) -> _MemorySubscription:
        check_filters(query_args.get("filters", ()))
        subscription = _MemorySubscription(self, collection, callback, query_args)
        self._watchers.setdefault(collection, []).append(subscription)
        return subscription

    def _publish(self, collections: Set[str]) -> None:
        for collection in collections:
            for subscription in list(self._watchers.get(collection, [])):
                subscription.deliver()

    # -- public API --

    async def add(self, collection: str, data: Document) -> str:
        async with self._lock:
            doc_id = self._add(collection, data)
            self._publish({collection})
        return doc_id

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        async with self._lock:
            return self._get(collection, doc_id)

    async def query(self, collection, filters=(), order_by=None, descending=False, limit=None):
        async with self._lock:
            return self._query(collection, filters, order_by, descending, limit)

    async def update(self, collection, doc_id, changes, expect=None):
        async with self._lock:
            updated = self._update(collection, doc_id, changes, expect)
            if updated is not None:
                self._publish({collection})
        return updated

    async def increment(self, collection, doc_id, field, delta, floor=None):
        async with self._lock:
            value = self._increment(collection, doc_id, field, delta, floor)
            if value is not None:
                self._publish({collection})
        return value

    @asynccontextmanager
    async def transaction(self):
        async with self._lock:
            snapshot = copy.deepcopy(self._collections)
            tx = _MemoryTransaction(self)
            try:
                yield tx
            except BaseException:
                self._collections = snapshot
                raise
            finally:
                tx.active = False
            self._publish(tx.dirty)

    async def lock(self, key: str) -> None:
        # Outside a transaction there is nothing to hold; inside one the store lock already is.
        return None

    async def subscribe(self, collection, callback, filters=(), order_by=None, descending=False, limit=None):
        query_args = {"filters": tuple(filters), "order_by": order_by, "descending": descending, "limit": limit}
        async with self._lock:
            subscription = self._subscribe(collection, callback, query_args)
            subscription.deliver()
        return subscription


class _MemoryTransaction(DocumentStore):
    """View of a MemoryStore used while its lock is held by ``transaction()``."""

    def __init__(self, store: MemoryStore):
        self.store = store
        self.dirty: Set[str] = set()
        self.active = True

    def _ensure_active(self) -> None:
        if not self.active:
            raise RuntimeError("Transaction already finished")

    def now(self) -> datetime:
        return self.store.now()

    async def add(self, collection, data):
        self._ensure_active()
        doc_id = self.store._add(collection, data)
        self.dirty.add(collection)
        return doc_id

    async def get(self, collection, doc_id):
        self._ensure_active()
        return self.store._get(collection, doc_id)

    async def query(self, collection, filters=(), order_by=None, descending=False, limit=None):
        self._ensure_active()
        return self.store._query(collection, filters, order_by, descending, limit)

    async def update(self, collection, doc_id, changes, expect=None):
        self._ensure_active()
        updated = self.store._update(collection, doc_id, changes, expect)
        if updated is not None:
            self.dirty.add(collection)
        return updated

    async def increment(self, collection, doc_id, field, delta, floor=None):
        self._ensure_active()
        value = self.store._increment(collection, doc_id, field, delta, floor)
        if value is not None:
            self.dirty.add(collection)
        return value

    @asynccontextmanager
    async def transaction(self):
        yield self

    async def lock(self, key: str) -> None:
        return None

    async def subscribe(self, collection, callback, filters=(), order_by=None, descending=False, limit=None):
        query_args = {"filters": tuple(filters), "order_by": order_by, "descending": descending, "limit": limit}
        subscription = self.store._subscribe(collection, callback, query_args)
        subscription.deliver()
        return subscription
