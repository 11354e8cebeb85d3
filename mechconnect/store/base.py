# mechconnect/store/base.py
"""Document store contract shared by the in-memory and PostgreSQL backends.

Documents are plain dicts keyed by ``id`` inside named collections. Writes
that need to be atomic across documents go through ``transaction()``; single
document invariants (wallet balance, status transitions) use ``increment``
and the ``expect`` precondition of ``update``.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional, Sequence, Tuple

from ..errors import MechConnectError

Filter = Tuple[str, str, Any]
Document = Dict[str, Any]
SnapshotCallback = Callable[[List[Document]], None]

FILTER_OPS = ("==", "!=", "<", "<=", ">", ">=", "in", "array_contains")


class DocumentNotFound(MechConnectError):
    status_code = 404
    default_detail = "Document not found"


class DuplicateDocument(MechConnectError):
    status_code = 409
    default_detail = "Document violates a unique key"


class UniqueKey:
    """At most one document per value of ``fields`` among those matching ``where``."""

    def __init__(self, name: str, collection: str, fields: Sequence[str], where: Optional[Dict[str, Any]] = None):
        self.name = name
        self.collection = collection
        self.fields = tuple(fields)
        self.where = dict(where or {})

    def applies_to(self, doc: Document) -> bool:
        return all(doc.get(field) == value for field, value in self.where.items())

    def key_of(self, doc: Document) -> Optional[tuple]:
        values = tuple(doc.get(field) for field in self.fields)
        if any(value is None for value in values):
            return None
        return values


UNIQUE_KEYS = [
    UniqueKey("proposal_per_mechanic_request", "proposals", ["mechanic_id", "request_id"]),
    UniqueKey("review_per_booking", "reviews", ["booking_id"]),
    UniqueKey("chat_per_booking", "chats", ["booking_id"]),
    UniqueKey("ongoing_booking_per_mechanic", "bookings", ["mechanic_id"], where={"status": "ongoing"}),
    UniqueKey("ongoing_booking_per_customer", "bookings", ["customer_id"], where={"status": "ongoing"}),
]


class Subscription(ABC):
    @abstractmethod
    async def close(self) -> None:
        ...


class DocumentStore(ABC):
    unique_keys: List[UniqueKey] = UNIQUE_KEYS

    @abstractmethod
    def now(self) -> datetime:
        """Server clock, timezone-aware UTC."""

    @abstractmethod
    async def add(self, collection: str, data: Document) -> str:
        ...

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        ...

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        ...

    @abstractmethod
    async def update(
        self,
        collection: str,
        doc_id: str,
        changes: Document,
        expect: Optional[Dict[str, Any]] = None,
    ) -> Optional[Document]:
        """Apply ``changes`` if every ``expect`` field holds.

        Returns the updated document, or None when the precondition failed.
        Raises DocumentNotFound if the document does not exist.
        """

    @abstractmethod
    async def increment(
        self,
        collection: str,
        doc_id: str,
        field: str,
        delta: float,
        floor: Optional[float] = None,
    ) -> Optional[float]:
        """Atomically add ``delta``; returns None and writes nothing below ``floor``."""

    @abstractmethod
    def transaction(self) -> AsyncContextManager["DocumentStore"]:
        ...

    @abstractmethod
    async def lock(self, key: str) -> None:
        """Serialize on ``key`` until the enclosing transaction ends."""

    @abstractmethod
    async def subscribe(
        self,
        collection: str,
        callback: SnapshotCallback,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> Subscription:
        ...

    async def close(self) -> None:
        pass


def check_filters(filters: Sequence[Filter]) -> None:
    for field, op, _ in filters:
        if op not in FILTER_OPS:
            raise ValueError(f"Unsupported filter operator {op!r} on {field!r}")


def matches(doc: Document, filters: Sequence[Filter]) -> bool:
    for field, op, value in filters:
        current = doc.get(field)
        if op == "==":
            ok = current == value
        elif op == "!=":
            ok = current != value
        elif op == "in":
            ok = current in value
        elif op == "array_contains":
            ok = isinstance(current, (list, tuple)) and value in current
        elif current is None:
            ok = False
        elif op == "<":
            ok = current < value
        elif op == "<=":
            ok = current <= value
        elif op == ">":
            ok = current > value
        else:
            ok = current >= value
        if not ok:
            return False
    return True


__all__ = [
    "Document",
    "DocumentNotFound",
    "DocumentStore",
    "DuplicateDocument",
    "Filter",
    "SnapshotCallback",
    "Subscription",
    "UNIQUE_KEYS",
    "UniqueKey",
    "check_filters",
    "matches",
]
