# mechconnect/store/__init__.py
from .base import (
    DocumentNotFound,
    DocumentStore,
    DuplicateDocument,
    Subscription,
    UNIQUE_KEYS,
    UniqueKey,
)
from .memory import MemoryStore
from .postgres import PostgresStore

__all__ = [
    "DocumentNotFound",
    "DocumentStore",
    "DuplicateDocument",
    "MemoryStore",
    "PostgresStore",
    "Subscription",
    "UNIQUE_KEYS",
    "UniqueKey",
]
