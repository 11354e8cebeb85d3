# mechconnect/database.py
import logging
from typing import AsyncGenerator, Optional

from .config import settings
from .store import DocumentStore, MemoryStore, PostgresStore

logger = logging.getLogger(__name__)

_store: Optional[DocumentStore] = None


async def init_store() -> DocumentStore:
    global _store
    if _store is not None:
        return _store

    if settings.database_backend == "memory":
        logger.warning("Using the in-memory document store; data is lost on restart")
        _store = MemoryStore()
    else:
        store = await PostgresStore.connect(
            user=settings.database_username,
            password=settings.database_password,
            database=settings.database_name,
            host=settings.database_hostname,
            port=settings.database_port,
            max_size=settings.database_pool_size,
            acquire_timeout=settings.database_acquire_timeout,
        )
        await store.create_schema()
        _store = store
    return _store


async def close_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None


async def get_store() -> AsyncGenerator[DocumentStore, None]:
    store = await init_store()
    yield store
