# mechconnect/store/postgres.py
"""PostgreSQL document store on asyncpg.

Every collection lives in one ``documents`` table as JSONB. Unique keys become
partial expression indexes, ``lock`` maps to ``pg_advisory_xact_lock`` and
live queries ride on LISTEN/NOTIFY fired by a row trigger, all of them sharing
one listening connection kept outside the pool.
"""
import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import asyncpg

from ..errors import RemoteFailure
from .base import (
    Document,
    DocumentNotFound,
    DocumentStore,
    DuplicateDocument,
    Filter,
    SnapshotCallback,
    Subscription,
    UniqueKey,
    check_filters,
)

logger = logging.getLogger(__name__)

NOTIFY_CHANNEL = "documents_changed"

# create_pool arguments that a plain asyncpg.connect does not take
POOL_OPTIONS = ("min_size", "max_size", "max_queries", "max_inactive_connection_lifetime", "setup", "init", "reset")

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    data JSONB NOT NULL,
    PRIMARY KEY (collection, id)
);

CREATE INDEX IF NOT EXISTS documents_data_gin ON documents USING GIN (data jsonb_path_ops);

CREATE OR REPLACE FUNCTION documents_notify() RETURNS trigger AS $$
BEGIN
    PERFORM pg_notify('documents_changed', COALESCE(NEW.collection, OLD.collection));
    RETURN NULL;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS documents_notify_trigger ON documents;
CREATE TRIGGER documents_notify_trigger
    AFTER INSERT OR UPDATE OR DELETE ON documents
    FOR EACH ROW EXECUTE FUNCTION documents_notify();
"""


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Cannot store {type(value).__name__} in a document")


def _dumps(value: Any) -> str:
    return json.dumps(value, default=_encode)


def _literal(value: str) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def unique_index_ddl(key: UniqueKey) -> str:
    columns = ", ".join(f"(data->>{_literal(field)})" for field in key.fields)
    conditions = [f"collection = {_literal(key.collection)}"]
    for field, value in key.where.items():
        conditions.append(f"data->>{_literal(field)} = {_literal(json.loads(_dumps(value)))}")
    return (
        f"CREATE UNIQUE INDEX IF NOT EXISTS documents_{key.name} "
        f"ON documents ({columns}) WHERE {' AND '.join(conditions)}"
    )


def _number(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def _where(filters: Sequence[Filter], params: List[Any]) -> str:
    """Translate filters into SQL, appending bind values to ``params``."""
    clauses = []
    for field, op, value in filters:
        params.append(field)
        field_ref = f"${len(params)}"
        if op in ("==", "!="):
            params.append(_dumps(value))
            negate = "NOT " if op == "!=" else ""
            clauses.append(f"{negate}(COALESCE(data->{field_ref}, 'null'::jsonb) = ${len(params)}::jsonb)")
        elif op == "in":
            params.append([_dumps(item) for item in value])
            clauses.append(f"data->{field_ref} = ANY(${len(params)}::jsonb[])")
        elif op == "array_contains":
            params.append(_dumps([value]))
            clauses.append(f"data->{field_ref} @> ${len(params)}::jsonb")
        else:
            if isinstance(value, bool):
                cast, bound = "boolean", value
            elif isinstance(value, (int, float, Decimal)):
                cast, bound = "numeric", Decimal(str(value))
            else:
                cast, bound = "text", json.loads(_dumps(value))
            params.append(bound)
            clauses.append(f"(data->>{field_ref})::{cast} {op} ${len(params)}::{cast}")
    return " AND ".join(clauses)


class _PostgresSubscription(Subscription):
    def __init__(self, store: "PostgresStore", collection: str, callback: SnapshotCallback, query_args: dict):
        self.store = store
        self.collection = collection
        self.callback = callback
        self.query_args = query_args
        self.closed = False
        self._dirty = False
        self._pending: Optional[asyncio.Task] = None

    def on_notify(self) -> None:
        if self.closed:
            return
        self._dirty = True
        if self._pending is None or self._pending.done():
            self._pending = asyncio.ensure_future(self.deliver())
            self._pending.add_done_callback(self._report)

    async def deliver(self) -> None:
        # A notify landing while the query runs may postdate its snapshot, so query again
        while self._dirty and not self.closed:
            self._dirty = False
            snapshot = await self.store.query(self.collection, **self.query_args)
            if self.closed:
                return
            try:
                self.callback(snapshot)
            except Exception:
                logger.exception(f"Live query callback on {self.collection} failed")

    def _report(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Live query on {self.collection} failed: {task.exception()}")

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.store._listener.remove(self)
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()


class NotifyListener:
    """One LISTEN connection per store, fanning NOTIFY out to live queries.

    The connection is opened outside the pool on the first subscription, so
    any number of live queries cost one connection between them.
    """

    def __init__(self, connect: Callable[[], Awaitable[asyncpg.Connection]]):
        self._connect = connect
        self.conn: Optional[asyncpg.Connection] = None
        self.subscriptions: Dict[str, List[_PostgresSubscription]] = {}
        self._lock = asyncio.Lock()

    async def add(self, subscription: _PostgresSubscription) -> None:
        async with self._lock:
            if self.conn is None or self.conn.is_closed():
                try:
                    conn = await self._connect()
                    await conn.add_listener(NOTIFY_CHANNEL, self.dispatch)
                except (OSError, asyncpg.PostgresError) as e:
                    raise RemoteFailure(f"Database error: {str(e)}")
                self.conn = conn
            self.subscriptions.setdefault(subscription.collection, []).append(subscription)

    def remove(self, subscription: _PostgresSubscription) -> None:
        watchers = self.subscriptions.get(subscription.collection, [])
        if subscription in watchers:
            watchers.remove(subscription)

    def dispatch(self, conn, pid, channel, payload) -> None:
        for subscription in list(self.subscriptions.get(payload, [])):
            subscription.on_notify()

    async def close(self) -> None:
        self.subscriptions = {}
        if self.conn is not None:
            conn, self.conn = self.conn, None
            await conn.close()


class PostgresStore(DocumentStore):
    def __init__(
        self,
        pool: asyncpg.Pool,
        conn: Optional[asyncpg.Connection] = None,
        listener: Optional[NotifyListener] = None,
        acquire_timeout: Optional[float] = None,
    ):
        self._pool = pool
        self._conn = conn
        self._listener = listener or NotifyListener(asyncpg.connect)
        self._acquire_timeout = acquire_timeout

    @classmethod
    async def connect(cls, dsn: str = None, acquire_timeout: Optional[float] = None, **kwargs) -> "PostgresStore":
        try:
            pool = await asyncpg.create_pool(dsn, **kwargs)
        except (OSError, asyncpg.PostgresError) as e:
            raise RemoteFailure(f"Database connection failed: {str(e)}")
        connect_kwargs = {k: v for k, v in kwargs.items() if k not in POOL_OPTIONS}
        listener = NotifyListener(lambda: asyncpg.connect(dsn, **connect_kwargs))
        return cls(pool, listener=listener, acquire_timeout=acquire_timeout)

    async def create_schema(self) -> None:
        async with self._connection() as conn:
            await conn.execute(SCHEMA)
            for key in self.unique_keys:
                await conn.execute(unique_index_ddl(key))

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    @asynccontextmanager
    async def _connection(self):
        try:
            if self._conn is not None:
                yield self._conn
            else:
                async with self._pool.acquire(timeout=self._acquire_timeout) as conn:
                    yield conn
        except asyncpg.UniqueViolationError as e:
            raise DuplicateDocument(f"Duplicate {e.constraint_name or 'document'}")
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
            logger.error(f"Document store failure: {str(e)}")
            raise RemoteFailure(f"Database error: {str(e)}")

    async def add(self, collection: str, data: Document) -> str:
        doc = dict(data)
        doc["id"] = doc.get("id") or uuid.uuid4().hex
        if doc.get("created_at") is None:
            doc["created_at"] = self.now()
        async with self._connection() as conn:
            await conn.execute(
                "INSERT INTO documents (collection, id, data) VALUES ($1, $2, $3::jsonb)",
                collection, doc["id"], _dumps(doc)
            )
        return doc["id"]

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        async with self._connection() as conn:
            raw = await conn.fetchval(
                "SELECT data FROM documents WHERE collection = $1 AND id = $2",
                collection, doc_id
            )
        return json.loads(raw) if raw is not None else None

    async def query(self, collection, filters=(), order_by=None, descending=False, limit=None):
        check_filters(filters)
        params: List[Any] = [collection]
        sql = "SELECT data FROM documents WHERE collection = $1"
        where = _where(filters, params)
        if where:
            sql += " AND " + where
        if order_by:
            params.append(order_by)
            sql += f" ORDER BY data->>${len(params)} {'DESC' if descending else 'ASC'} NULLS LAST"
        if limit is not None:
            params.append(limit)
            sql += f" LIMIT ${len(params)}"
        async with self._connection() as conn:
            rows = await conn.fetch(sql, *params)
        return [json.loads(row["data"]) for row in rows]

    async def update(self, collection, doc_id, changes, expect=None):
        params: List[Any] = [collection, doc_id, _dumps({k: v for k, v in changes.items() if k != "id"})]
        sql = (
            "UPDATE documents SET data = data || $3::jsonb "
            "WHERE collection = $1 AND id = $2"
        )
        where = _where([(field, "==", value) for field, value in (expect or {}).items()], params)
        if where:
            sql += " AND " + where
        sql += " RETURNING data"
        async with self._connection() as conn:
            raw = await conn.fetchval(sql, *params)
            if raw is None:
                exists = await conn.fetchval(
                    "SELECT 1 FROM documents WHERE collection = $1 AND id = $2",
                    collection, doc_id
                )
                if not exists:
                    raise DocumentNotFound(f"{collection}/{doc_id} not found")
                return None
        return json.loads(raw)

    async def increment(self, collection, doc_id, field, delta, floor=None):
        async with self._connection() as conn:
            value = await conn.fetchval(
                """
                UPDATE documents
                SET data = jsonb_set(data, ARRAY[$3::text], to_jsonb(COALESCE((data->>$3)::numeric, 0) + $4::numeric))
                WHERE collection = $1 AND id = $2
                AND ($5::numeric IS NULL OR COALESCE((data->>$3)::numeric, 0) + $4::numeric >= $5::numeric)
                RETURNING (data->>$3)::numeric
                """,
                collection, doc_id, field, Decimal(str(delta)),
                None if floor is None else Decimal(str(floor))
            )
            if value is None:
                exists = await conn.fetchval(
                    "SELECT 1 FROM documents WHERE collection = $1 AND id = $2",
                    collection, doc_id
                )
                if not exists:
                    raise DocumentNotFound(f"{collection}/{doc_id} not found")
                return None
        return _number(value)

    @asynccontextmanager
    async def transaction(self):
        if self._conn is not None:
            async with self._conn.transaction():
                yield self
            return
        async with self._connection() as conn:
            async with conn.transaction():
                yield PostgresStore(self._pool, conn=conn, listener=self._listener, acquire_timeout=self._acquire_timeout)

    async def lock(self, key: str) -> None:
        async with self._connection() as conn:
            await conn.execute("SELECT pg_advisory_xact_lock(hashtext($1))", key)

    async def subscribe(self, collection, callback, filters=(), order_by=None, descending=False, limit=None):
        check_filters(filters)
        query_args = {"filters": tuple(filters), "order_by": order_by, "descending": descending, "limit": limit}
        # Re-queries run on the pool, never on a transaction that will have ended
        root = self if self._conn is None else PostgresStore(
            self._pool, listener=self._listener, acquire_timeout=self._acquire_timeout
        )
        subscription = _PostgresSubscription(root, collection, callback, query_args)
        await self._listener.add(subscription)
        subscription.on_notify()
        try:
            await subscription._pending
        except BaseException:
            await subscription.close()
            raise
        return subscription

    async def close(self) -> None:
        if self._conn is None:
            await self._listener.close()
            await self._pool.close()
