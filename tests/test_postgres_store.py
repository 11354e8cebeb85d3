import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from mechconnect.errors import RemoteFailure
from mechconnect.store import DocumentNotFound, UniqueKey
from mechconnect.store.postgres import (
    NOTIFY_CHANNEL,
    NotifyListener,
    PostgresStore,
    _number,
    _where,
    unique_index_ddl,
)


class FakeConnection:
    """Answers fetchval from a script and records every statement"""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    async def fetchval(self, sql, *args):
        self.calls.append((sql, args))
        return self.results.pop(0)


class FakePool:
    def __init__(self, conn):
        self.conn = conn
        self.timeouts = []

    def acquire(self, timeout=None):
        self.timeouts.append(timeout)
        return self

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, *exc):
        return False


class DrainedPool(FakePool):
    def __init__(self):
        super().__init__(None)

    async def __aenter__(self):
        raise asyncio.TimeoutError()


class ListenConnection:
    def __init__(self):
        self.listeners = []
        self.closed = False

    async def add_listener(self, channel, callback):
        self.listeners.append((channel, callback))

    def is_closed(self):
        return self.closed

    async def close(self):
        self.closed = True


class GatedStore(PostgresStore):
    """Serves queries from ``docs``; each query reads first, then waits on ``gate``"""

    def __init__(self, listener):
        super().__init__(None, listener=listener)
        self.docs = []
        self.queries = []
        self.gate = asyncio.Event()
        self.gate.set()

    async def query(self, collection, filters=(), order_by=None, descending=False, limit=None):
        self.queries.append(collection)
        snapshot = [dict(doc) for doc in self.docs]
        await self.gate.wait()
        return snapshot


def listening():
    connections = []

    async def connect():
        conn = ListenConnection()
        connections.append(conn)
        return conn

    return NotifyListener(connect), connections


def notify(conn, collection):
    for channel, callback in conn.listeners:
        callback(conn, 4242, channel, collection)


async def settle(subscription):
    if subscription._pending is not None:
        await subscription._pending


def test_equality_filters_bind_json_and_treat_missing_as_null():
    params = ["requests"]
    sql = _where([("status", "==", "pending"), ("mechanic_id", "!=", None)], params)

    assert sql == (
        "(COALESCE(data->$2, 'null'::jsonb) = $3::jsonb) AND "
        "NOT (COALESCE(data->$4, 'null'::jsonb) = $5::jsonb)"
    )
    assert params == ["requests", "status", '"pending"', "mechanic_id", "null"]


def test_membership_filters_bind_json_values():
    params = []
    sql = _where([("status", "in", ["pending", "matched"]), ("categories", "array_contains", "plumber")], params)

    assert sql == "data->$1 = ANY($2::jsonb[]) AND data->$3 @> $4::jsonb"
    assert params == ["status", ['"pending"', '"matched"'], "categories", '["plumber"]']


def test_range_filters_cast_by_value_type():
    params = []
    since = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)
    sql = _where([("created_at", ">=", since), ("rating_count", ">", 3), ("total_rating", "<", 4.5)], params)

    assert sql == (
        "(data->>$1)::text >= $2::text AND "
        "(data->>$3)::numeric > $4::numeric AND "
        "(data->>$5)::numeric < $6::numeric"
    )
    assert params == [
        "created_at", "2026-01-15T09:00:00.000000+00:00",
        "rating_count", Decimal("3"),
        "total_rating", Decimal("4.5"),
    ]


def test_unique_keys_become_partial_expression_indexes():
    ongoing = UniqueKey("ongoing_booking_per_mechanic", "bookings", ["mechanic_id"], where={"status": "ongoing"})
    proposal = UniqueKey("proposal_per_mechanic_request", "proposals", ["mechanic_id", "request_id"])

    assert unique_index_ddl(ongoing) == (
        "CREATE UNIQUE INDEX IF NOT EXISTS documents_ongoing_booking_per_mechanic "
        "ON documents ((data->>'mechanic_id')) "
        "WHERE collection = 'bookings' AND data->>'status' = 'ongoing'"
    )
    assert unique_index_ddl(proposal) == (
        "CREATE UNIQUE INDEX IF NOT EXISTS documents_proposal_per_mechanic_request "
        "ON documents ((data->>'mechanic_id'), (data->>'request_id')) "
        "WHERE collection = 'proposals'"
    )


def test_index_literals_are_quoted():
    key = UniqueKey("note_per_tag", "notes", ["author"], where={"tag": "o'clock"})
    assert unique_index_ddl(key).endswith("WHERE collection = 'notes' AND data->>'tag' = 'o''clock'")


def test_numeric_results_come_back_as_python_numbers():
    assert _number(Decimal("4")) == 4
    assert isinstance(_number(Decimal("4.0")), int)
    assert _number(Decimal("2.50")) == 2.5
    assert isinstance(_number(Decimal("2.50")), float)
    assert _number(7) == 7


async def test_increment_returns_new_value():
    conn = FakeConnection(Decimal("4"))
    store = PostgresStore(FakePool(conn))

    assert await store.increment("mechanics", "m1", "diamond_balance", -1, floor=0) == 4
    sql, args = conn.calls[0]
    assert ">= $5::numeric" in sql
    assert args == ("mechanics", "m1", "diamond_balance", Decimal("-1"), Decimal("0"))


async def test_increment_below_floor_writes_nothing():
    conn = FakeConnection(None, 1)
    store = PostgresStore(FakePool(conn))

    assert await store.increment("mechanics", "m1", "diamond_balance", -1, floor=0) is None
    assert len(conn.calls) == 2


async def test_increment_on_missing_document():
    store = PostgresStore(FakePool(FakeConnection(None, None)))

    with pytest.raises(DocumentNotFound):
        await store.increment("mechanics", "missing", "diamond_balance", 5)


async def test_drained_pool_fails_instead_of_waiting_forever():
    pool = DrainedPool()
    store = PostgresStore(pool, acquire_timeout=0.5)

    with pytest.raises(RemoteFailure):
        await store.get("requests", "r1")
    assert pool.timeouts == [0.5]


async def test_notify_during_a_query_triggers_another_delivery():
    listener, connections = listening()
    store = GatedStore(listener)
    snapshots = []
    subscription = await store.subscribe("requests", snapshots.append)
    assert snapshots == [[]]

    store.gate.clear()
    store.docs = [{"id": "a"}]
    notify(connections[0], "requests")
    await asyncio.sleep(0)

    # Committed after the in-flight query read its snapshot
    store.docs = [{"id": "a"}, {"id": "b"}]
    notify(connections[0], "requests")
    store.gate.set()
    await settle(subscription)

    assert [[doc["id"] for doc in snapshot] for snapshot in snapshots] == [[], ["a"], ["a", "b"]]


async def test_notify_burst_is_coalesced():
    listener, connections = listening()
    store = GatedStore(listener)
    snapshots = []
    subscription = await store.subscribe("requests", snapshots.append)

    store.gate.clear()
    store.docs = [{"id": "a"}]
    for _ in range(5):
        notify(connections[0], "requests")
    await asyncio.sleep(0)
    store.gate.set()
    await settle(subscription)

    assert store.queries == ["requests", "requests"]
    assert snapshots[-1] == [{"id": "a"}]


async def test_live_queries_share_one_listening_connection():
    listener, connections = listening()
    store = GatedStore(listener)
    feeds = [await store.subscribe("requests", lambda docs: None) for _ in range(4)]
    proposals = []
    watcher = await store.subscribe("proposals", proposals.append)

    assert len(connections) == 1
    assert [channel for channel, _ in connections[0].listeners] == [NOTIFY_CHANNEL]

    notify(connections[0], "proposals")
    await settle(watcher)
    assert len(proposals) == 2

    await watcher.close()
    notify(connections[0], "proposals")
    await asyncio.sleep(0)
    assert len(proposals) == 2

    for feed in feeds:
        await feed.close()
    await listener.close()
    assert connections[0].closed
