"""
Shared fixtures for adapter tests.

``FakePool`` stands in for an asyncpg pool. It runs the adapter's SQL
against an in-memory sqlite3 database, which understands the same
statement subset (``ON CONFLICT DO NOTHING``, ``RETURNING``), and behaves
like a pool with a single connection.
"""

import asyncio
import random
import re
import sqlite3
from contextlib import asynccontextmanager
from typing import Callable, List, Optional, Tuple

import pytest
from casbin.model import Model

from casbin_pgx.persistence.postgres import PostgresAdapter
from casbin_pgx.persistence.queries import PolicyQueries

_PARAM = re.compile(r"\$(\d+)")

RBAC_MODEL = """
[request_definition]
r = sub, obj, act

[policy_definition]
p = sub, obj, act
p2 = sub, obj, act, eft

[role_definition]
g = _, _
g2 = _, _

[policy_effect]
e = some(where (p.eft == allow))

[matchers]
m = g(r.sub, p.sub) && r.obj == p.obj && r.act == p.act
"""


class SimulatedStorageError(ConnectionError):
    """Raised by FakePool when a statement matches its failure hook."""


class FakeTransaction:
    def __init__(self, conn: "FakeConnection"):
        self._conn = conn

    async def __aenter__(self):
        self._conn.db.execute("BEGIN")
        self._conn.in_transaction = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._conn.in_transaction = False
        self._conn.db.execute("COMMIT" if exc_type is None else "ROLLBACK")
        return False


class FakeCursor:
    def __init__(self, conn: "FakeConnection", query: str, args: tuple):
        if not conn.in_transaction:
            raise RuntimeError("cursor cannot be created outside of a transaction")
        self._conn = conn
        self._query = query
        self._args = args

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for record in await self._conn.fetch(self._query, *self._args):
            yield record


class FakeConnection:
    def __init__(self, pool: "FakePool"):
        self._pool = pool
        self.db = pool.db
        self.in_transaction = False

    def _run(self, query: str, args: tuple) -> sqlite3.Cursor:
        self._pool.statements.append(query)
        if self._pool.fail_when is not None and self._pool.fail_when(query, args):
            raise SimulatedStorageError("simulated storage failure")
        params = [args[int(n) - 1] for n in _PARAM.findall(query)]
        return self.db.execute(_PARAM.sub("?", query), params)

    async def execute(self, query: str, *args) -> str:
        cursor = self._run(query, args)
        verb = query.split(None, 1)[0].upper()
        if verb == "INSERT":
            return f"INSERT 0 {cursor.rowcount}"
        if verb in ("DELETE", "UPDATE"):
            return f"{verb} {cursor.rowcount}"
        return verb

    async def fetch(self, query: str, *args) -> List[dict]:
        records = [dict(row) for row in self._run(query, args).fetchall()]
        if self._pool.shuffle:
            random.shuffle(records)
        return records

    def cursor(self, query: str, *args, prefetch: Optional[int] = None) -> FakeCursor:
        return FakeCursor(self, query, args)

    def transaction(self) -> FakeTransaction:
        return FakeTransaction(self)


class FakePool:
    """Single-connection asyncpg pool double backed by sqlite3."""

    def __init__(self, shuffle: bool = False):
        self.db = sqlite3.connect(":memory:", isolation_level=None)
        self.db.row_factory = sqlite3.Row
        self.statements: List[str] = []
        self.fail_when: Optional[Callable[[str, tuple], bool]] = None
        self.shuffle = shuffle
        self.closed = False
        self._conn = FakeConnection(self)
        self._lock: Optional[asyncio.Lock] = None

    @asynccontextmanager
    async def acquire(self):
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            yield self._conn

    async def execute(self, query: str, *args) -> str:
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args) -> List[dict]:
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    async def close(self):
        self.closed = True
        self.db.close()

    def insert_rows(self, *rows: Tuple[str, ...], table_name: str = "casbin_rule"):
        """Write raw rows ``(id, ptype, v0..v5)`` bypassing the adapter."""
        for row in rows:
            self.db.execute(f"INSERT INTO {table_name} VALUES (?, ?, ?, ?, ?, ?, ?, ?)", row)

    def rows(self, table_name: str = "casbin_rule") -> List[Tuple[str, ...]]:
        """Stored rules as ``(ptype, v0..v5)`` tuples, sorted."""
        cursor = self.db.execute(
            f"SELECT ptype, v0, v1, v2, v3, v4, v5 FROM {table_name}"
        )
        return sorted(tuple(row) for row in cursor.fetchall())


def new_model() -> Model:
    """Create an RBAC model with p, p2, g and g2 assertions."""
    model = Model()
    model.load_model_from_text(RBAC_MODEL)
    return model


@pytest.fixture
def pool():
    """Create FakePool with the policy table in place."""
    fake = FakePool()
    fake.db.execute(PolicyQueries("casbin_rule").create_table().sql)
    yield fake
    if not fake.closed:
        fake.db.close()


@pytest.fixture
def adapter(pool):
    """Create PostgresAdapter over the fake pool."""
    return PostgresAdapter(pool)


@pytest.fixture
def model_factory():
    """Factory for fresh RBAC models."""
    return new_model


@pytest.fixture
def shuffled_pool():
    """Create FakePool returning rows in random order."""
    fake = FakePool(shuffle=True)
    fake.db.execute(PolicyQueries("casbin_rule").create_table().sql)
    yield fake
    fake.db.close()
