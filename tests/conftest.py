"""Pytest bootstrap configuration.

Every test gets its own file-backed SQLite database (so independent sessions
really are independent connections) and a frozen, manually advanced clock.
"""
import os

# Keep structured logs in JSON form and away from the console renderer
os.environ.setdefault("DEBUG", "false")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine

from application.services.oauth_storage import OAuthStorage
from infrastructure.database import create_session_factory, create_tables
from infrastructure.models import OAuthTables


T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, now: datetime):
        self.start = now
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(T0)


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'oauth.db'}")
    yield engine
    await engine.dispose()


@pytest.fixture
def tables() -> OAuthTables:
    return OAuthTables("test")


@pytest.fixture
async def session_factory(engine, tables):
    await create_tables(engine, tables)
    return create_session_factory(engine)


@pytest.fixture
def make_storage(session_factory, tables, clock):
    def _make(**kwargs) -> OAuthStorage:
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("table_prefix", tables.prefix)
        return OAuthStorage.from_session_factory(session_factory, **kwargs)
    return _make


@pytest.fixture
def storage(make_storage) -> OAuthStorage:
    return make_storage()


@pytest.fixture
async def client(storage):
    c = storage.create_client_with_information("c1", "s1", "http://x/cb", "client-meta")
    await storage.create_client(c)
    return c


@pytest.fixture
def fetch_rows(engine, tables):
    """Read a table directly, bypassing the storage layer."""
    async def _fetch(name: str, **where):
        table = getattr(tables, name)
        stmt = select(table)
        for key, value in where.items():
            stmt = stmt.where(table.c[key] == value)
        async with engine.connect() as conn:
            result = await conn.execute(stmt)
            return [dict(row._mapping) for row in result.all()]
    return _fetch
