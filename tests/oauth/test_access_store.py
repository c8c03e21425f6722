from datetime import timedelta

import pytest
from sqlalchemy import insert, text

from domain.common.exceptions import (
    InvalidArgumentException,
    OAuthNotFoundException,
    StorageBackendException,
)
from domain.oauth.entity import AccessData, AuthorizeData
from infrastructure.models import OAuthTables


pytestmark = pytest.mark.asyncio


def _access(client, created_at, token="a1", refresh="", **kwargs):
    kwargs.setdefault("expires_in", 3600)
    kwargs.setdefault("scope", "read")
    kwargs.setdefault("redirect_uri", "http://x/cb")
    kwargs.setdefault("user_data", "access-meta")
    return AccessData(
        client=client,
        access_token=token,
        refresh_token=refresh,
        created_at=created_at,
        **kwargs,
    )


def _scalars(data: AccessData):
    return (
        data.client.id,
        data.access_token,
        data.refresh_token,
        data.expires_in,
        data.scope,
        data.redirect_uri,
        data.user_data,
        data.created_at,
    )


async def test_save_then_load(storage, client, clock):
    data = _access(client, clock.start, refresh="r1")
    await storage.save_access(data)

    loaded = await storage.load_access("a1")
    assert _scalars(loaded) == _scalars(data)
    assert loaded.client == client
    assert loaded.authorize_data is None
    assert loaded.access_data is None
    assert loaded.expire_at == clock.start + timedelta(seconds=3600)


async def test_load_missing_token_raises_not_found(storage):
    with pytest.raises(OAuthNotFoundException) as exc_info:
        await storage.load_access("missing")
    assert exc_info.value.kind == "access"


async def test_load_with_removed_client_raises_not_found(storage, client, clock):
    await storage.save_access(_access(client, clock.start))
    await storage.remove_client(client.id)
    with pytest.raises(OAuthNotFoundException) as exc_info:
        await storage.load_access("a1")
    assert exc_info.value.kind == "client"


async def test_save_requires_client_and_writes_nothing(storage, clock, fetch_rows):
    with pytest.raises(InvalidArgumentException) as exc_info:
        await storage.save_access(_access(None, clock.start, refresh="r1"))
    assert exc_info.value.field == "client"
    assert await fetch_rows("refresh") == []
    assert await fetch_rows("access") == []


async def test_failed_insert_rolls_back_refresh_entry(storage, client, clock, fetch_rows):
    await storage.save_access(_access(client, clock.start, refresh="r1"))

    # same access token again, with a fresh refresh token
    with pytest.raises(StorageBackendException):
        await storage.save_access(_access(client, clock.start, refresh="r2"))

    assert await fetch_rows("refresh", refresh_token="r2") == []
    assert len(await fetch_rows("expires", code_or_token="a1")) == 1


async def test_originating_authorization_is_resolved(storage, client, clock):
    auth = AuthorizeData(client=client, code="code1", expires_in=600, created_at=clock.start)
    await storage.save_authorize(auth)
    await storage.save_access(_access(client, clock.start, authorize_data=auth))

    loaded = await storage.load_access("a1")
    assert loaded.authorize_data is not None
    assert loaded.authorize_data.code == "code1"
    assert loaded.authorize_data.client == client


async def test_expired_or_removed_authorization_is_left_empty(storage, client, clock):
    auth = AuthorizeData(client=client, code="code1", expires_in=600, created_at=clock.start)
    await storage.save_authorize(auth)
    await storage.save_access(_access(client, clock.start, authorize_data=auth))

    clock.advance(700)
    assert (await storage.load_access("a1")).authorize_data is None

    await storage.remove_authorize("code1")
    assert (await storage.load_access("a1")).authorize_data is None


async def test_rotation_chain_exposes_previous_token(storage, client, clock):
    first = _access(client, clock.start, token="a1", refresh="r1")
    await storage.save_access(first)
    clock.advance(60)
    second = _access(client, clock.now, token="a2", refresh="r2", access_data=first)
    await storage.save_access(second)

    loaded = await storage.load_access("a2")
    assert loaded.access_data is not None
    assert _scalars(loaded.access_data) == _scalars(first)
    assert loaded.access_data.access_data is None


async def test_removed_predecessor_leaves_chain_empty(storage, client, clock):
    first = _access(client, clock.start, token="a1")
    await storage.save_access(first)
    await storage.save_access(_access(client, clock.start, token="a2", access_data=first))

    await storage.remove_access("a1")
    loaded = await storage.load_access("a2")
    assert loaded.access_token == "a2"
    assert loaded.access_data is None


async def test_expired_predecessor_is_still_resolved(storage, client, clock):
    first = _access(client, clock.start, token="a1", expires_in=10)
    await storage.save_access(first)
    await storage.save_access(_access(client, clock.start, token="a2", access_data=first))

    clock.advance(100)
    loaded = await storage.load_access("a2")
    assert loaded.access_data.access_token == "a1"
    assert loaded.access_data.is_expired_at(clock.now)


async def test_long_chain_is_bounded_by_max_depth(make_storage, client, clock):
    storage = make_storage(max_chain_depth=2)
    previous = None
    for i in range(5):
        data = _access(client, clock.start, token=f"a{i}", access_data=previous)
        await storage.save_access(data)
        previous = data

    loaded = await storage.load_access("a4")
    assert loaded.access_data.access_token == "a3"
    assert loaded.access_data.access_data.access_token == "a2"
    assert loaded.access_data.access_data.access_data is None


async def test_zero_depth_skips_chain(make_storage, client, clock):
    storage = make_storage(max_chain_depth=0)
    first = _access(client, clock.start, token="a1")
    await storage.save_access(first)
    await storage.save_access(_access(client, clock.start, token="a2", access_data=first))
    assert (await storage.load_access("a2")).access_data is None


async def test_corrupted_cyclic_chain_terminates(storage, client, clock, engine, tables):
    rows = [
        {"token": "x", "prev": "y"},
        {"token": "y", "prev": "x"},
    ]
    async with engine.begin() as conn:
        for row in rows:
            await conn.execute(
                insert(tables.access).values(
                    client_id=client.id,
                    authorize_code="",
                    prev_access_token=row["prev"],
                    access_token=row["token"],
                    refresh_token="",
                    expires_in=3600,
                    scope="",
                    redirect_uri="",
                    user_data="",
                    created_at=clock.start,
                )
            )

    loaded = await storage.load_access("x")
    assert loaded.access_data.access_token == "y"
    assert loaded.access_data.access_data is None


async def test_remove_clears_record_and_expiry(storage, client, clock, fetch_rows):
    await storage.save_access(_access(client, clock.start))
    assert len(await fetch_rows("expires", code_or_token="a1")) == 1

    await storage.remove_access("a1")
    await storage.remove_access("a1")
    assert await fetch_rows("access") == []
    assert await fetch_rows("expires", code_or_token="a1") == []


async def test_legacy_empty_string_references_read_as_absent(storage, client, clock, engine, tables):
    async with engine.begin() as conn:
        await conn.execute(
            insert(tables.access).values(
                client_id=client.id,
                authorize_code="",
                prev_access_token="",
                access_token="legacy",
                refresh_token="",
                expires_in=3600,
                scope="",
                redirect_uri="",
                user_data="",
                created_at=clock.start,
            )
        )

    loaded = await storage.load_access("legacy")
    assert loaded.refresh_token == ""
    assert loaded.authorize_data is None
    assert loaded.access_data is None


async def test_expiry_failure_rolls_back_refresh_and_record(storage, client, clock, engine, tables, fetch_rows):
    async with engine.begin() as conn:
        await conn.run_sync(tables.expires.drop)

    with pytest.raises(StorageBackendException) as exc_info:
        await storage.save_access(_access(client, clock.start, refresh="r1"))
    assert exc_info.value.operation == "AddExpireAtData"

    assert await fetch_rows("refresh") == []
    assert await fetch_rows("access") == []


# 既有部署的访问令牌表：code / prev_access_token / refresh_token 均为 NOT NULL
LEGACY_ACCESS_DDL = """
CREATE TABLE legacy_access (
    client                 varchar(255) NOT NULL,
    code                   varchar(255) NOT NULL,
    prev_access_token      varchar(512) NOT NULL,
    access_token           varchar(512) NOT NULL PRIMARY KEY,
    refresh_token          varchar(512) NOT NULL,
    expires_in             int NOT NULL,
    scope                  varchar(255) NOT NULL,
    redirect_uri           varchar(255) NOT NULL,
    extra                  varchar(255) NOT NULL,
    created_at             timestamp NOT NULL
)
"""


async def test_save_access_against_legacy_not_null_layout(make_storage, engine, clock):
    legacy = OAuthTables("legacy")
    others = [legacy.client, legacy.authorize, legacy.refresh, legacy.expires]
    async with engine.begin() as conn:
        await conn.execute(text(LEGACY_ACCESS_DDL))
        await conn.run_sync(lambda sync_conn: legacy.metadata.create_all(sync_conn, tables=others))

    storage = make_storage(table_prefix="legacy")
    c = storage.create_client_with_information("c1", "s1", "http://x/cb")
    await storage.create_client(c)

    # no authorization, no predecessor, no refresh token
    await storage.save_access(AccessData(client=c, access_token="a1", expires_in=60, created_at=clock.start))

    loaded = await storage.load_access("a1")
    assert loaded.refresh_token == ""
    assert loaded.authorize_data is None
    assert loaded.access_data is None

    async with engine.connect() as conn:
        row = (await conn.execute(
            text("SELECT code, prev_access_token, refresh_token FROM legacy_access")
        )).one()
    assert tuple(row) == ("", "", "")
