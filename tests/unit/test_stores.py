import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
import redis

from shortlink.config import Settings
from shortlink.stores.exceptions import AliasAlreadyExistsError, StoreError
from shortlink.stores.factory import build_store
from shortlink.stores.memory import InMemoryMappingStore
from shortlink.stores.redis import RedisMappingStore
from shortlink.stores.sql import SQLMappingStore
from shortlink.schemas import URLRecord


def make_record(alias: str = "abc123", url: str = "https://example.com/page") -> URLRecord:
    return URLRecord(
        original_url=url,
        short_url=alias,
        creation_date=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )


# -------------------------------
# In-memory
# -------------------------------


@pytest.mark.asyncio
async def test_memory_store_insert_find_increment():
    store = InMemoryMappingStore()

    stored = await store.insert(make_record())
    assert stored.id
    assert stored.click_count == 0

    await store.increment_click_count("abc123")
    await store.increment_click_count("abc123")

    found = await store.find_by_alias("abc123")
    assert found.original_url == "https://example.com/page"
    assert found.click_count == 2
    assert await store.find_by_alias("missing") is None


@pytest.mark.asyncio
async def test_memory_store_rejects_duplicate_alias():
    store = InMemoryMappingStore()
    await store.insert(make_record())

    with pytest.raises(AliasAlreadyExistsError):
        await store.insert(make_record(url="https://other.example.com"))
    assert len(store.records) == 1


@pytest.mark.asyncio
async def test_memory_store_returns_copies():
    store = InMemoryMappingStore()
    await store.insert(make_record())

    found = await store.find_by_alias("abc123")
    found.click_count = 99

    assert (await store.find_by_alias("abc123")).click_count == 0


# -------------------------------
# SQL (SQLite through aiosqlite)
# -------------------------------


@pytest.fixture
async def sql_store():
    store = SQLMappingStore("sqlite+aiosqlite:///:memory:")
    await store.connect()
    yield store
    await store.close()


@pytest.mark.asyncio
async def test_sql_store_insert_and_find(sql_store):
    stored = await sql_store.insert(make_record())

    assert stored.id
    found = await sql_store.find_by_alias("abc123")
    assert found.id == stored.id
    assert found.original_url == "https://example.com/page"
    assert found.click_count == 0
    assert found.expiration_date is None
    assert found.user_id is None
    assert await sql_store.find_by_alias("missing") is None


@pytest.mark.asyncio
async def test_sql_store_returns_utc_timestamps(sql_store):
    stored = await sql_store.insert(make_record())
    found = await sql_store.find_by_alias("abc123")

    assert stored.creation_date == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert found.creation_date.tzinfo == timezone.utc
    assert found.creation_date == stored.creation_date


@pytest.mark.asyncio
async def test_sql_store_increment_is_cumulative(sql_store):
    await sql_store.insert(make_record())

    for _ in range(3):
        await sql_store.increment_click_count("abc123")

    assert (await sql_store.find_by_alias("abc123")).click_count == 3


@pytest.mark.asyncio
async def test_sql_store_increment_unknown_alias_is_noop(sql_store):
    await sql_store.increment_click_count("missing")
    assert await sql_store.find_by_alias("missing") is None


@pytest.mark.asyncio
async def test_sql_store_unique_alias(sql_store):
    await sql_store.insert(make_record())

    with pytest.raises(AliasAlreadyExistsError):
        await sql_store.insert(make_record(url="https://other.example.com"))

    assert (await sql_store.find_by_alias("abc123")).original_url == "https://example.com/page"


@pytest.mark.asyncio
async def test_sql_store_wraps_driver_errors():
    store = SQLMappingStore("sqlite+aiosqlite:///:memory:")
    # Tables were never created.
    with pytest.raises(StoreError):
        await store.find_by_alias("abc123")
    await store.close()


# -------------------------------
# Redis
# -------------------------------


@pytest.fixture
def redis_client():
    client = AsyncMock()
    client.msetnx.return_value = True
    return client


@pytest.mark.asyncio
async def test_redis_store_insert_writes_record_and_counter(redis_client):
    store = RedisMappingStore(client=redis_client)

    stored = await store.insert(make_record())

    assert stored.id
    [mapping], _ = redis_client.msetnx.call_args
    assert set(mapping) == {"link:abc123", "link:abc123:clicks"}
    assert mapping["link:abc123:clicks"] == 0
    payload = json.loads(mapping["link:abc123"])
    assert payload["original_url"] == "https://example.com/page"
    assert "click_count" not in payload


@pytest.mark.asyncio
async def test_redis_store_insert_duplicate(redis_client):
    redis_client.msetnx.return_value = False
    store = RedisMappingStore(client=redis_client)

    with pytest.raises(AliasAlreadyExistsError):
        await store.insert(make_record())


@pytest.mark.asyncio
async def test_redis_store_find_combines_record_and_counter(redis_client):
    payload = make_record().model_copy(update={"id": "r1"}).model_dump_json(exclude={"click_count"})
    redis_client.mget.return_value = [payload, "7"]
    store = RedisMappingStore(client=redis_client)

    found = await store.find_by_alias("abc123")

    redis_client.mget.assert_awaited_once_with("link:abc123", "link:abc123:clicks")
    assert found.id == "r1"
    assert found.original_url == "https://example.com/page"
    assert found.click_count == 7


@pytest.mark.asyncio
async def test_redis_store_find_missing(redis_client):
    redis_client.mget.return_value = [None, None]
    store = RedisMappingStore(client=redis_client)

    assert await store.find_by_alias("abc123") is None


@pytest.mark.asyncio
async def test_redis_store_increment_uses_incr(redis_client):
    store = RedisMappingStore(client=redis_client)

    await store.increment_click_count("abc123")

    redis_client.incr.assert_awaited_once_with("link:abc123:clicks")


@pytest.mark.asyncio
@pytest.mark.parametrize("operation, args", [
    ("find_by_alias", ("abc123",)),
    ("insert", (make_record(),)),
    ("increment_click_count", ("abc123",)),
])
async def test_redis_store_wraps_connection_errors(redis_client, operation, args):
    redis_client.mget.side_effect = redis.ConnectionError("down")
    redis_client.msetnx.side_effect = redis.ConnectionError("down")
    redis_client.incr.side_effect = redis.ConnectionError("down")
    store = RedisMappingStore(client=redis_client)

    with pytest.raises(StoreError):
        await getattr(store, operation)(*args)


@pytest.mark.asyncio
async def test_redis_store_connect_pings(redis_client):
    store = RedisMappingStore(client=redis_client)
    await store.connect()
    redis_client.ping.assert_awaited_once()

    redis_client.ping.side_effect = redis.ConnectionError("down")
    with pytest.raises(StoreError):
        await store.connect()


# -------------------------------
# Backend selection
# -------------------------------


@pytest.mark.parametrize("backend, expected", [
    ("memory", InMemoryMappingStore),
    ("redis", RedisMappingStore),
    ("SQL", SQLMappingStore),
])
def test_build_store_selects_backend(backend, expected):
    settings = Settings(STORE_BACKEND=backend, DATABASE_URL="sqlite+aiosqlite:///:memory:")
    assert isinstance(build_store(settings), expected)


def test_build_store_rejects_unknown_backend():
    with pytest.raises(ValueError):
        build_store(Settings(STORE_BACKEND="mongo"))
