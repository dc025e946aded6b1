import json
import uuid
import redis.asyncio as redis
from typing import Optional

from .base import MappingStore
from .exceptions import AliasAlreadyExistsError, StoreError
from ..schemas import URLRecord


def link_key(alias: str) -> str:
    return f"link:{alias}"


def clicks_key(alias: str) -> str:
    return f"link:{alias}:clicks"


class RedisMappingStore(MappingStore):
    """Mapping store on Redis.

    The record (minus its counter) is a JSON string under ``link:<alias>``;
    the click count is a separate integer under ``link:<alias>:clicks`` so it
    can be bumped with INCR. Both keys are written with one MSETNX, which
    fails as a whole if the alias is already present.
    """

    def __init__(self, url: str = None, client: Optional[redis.Redis] = None):
        self.url = url
        self.client: Optional[redis.Redis] = client

    async def connect(self) -> None:
        if self.client is None:
            self.client = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True
            )
        try:
            await self.client.ping()
        except redis.RedisError as e:
            raise StoreError(f"Redis is unreachable: {e}") from e

    async def close(self) -> None:
        if self.client:
            await self.client.aclose()

    async def find_by_alias(self, alias: str) -> Optional[URLRecord]:
        try:
            raw, clicks = await self.client.mget(link_key(alias), clicks_key(alias))
        except redis.RedisError as e:
            raise StoreError(f"Lookup of '{alias}' failed: {e}") from e
        if raw is None:
            return None
        data = json.loads(raw)
        data["click_count"] = int(clicks or 0)
        return URLRecord.model_validate(data)

    async def insert(self, record: URLRecord) -> URLRecord:
        stored = record.model_copy(update={"id": uuid.uuid4().hex})
        payload = stored.model_dump_json(exclude={"click_count"})
        try:
            created = await self.client.msetnx({
                link_key(stored.short_url): payload,
                clicks_key(stored.short_url): stored.click_count,
            })
        except redis.RedisError as e:
            raise StoreError(f"Insert of '{stored.short_url}' failed: {e}") from e
        if not created:
            raise AliasAlreadyExistsError(f"Alias '{stored.short_url}' already exists")
        return stored

    async def increment_click_count(self, alias: str) -> None:
        try:
            await self.client.incr(clicks_key(alias))
        except redis.RedisError as e:
            raise StoreError(f"Click count increment of '{alias}' failed: {e}") from e
