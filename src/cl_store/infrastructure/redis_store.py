"""RedisKeyValueStore — KeyValueStore over plain Redis string keys.

`set_many` runs inside a MULTI/EXEC pipeline so all keys of one ledger
operation become visible together. Expected values are checked under WATCH:
a key that differs is a conflict before MULTI, and one that changes between
the check and EXEC aborts the transaction. TTL writes use SET ... EX, so
Redis expires them on its own.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError, WatchError

from src.cl_common.errors import StoreConflictError, StoreFailureError
from src.cl_store.infrastructure.json_codec import decode_json, encode_json

logger = logging.getLogger(__name__)


class RedisKeyValueStore:
    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisKeyValueStore":
        return cls(aioredis.from_url(redis_url, decode_responses=True))

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(key)
        except RedisError as exc:
            logger.error("redis get failed: key=%s error=%s", key, exc)
            raise StoreFailureError(f"read of {key} failed") from exc
        return decode_json(key, raw) if raw is not None else None

    async def get_many(self, keys: Sequence[str]) -> dict[str, Any]:
        if not keys:
            return {}
        try:
            raws = await self._client.mget(list(keys))
        except RedisError as exc:
            logger.error("redis mget failed: %d keys error=%s", len(keys), exc)
            raise StoreFailureError("batch read failed") from exc
        return {k: decode_json(k, raw) for k, raw in zip(keys, raws) if raw is not None}

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        try:
            await self._client.set(key, encode_json(key, value), ex=ttl_seconds)
        except RedisError as exc:
            logger.error("redis set failed: key=%s error=%s", key, exc)
            raise StoreFailureError(f"write of {key} failed") from exc

    async def set_many(
        self,
        items: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> None:
        if not items:
            return
        encoded = {k: encode_json(k, v) for k, v in items.items()}
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                if expected:
                    keys = list(expected)
                    await pipe.watch(*keys)
                    raws = await pipe.mget(keys)
                    for key, raw in zip(keys, raws):
                        current = decode_json(key, raw) if raw is not None else None
                        if current != expected[key]:
                            logger.warning("redis conflict: key=%s changed since it was read", key)
                            raise StoreConflictError(f"{key} changed since it was read")
                    pipe.multi()
                for k, v in encoded.items():
                    pipe.set(k, v)
                await pipe.execute()
        except WatchError as exc:
            logger.warning("redis transaction aborted by WATCH: keys=%s", list(items))
            raise StoreConflictError("a watched key changed during commit") from exc
        except RedisError as exc:
            logger.error("redis transaction failed: keys=%s error=%s", list(items), exc)
            raise StoreFailureError("write failed") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as exc:
            logger.error("redis delete failed: key=%s error=%s", key, exc)
            raise StoreFailureError(f"delete of {key} failed") from exc

    async def close(self) -> None:
        await self._client.aclose()
