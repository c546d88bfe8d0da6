"""Redis-backed effective permission rows.

Layout (``prefix`` defaults to ``accesscore:effective``)::

    {prefix}:rows:{tenant}:{user}   hash   resource_key -> row JSON
    {prefix}:index:{tenant}         zset   user -> expires_at (epoch seconds)

Ids are percent-encoded inside keys, so no id can reach into another
key. The row hash expires at the rows' ``expires_at`` so Redis reclaims
stale keys on its own; readers still check ``is_expired`` because expiry
is not instantaneous. Index members are scored by the same instant and
pruned when the index is read. Replacement runs in a MULTI/EXEC
transaction, which makes a recompute atomic for readers on any process.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable
from urllib.parse import quote

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..config import AccessConfig, DEFAULT_CACHE_KEY_PREFIX
from ..exceptions import CacheError, ConfigurationError
from .models import effective_permission_adapter
from .store import CacheRow, CacheStore

logger = logging.getLogger(__name__)


def _key_part(value: str) -> str:
    return quote(value, safe="")


class RedisCacheStore(CacheStore):
    """Effective permission rows in Redis.

    Args:
        client: ``redis.asyncio.Redis`` created with ``decode_responses=True``.
        prefix: Key prefix for every key this store writes.
    """

    def __init__(self, client: Any, *, prefix: str = DEFAULT_CACHE_KEY_PREFIX) -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_config(cls, config: AccessConfig) -> RedisCacheStore:
        if not config.redis_url:
            raise ConfigurationError("REDIS_URL is required for the Redis permission cache")
        client = aioredis.from_url(config.redis_url, decode_responses=True)
        return cls(client, prefix=config.cache_key_prefix)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Keys ────────────────────────────────────────────

    def rows_key(self, user_id: str, tenant_id: str) -> str:
        return f"{self._prefix}:rows:{_key_part(tenant_id)}:{_key_part(user_id)}"

    def index_key(self, tenant_id: str) -> str:
        return f"{self._prefix}:index:{_key_part(tenant_id)}"

    # ── CacheStore ──────────────────────────────────────

    async def delete_cache_rows(self, user_id: str, tenant_id: str) -> None:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(self.rows_key(user_id, tenant_id))
                pipe.zrem(self.index_key(tenant_id), user_id)
                await pipe.execute()
        except RedisError as e:
            raise CacheError(f"Redis delete failed: {e}", user_id=user_id, tenant_id=tenant_id) from e

    async def upsert_cache_row(self, row: CacheRow) -> None:
        key = self.rows_key(row.user_id, row.tenant_id)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.hset(key, row.resource_key, row.model_dump_json())
                pipe.expireat(key, row.expires_at)
                pipe.zadd(self.index_key(row.tenant_id), {row.user_id: row.expires_at.timestamp()}, gt=True)
                await pipe.execute()
        except RedisError as e:
            raise CacheError(f"Redis upsert failed: {e}", user_id=row.user_id, tenant_id=row.tenant_id) from e

    async def replace_rows(self, user_id: str, tenant_id: str, rows: Iterable[CacheRow]) -> None:
        rows = list(rows)
        key = self.rows_key(user_id, tenant_id)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                if rows:
                    expires_at = max(row.expires_at for row in rows)
                    pipe.hset(key, mapping={row.resource_key: row.model_dump_json() for row in rows})
                    pipe.expireat(key, expires_at)
                    pipe.zadd(self.index_key(tenant_id), {user_id: expires_at.timestamp()})
                else:
                    pipe.zrem(self.index_key(tenant_id), user_id)
                await pipe.execute()
        except RedisError as e:
            raise CacheError(f"Redis replace failed: {e}", user_id=user_id, tenant_id=tenant_id) from e
        logger.debug("Stored %d effective permission rows under %s", len(rows), key)

    async def cache_rows(self, user_id: str, tenant_id: str) -> list[CacheRow]:
        try:
            raw = await self._client.hgetall(self.rows_key(user_id, tenant_id))
        except RedisError as e:
            raise CacheError(f"Redis read failed: {e}", user_id=user_id, tenant_id=tenant_id) from e
        return [effective_permission_adapter.validate_json(value) for value in raw.values()]

    async def users_with_rows(self, tenant_id: str) -> set[str]:
        """Users whose rows have not expired yet; expired members are pruned first."""
        key = self.index_key(tenant_id)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(key, "-inf", time.time())
                pipe.zrange(key, 0, -1)
                _, members = await pipe.execute()
        except RedisError as e:
            raise CacheError(f"Redis index read failed: {e}", tenant_id=tenant_id) from e
        return set(members)


__all__ = ["RedisCacheStore"]
