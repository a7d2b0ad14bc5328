"""Result cache — TTL-keyed store for provider quotes, aggregate results and the quote index."""

import asyncio
import json
import logging
import time
from collections.abc import Callable
from typing import Any

import redis.asyncio as redis
from pydantic import TypeAdapter

from tripcompare.schemas.comparison import ComparisonResult
from tripcompare.schemas.quote import Quote

logger = logging.getLogger(__name__)

# Default TTLs in seconds
TTL_PROVIDER_QUOTES = 3 * 60      # 3 minutes
TTL_AGGREGATE = 5 * 60            # 5 minutes

_quote_list = TypeAdapter(list[Quote])


class ResultCache:
    """In-process cache with per-entry TTL measured from insertion.

    Values are stored JSON-compatible so every read hands out a fresh copy.
    Expired entries are treated as misses and evicted on access; ``purge_expired``
    sweeps the rest.
    """

    def __init__(
        self,
        provider_ttl: float = TTL_PROVIDER_QUOTES,
        aggregate_ttl: float = TTL_AGGREGATE,
        clock: Callable[[], float] = time.monotonic,
    ):
        if provider_ttl > aggregate_ttl:
            raise ValueError("provider TTL must not exceed aggregate TTL")
        self.provider_ttl = provider_ttl
        self.aggregate_ttl = aggregate_ttl
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        """Get a value. Returns None on miss or expiry."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return json.loads(value)

    async def put(self, key: str, value: Any, ttl: float) -> bool:
        if ttl <= 0:
            return False
        raw = json.dumps(value, default=str)
        async with self._lock:
            self._entries[key] = (raw, self._clock() + ttl)
        return True

    async def invalidate(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def purge_expired(self) -> int:
        async with self._lock:
            now = self._clock()
            stale = [k for k, (_, exp) in self._entries.items() if now >= exp]
            for k in stale:
                del self._entries[k]
            return len(stale)

    async def size(self) -> int:
        """Number of unexpired entries."""
        async with self._lock:
            now = self._clock()
            return sum(1 for _, exp in self._entries.values() if now < exp)

    async def close(self):
        async with self._lock:
            self._entries.clear()

    # Typed helpers

    def provider_key(self, provider_id: str, criteria_hash: str) -> str:
        return f"quotes:{provider_id}:{criteria_hash}"

    def aggregate_key(self, request_hash: str) -> str:
        return f"comparison:{request_hash}"

    def quote_key(self, quote_id: str) -> str:
        return f"quote:{quote_id}"

    async def get_quotes(self, provider_id: str, criteria_hash: str) -> list[Quote] | None:
        raw = await self.get(self.provider_key(provider_id, criteria_hash))
        return _quote_list.validate_python(raw) if raw is not None else None

    async def set_quotes(self, provider_id: str, criteria_hash: str, quotes: list[Quote]):
        data = [q.model_dump(mode="json") for q in quotes]
        await self.put(self.provider_key(provider_id, criteria_hash), data, self.provider_ttl)

    async def get_comparison(self, request_hash: str) -> ComparisonResult | None:
        raw = await self.get(self.aggregate_key(request_hash))
        return ComparisonResult.model_validate(raw) if raw is not None else None

    async def set_comparison(self, request_hash: str, result: ComparisonResult):
        await self.put(self.aggregate_key(request_hash), result.model_dump(mode="json"), self.aggregate_ttl)

    async def get_quote(self, quote_id: str) -> Quote | None:
        raw = await self.get(self.quote_key(quote_id))
        return Quote.model_validate(raw) if raw is not None else None

    async def set_quote(self, quote: Quote, ttl: float):
        await self.put(self.quote_key(quote.id), quote.model_dump(mode="json"), ttl)


class RedisResultCache(ResultCache):
    """Redis-backed variant; expiry is delegated to Redis."""

    def __init__(
        self,
        redis_url: str,
        provider_ttl: float = TTL_PROVIDER_QUOTES,
        aggregate_ttl: float = TTL_AGGREGATE,
        prefix: str = "tripcompare:",
    ):
        super().__init__(provider_ttl, aggregate_ttl)
        self._redis_url = redis_url
        self._prefix = prefix
        self._redis: redis.Redis | None = None

    async def _get_redis(self) -> redis.Redis | None:
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    self._redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._redis.ping()
            except (redis.RedisError, OSError) as e:
                logger.warning(f"Redis unavailable, cache disabled: {e}")
                self._redis = None
                return None
        return self._redis

    async def get(self, key: str) -> Any | None:
        try:
            r = await self._get_redis()
            if r is None:
                return None
            raw = await r.get(self._prefix + key)
            if raw is None:
                return None
            return json.loads(raw)
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    async def put(self, key: str, value: Any, ttl: float) -> bool:
        if ttl <= 0:
            return False
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.set(self._prefix + key, json.dumps(value, default=str), px=int(ttl * 1000))
            return True
        except redis.RedisError as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False

    async def invalidate(self, key: str) -> bool:
        try:
            r = await self._get_redis()
            if r is None:
                return False
            return bool(await r.delete(self._prefix + key))
        except redis.RedisError:
            return False

    async def purge_expired(self) -> int:
        return 0

    async def size(self) -> int:
        try:
            r = await self._get_redis()
            if r is None:
                return 0
            count = 0
            async for _ in r.scan_iter(match=self._prefix + "*"):
                count += 1
            return count
        except redis.RedisError:
            return 0

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None
