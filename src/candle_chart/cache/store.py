"""Key-value cache stores: in-memory (tests, no Redis) and redis.asyncio."""

from __future__ import annotations

import fnmatch
import time
from collections.abc import Callable
from typing import Protocol

import redis.asyncio as aioredis
import structlog

logger = structlog.get_logger()


class CacheStore(Protocol):
    async def get(self, key: str) -> bytes | None: ...

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def keys(self, pattern: str) -> list[str]: ...


class MemoryCacheStore:
    """
    Process-local store with per-key expiry.

    `clock` returns seconds; tests pass a controllable clock to expire entries.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._items: dict[str, tuple[bytes, float]] = {}

    async def get(self, key: str) -> bytes | None:
        item = self._items.get(key)
        if item is None:
            return None
        value, expiry = item
        if expiry and self.clock() >= expiry:
            del self._items[key]
            return None
        return value

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        now = self.clock()
        self._purge_expired(now)
        expiry = now + ttl_seconds if ttl_seconds > 0 else 0.0
        self._items[key] = (value, expiry)

    async def delete(self, key: str) -> bool:
        return self._items.pop(key, None) is not None

    async def keys(self, pattern: str) -> list[str]:
        self._purge_expired(self.clock())
        return [k for k in self._items if fnmatch.fnmatchcase(k, pattern)]

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (_, expiry) in self._items.items() if expiry and now >= expiry]
        for key in expired:
            del self._items[key]


class RedisCacheStore:
    def __init__(self, redis_url: str = "redis://redis:6379") -> None:
        self.redis_url = redis_url
        self.client: aioredis.Redis | None = None

    async def connect(self) -> None:
        self.client = aioredis.from_url(
            self.redis_url,
            decode_responses=False,
            max_connections=20,
        )
        await self.client.ping()
        logger.info("redis_connected", url=self.redis_url)

    async def disconnect(self) -> None:
        if self.client:
            await self.client.aclose()
            logger.info("redis_disconnected")

    async def get(self, key: str) -> bytes | None:
        assert self.client is not None
        return await self.client.get(key)

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        assert self.client is not None
        if ttl_seconds > 0:
            await self.client.setex(key, ttl_seconds, value)
        else:
            await self.client.set(key, value)

    async def delete(self, key: str) -> bool:
        assert self.client is not None
        return await self.client.delete(key) > 0

    async def keys(self, pattern: str) -> list[str]:
        """SCAN-based match, so large keyspaces are not blocked."""
        assert self.client is not None
        found = []
        async for key in self.client.scan_iter(match=pattern, count=100):
            found.append(key.decode() if isinstance(key, bytes) else key)
        return found
