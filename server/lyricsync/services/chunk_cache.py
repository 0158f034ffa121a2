"""Key-value cache for per-chunk enrichment results.

Writes are last-write-wins with no read-modify-write, so concurrent
requests for the same chunk at worst both call the AI and store
equivalent values.
"""

import fnmatch
import json
import threading
import time
from typing import Any, Protocol

import redis.asyncio as aioredis

from lyricsync.config import settings


class ChunkCache(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl: int) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def scan(self, pattern: str) -> list[str]: ...


class MemoryChunkCache:
    """Thread-safe in-process cache. Good for development and tests.

    Production deployment should use :class:`RedisChunkCache`; the
    interface is the same.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[Any, float | None]] = {}
        self._lock = threading.Lock()

    def _alive(self, key: str, now: float) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        expires_at = entry[1]
        if expires_at is not None and expires_at <= now:
            del self._entries[key]
            return False
        return True

    async def get(self, key: str) -> Any | None:
        with self._lock:
            if not self._alive(key, time.monotonic()):
                return None
            return json.loads(self._entries[key][0])

    async def set(self, key: str, value: Any, ttl: int) -> None:
        expires_at = time.monotonic() + ttl if ttl > 0 else None
        # Stored serialized so callers never share mutable state
        with self._lock:
            self._entries[key] = (json.dumps(value, ensure_ascii=False), expires_at)

    async def delete(self, *keys: str) -> int:
        removed = 0
        with self._lock:
            for key in keys:
                if self._entries.pop(key, None) is not None:
                    removed += 1
        return removed

    async def scan(self, pattern: str) -> list[str]:
        now = time.monotonic()
        with self._lock:
            return [k for k in list(self._entries) if self._alive(k, now) and fnmatch.fnmatchcase(k, pattern)]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class RedisChunkCache:
    """Redis-backed cache storing JSON values with an expiry."""

    def __init__(self, url: str | None = None, client: aioredis.Redis | None = None) -> None:
        self._client = client or aioredis.from_url(url or settings.redis_url, decode_responses=True)

    async def get(self, key: str) -> Any | None:
        raw = await self._client.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        await self._client.set(key, json.dumps(value, ensure_ascii=False), ex=ttl if ttl > 0 else None)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self._client.delete(*keys)

    async def scan(self, pattern: str) -> list[str]:
        return [key async for key in self._client.scan_iter(match=pattern, count=500)]

    async def close(self) -> None:
        await self._client.aclose()


_memory_cache = MemoryChunkCache()
_redis_cache: RedisChunkCache | None = None


def get_chunk_cache() -> ChunkCache:
    """Cache selected by ``settings.cache_backend``."""
    global _redis_cache
    if settings.cache_backend == "redis":
        if _redis_cache is None:
            _redis_cache = RedisChunkCache()
        return _redis_cache
    return _memory_cache


async def close_chunk_cache() -> None:
    global _redis_cache
    if _redis_cache is not None:
        await _redis_cache.close()
        _redis_cache = None
