"""
Key/value caches with a time-to-live.

- RedisCache: shared across workers, entries expire via SETEX
- TTLCache: in-process fallback when no REDIS_URL is configured
- NullCache: stores nothing

Caches are handed to the code that uses them (FastAPI `app.state`, or an
explicit argument) rather than living in module globals, so tests can pass a
`NullCache` or a cache driven by a fake clock.
"""

from __future__ import annotations

import json
import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Hashable, Protocol

from redis import asyncio as redis_asyncio

logger = logging.getLogger(__name__)


class Cache(Protocol):
    ttl_s: float

    async def get(self, key: Hashable) -> Any | None: ...

    async def put(self, key: Hashable, value: Any) -> None: ...


class RedisCache:
    """
    Values are stored as JSON under `prefix` + key. Redis errors are logged
    and treated as a miss; the cache never fails the caller.
    """

    def __init__(self, client: redis_asyncio.Redis, *, ttl_s: float, prefix: str = "cache:") -> None:
        if ttl_s <= 0:
            raise ValueError("ttl_s must be positive.")
        self.client = client
        self.ttl_s = float(ttl_s)
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, *, ttl_s: float, prefix: str = "cache:") -> "RedisCache":
        return cls(redis_asyncio.from_url(url, decode_responses=True), ttl_s=ttl_s, prefix=prefix)

    def _key(self, key: Hashable) -> str:
        if isinstance(key, tuple):
            return self.prefix + ":".join(str(part) for part in key)
        return f"{self.prefix}{key}"

    async def get(self, key: Hashable) -> Any | None:
        try:
            raw = await self.client.get(self._key(key))
        except Exception as exc:
            logger.warning("cache_get_failed key=%s error=%s", self._key(key), exc)
            return None
        if raw is None:
            return None
        return json.loads(raw)

    async def put(self, key: Hashable, value: Any) -> None:
        try:
            await self.client.setex(self._key(key), max(1, int(self.ttl_s)), json.dumps(value, default=str))
        except Exception as exc:
            logger.warning("cache_put_failed key=%s error=%s", self._key(key), exc)

    async def close(self) -> None:
        await self.client.aclose()


class TTLCache:
    def __init__(
        self,
        *,
        ttl_s: float,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_s <= 0:
            raise ValueError("ttl_s must be positive.")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive.")
        self.ttl_s = float(ttl_s)
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: Hashable) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def put(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (self._clock() + self.ttl_s, value)
        self._entries.move_to_end(key)
        # Oldest insert goes first once full.
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()


class NullCache:
    ttl_s = 0.0

    async def get(self, key: Hashable) -> Any | None:
        return None

    async def put(self, key: Hashable, value: Any) -> None:
        return None
