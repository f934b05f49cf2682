"""Result caching for search aggregation.

Callers only see the `SearchCache` capability (get/set/invalidate), so the
process-local TTL map can be swapped for the Redis-backed cache without
touching the search service. Entries expire by TTL only; writes elsewhere
never invalidate them, so a result may be stale for up to its TTL.
"""

from __future__ import annotations

import asyncio
import fnmatch
import json
import logging
import time
from typing import Any, Awaitable, Callable, Protocol

from redis.exceptions import RedisError

from app.infra.redis import RedisProxy, redis_client
from app.settings import settings

_LOG = logging.getLogger(__name__)

CACHE_TTLS: dict[str, int] = {
	"all": 180,
	"users": 300,
	"posts": 120,
	"groups": 600,
	"institutions": 900,
	"departments": 900,
	"comments": 60,
	"suggestions": 30,
}

CacheLoader = Callable[[], Awaitable[Any]]


class SearchCache(Protocol):
	async def get(self, key: str) -> Any | None: ...

	async def set(self, key: str, value: Any, *, ttl: float) -> None: ...

	async def invalidate(self, pattern: str | None = None) -> int: ...

	def stats(self) -> dict[str, int]: ...


def build_cache_key(kind: str, user_id: str, *parts: object) -> str:
	"""Signature of a search request: kind, caller, then the normalized inputs."""
	tail = ":".join(str(part).lower() for part in parts)
	return f"search:{kind}:{user_id}:{tail}"


class InMemorySearchCache:
	"""Process-local TTL map with an optional periodic sweep."""

	def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
		self._clock = clock
		self._entries: dict[str, tuple[float, Any]] = {}
		self._hits = 0
		self._misses = 0

	async def get(self, key: str) -> Any | None:
		entry = self._entries.get(key)
		if entry is None:
			self._misses += 1
			return None
		expires_at, value = entry
		if expires_at <= self._clock():
			self._entries.pop(key, None)
			self._misses += 1
			return None
		self._hits += 1
		return value

	async def set(self, key: str, value: Any, *, ttl: float) -> None:
		self._entries[key] = (self._clock() + ttl, value)

	async def invalidate(self, pattern: str | None = None) -> int:
		if pattern is None:
			removed = len(self._entries)
			self._entries.clear()
			return removed
		keys = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
		for key in keys:
			del self._entries[key]
		return len(keys)

	def sweep(self) -> int:
		now = self._clock()
		expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
		for key in expired:
			del self._entries[key]
		return len(expired)

	def stats(self) -> dict[str, int]:
		return {"size": len(self._entries), "hits": self._hits, "misses": self._misses}

	async def run_sweeper(self, interval: float) -> None:
		while True:
			await asyncio.sleep(interval)
			removed = self.sweep()
			if removed:
				_LOG.debug("search_cache_swept", extra={"removed": removed, "size": len(self._entries)})


class RedisSearchCache:
	"""JSON values in Redis, shared by every API instance.

	Redis failures degrade to cache misses rather than failing the search.
	"""

	def __init__(self, redis: RedisProxy | None = None, *, namespace: str = "cache:") -> None:
		self.redis = redis or redis_client
		self.namespace = namespace
		self._hits = 0
		self._misses = 0

	def _key(self, key: str) -> str:
		return f"{self.namespace}{key}"

	async def get(self, key: str) -> Any | None:
		try:
			raw = await self.redis.get(self._key(key))
		except RedisError as exc:
			_LOG.warning("search_cache_unavailable", extra={"op": "get", "error": str(exc)})
			self._misses += 1
			return None
		if not raw:
			self._misses += 1
			return None
		try:
			value = json.loads(raw.decode("utf-8") if isinstance(raw, bytes) else str(raw))
		except json.JSONDecodeError:
			self._misses += 1
			return None
		self._hits += 1
		return value

	async def set(self, key: str, value: Any, *, ttl: float) -> None:
		payload = json.dumps(value, default=str)
		try:
			await self.redis.set(self._key(key), payload, px=max(1, int(ttl * 1000)))
		except RedisError as exc:
			_LOG.warning("search_cache_unavailable", extra={"op": "set", "error": str(exc)})

	async def invalidate(self, pattern: str | None = None) -> int:
		removed = 0
		async for key in self.redis.scan_iter(match=self._key(pattern or "search:*")):
			removed += int(await self.redis.delete(key))
		return removed

	def stats(self) -> dict[str, int]:
		return {"hits": self._hits, "misses": self._misses}


async def get_or_set(cache: SearchCache, key: str, *, ttl: float, loader: CacheLoader) -> tuple[Any, bool]:
	"""Return (value, cached). Loader failures propagate and are never cached."""
	cached = await cache.get(key)
	if cached is not None:
		return cached, True
	value = await loader()
	await cache.set(key, value, ttl=ttl)
	return value, False


_cache: SearchCache | None = None


def build_cache(backend: str | None = None) -> SearchCache:
	if (backend or settings.search_cache_backend) == "redis":
		return RedisSearchCache()
	return InMemorySearchCache()


def get_search_cache() -> SearchCache:
	global _cache
	if _cache is None:
		_cache = build_cache()
	return _cache


def set_search_cache(cache: SearchCache | None) -> None:
	global _cache
	_cache = cache
