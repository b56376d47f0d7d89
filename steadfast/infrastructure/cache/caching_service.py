"""Concrete implementation of the read-through Caching Service.

Manages a local in-memory tier and an optional remote tier (Redis) with
per-prefix TTLs. On a miss the caller's fetch function is invoked once per
key even under concurrent load, and a failed fetch falls back to whatever
(possibly expired) local value exists.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from steadfast.domain.interfaces.cache import CacheService, RemoteCacheTier
from steadfast.domain.models.common import CacheKey, CachePrefix, CacheStats, FetchFn

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60
KEY_DELIMITER = ":"

# Default TTLs by key prefix (seconds)
TTL_CONFIG: Dict[str, float] = {
    "faceit_player": 10 * 60,
    "faceit_stats": 10 * 60,
    "faceit_history": 5 * 60,
    "faceit_match": 60 * 60,   # match stats don't change
    "twitch_stream": 2 * 60,
    "autorole_config": 60,
}


@dataclass
class CacheEntry:
    """Internal representation of a cache entry with expiry."""
    key: CacheKey
    value: Any
    expires_at: float # Unix timestamp when the entry expires

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class ReadThroughCache(CacheService):
    """Two-tier read-through cache (local memory, optional remote)."""

    def __init__(
        self,
        remote_tier: Optional[RemoteCacheTier] = None,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        ttl_config: Optional[Mapping[str, float]] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes the caching service.

        Args:
            remote_tier: Optional shared tier checked after a local miss.
            default_ttl: TTL used when neither the caller nor the prefix
                table supplies one.
            ttl_config: Per-prefix TTL overrides merged over TTL_CONFIG.
            clock: Wall clock used for expiry; injectable for tests.
        """
        self.remote_tier = remote_tier
        self.default_ttl = default_ttl
        self.ttl_config: Dict[CachePrefix, float] = {**TTL_CONFIG, **(ttl_config or {})}
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._inflight: Dict[CacheKey, "asyncio.Task[Any]"] = {}
        logger.info(
            f"ReadThroughCache initialized. backend={self.backend_name}, default_ttl={default_ttl}s"
        )

    @property
    def backend_name(self) -> str:
        return f"{self.remote_tier.name}+memory" if self.remote_tier else "memory"

    def resolve_ttl(self, key: CacheKey, ttl: Optional[float] = None) -> float:
        """Explicit ttl, then the key prefix's TTL, then the default."""
        if ttl is not None:
            return ttl
        prefix = CachePrefix(key.split(KEY_DELIMITER, 1)[0])
        return self.ttl_config.get(prefix, self.default_ttl)

    # --- CacheService Interface Implementation ---

    async def get(self, key: CacheKey, fetch_fn: FetchFn, ttl: Optional[float] = None) -> Any:
        """Returns cached data for key, fetching and caching it on a miss."""
        ttl = self.resolve_ttl(key, ttl)

        # Local tier is always checked first
        entry = self._entries.get(key)
        if entry and entry.is_valid(self._clock()):
            logger.debug(f"Local cache hit for key: {key}")
            return entry.value

        if self.remote_tier is not None:
            try:
                remote_value = await self.remote_tier.get(key)
            except Exception as e:
                logger.warning(f"Remote cache read failed for key {key}: {e}. Treating as miss.")
                remote_value = None
            if remote_value is not None:
                logger.debug(f"Remote cache hit for key: {key}")
                self._store_local(key, remote_value, ttl)
                return remote_value

        logger.debug(f"Cache miss for key: {key}")
        try:
            return await self._fetch_once(key, fetch_fn, ttl)
        except Exception:
            stale = self._entries.get(key)
            if stale is not None:
                logger.warning(f"Fetch failed for key {key}, returning stale data", exc_info=True)
                return stale.value
            raise

    async def _fetch_once(self, key: CacheKey, fetch_fn: FetchFn, ttl: float) -> Any:
        """Shares one in-flight fetch between concurrent misses on a key."""
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_store(key, fetch_fn, ttl))
            self._inflight[key] = task
            task.add_done_callback(lambda done, k=key: self._clear_inflight(k, done))
        else:
            logger.debug(f"Joining in-flight fetch for key: {key}")
        # shield: a cancelled waiter must not cancel the shared fetch
        return await asyncio.shield(task)

    def _clear_inflight(self, key: CacheKey, task: "asyncio.Task[Any]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _fetch_and_store(self, key: CacheKey, fetch_fn: FetchFn, ttl: float) -> Any:
        data = await fetch_fn()
        if data is not None:
            await self.set(key, data, ttl)
        return data

    def _store_local(self, key: CacheKey, value: Any, ttl: float) -> None:
        self._entries[key] = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl)

    async def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        """Writes value to the local tier and, if present, the remote tier."""
        ttl = self.resolve_ttl(key, ttl)
        self._store_local(key, value, ttl)
        logger.debug(f"Stored item in local cache: key={key}, ttl={ttl}s")

        if self.remote_tier is not None:
            try:
                await self.remote_tier.set(key, value, ttl)
            except Exception as e:
                logger.warning(f"Remote cache write failed for key {key}: {e}")

    # Names used by host integrations
    get_cached_data = get
    update_cache = set

    async def invalidate(self, key: CacheKey) -> None:
        self._entries.pop(key, None)
        if self.remote_tier is not None:
            try:
                await self.remote_tier.delete(key)
            except Exception as e:
                logger.warning(f"Remote cache delete failed for key {key}: {e}")

    async def invalidate_prefix(self, prefix: CachePrefix) -> None:
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]
        if self.remote_tier is not None:
            try:
                await self.remote_tier.delete_prefix(prefix)
            except Exception as e:
                logger.warning(f"Remote cache prefix delete failed for '{prefix}': {e}")

    def cleanup(self) -> int:
        """Removes local entries whose expiry has passed.

        Remote entries expire on their own and are not swept here.
        """
        now = self._clock()
        expired = [k for k, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info(f"Cache cleanup: removed {len(expired)} expired entries")
        return len(expired)

    def stats(self) -> CacheStats:
        now = self._clock()
        active = sum(1 for entry in self._entries.values() if entry.is_valid(now))
        return CacheStats(
            total=len(self._entries),
            active=active,
            expired=len(self._entries) - active,
            backend=self.backend_name,
        )

    async def close(self) -> None:
        """Closes the remote tier and clears local entries."""
        if self.remote_tier is not None:
            try:
                await self.remote_tier.close()
            except Exception as e:
                logger.warning(f"Error closing remote cache tier: {e}")
            self.remote_tier = None
        self._entries.clear()
