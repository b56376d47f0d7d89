"""Redis-backed remote tier for the read-through cache.

Values are stored as JSON under a 'cache:' namespace and expire natively
via Redis EX.
"""

import json
import logging
import re
from typing import Any, Optional

from redis.asyncio import Redis

from steadfast.domain.interfaces.cache import RemoteCacheTier
from steadfast.domain.models.common import CacheKey, CachePrefix
from steadfast.infrastructure.connections.redis_connection import connect_redis

logger = logging.getLogger(__name__)

KEY_NAMESPACE = "cache:"

# Characters with meaning in a SCAN MATCH pattern
_GLOB_SPECIAL = re.compile(r"([\\*?\[\]])")


def escape_glob(text: str) -> str:
    """Escapes text for literal use inside a Redis MATCH pattern."""
    return _GLOB_SPECIAL.sub(r"\\\1", text)


class RedisCacheTier(RemoteCacheTier):
    """Shared cache tier stored in Redis."""

    name = "redis"

    def __init__(self, client: Redis):
        self.client = client

    @classmethod
    async def connect(cls, url: str) -> Optional["RedisCacheTier"]:
        """Returns a connected tier, or None when Redis is unreachable."""
        client = await connect_redis(url)
        if client is None:
            logger.info("Redis not available for cache, using in-memory only")
            return None
        return cls(client)

    def _key(self, key: str) -> str:
        return f"{KEY_NAMESPACE}{key}"

    async def get(self, key: CacheKey) -> Optional[Any]:
        raw = await self.client.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: CacheKey, value: Any, ttl: float) -> None:
        # EX takes whole seconds and must be positive
        await self.client.set(self._key(key), json.dumps(value), ex=max(1, int(ttl)))

    async def delete(self, key: CacheKey) -> None:
        await self.client.delete(self._key(key))

    async def delete_prefix(self, prefix: CachePrefix) -> int:
        removed = 0
        async for redis_key in self.client.scan_iter(match=f"{escape_glob(self._key(prefix))}*"):
            removed += await self.client.delete(redis_key)
        return removed

    async def close(self) -> None:
        await self.client.aclose()
