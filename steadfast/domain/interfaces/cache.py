"""Interfaces for caching mechanisms.

Defines the contract for the read-through cache used by the application and
for the optional shared (remote) tier that sits behind the in-process map.
"""

import abc
from typing import Any, Optional

# Import relevant domain models
from ..models.common import CacheKey, CachePrefix, CacheStats, FetchFn

class CacheService(abc.ABC):
    """Abstract Base Class for read-through caching operations."""

    @abc.abstractmethod
    async def get(self, key: CacheKey, fetch_fn: FetchFn, ttl: Optional[float] = None) -> Any:
        """Returns the cached value for key, calling fetch_fn on a miss.

        Args:
            key: The cache key to retrieve.
            fetch_fn: Async producer of a fresh value.
            ttl: Time-to-live in seconds (resolved from key prefix if None).

        Returns:
            The cached, freshly fetched, or (on fetch failure) stale value.
        """
        pass

    @abc.abstractmethod
    async def set(self, key: CacheKey, value: Any, ttl: Optional[float] = None) -> None:
        """Stores an item in every cache tier.

        Args:
            key: The cache key to store the item under.
            value: A JSON-serializable value.
            ttl: Time-to-live in seconds (resolved from key prefix if None).
        """
        pass

    @abc.abstractmethod
    async def invalidate(self, key: CacheKey) -> None:
        """Removes a single key from every cache tier."""
        pass

    @abc.abstractmethod
    async def invalidate_prefix(self, prefix: CachePrefix) -> None:
        """Removes every key starting with prefix."""
        pass

    @abc.abstractmethod
    def cleanup(self) -> int:
        """Sweeps expired local entries and returns how many were removed."""
        pass

    @abc.abstractmethod
    def stats(self) -> CacheStats:
        """Reports counts for the local tier."""
        pass


class RemoteCacheTier(abc.ABC):
    """Shared cache tier consulted after a local miss.

    Implementations rely on the backing service's native expiry. Errors are
    allowed to propagate; the CacheService treats them as misses.
    """

    name: str = "remote"

    @abc.abstractmethod
    async def get(self, key: CacheKey) -> Optional[Any]:
        pass

    @abc.abstractmethod
    async def set(self, key: CacheKey, value: Any, ttl: float) -> None:
        pass

    @abc.abstractmethod
    async def delete(self, key: CacheKey) -> None:
        pass

    @abc.abstractmethod
    async def delete_prefix(self, prefix: CachePrefix) -> int:
        pass

    @abc.abstractmethod
    async def close(self) -> None:
        pass
