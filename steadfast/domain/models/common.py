"""Defines common Value Objects used across the resilience contexts.

These objects represent simple values like cache keys, domain names and job
names, plus the structured reports returned by the stats/list operations.
"""

from typing import Any, Awaitable, Callable, Dict, NewType, TypedDict

# === Caching Context ===
CacheKey = NewType("CacheKey", str)              # Unique key for a cache entry
CachePrefix = NewType("CachePrefix", str)        # Text before the first ':' of a key (e.g., 'faceit_player')

# Producer invoked on a cache miss. Usually wraps a RateLimitedClient call.
FetchFn = Callable[[], Awaitable[Any]]

# === Rate Limiting Context ===
DomainName = NewType("DomainName", str)          # Rate bucket name (e.g., 'faceit', 'twitch')

# === Persistence Context ===
# The single opaque application-state document.
StateDocument = Dict[str, Any]

# === Scheduling Context ===
JobName = NewType("JobName", str)

# --- Structured Data ---
class CacheStats(TypedDict):
    """Snapshot of the local cache tier."""
    total: int
    active: int
    expired: int
    backend: str  # 'memory' or 'redis+memory'

class BucketStats(TypedDict):
    """Usage of one rate bucket within its current window."""
    active_requests: int
    max_requests: int
    window_seconds: float
    utilization: str  # e.g. '40%'

class JobInfo(TypedDict):
    """Public view of a registered periodic job."""
    name: str
    interval_seconds: float
    interval: str  # human readable, e.g. '5min'
