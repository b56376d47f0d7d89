"""Caching Service Implementation.

Provides the read-through cache (in-memory tier plus an optional Redis tier)
with per-prefix TTLs and stale-on-error fallback.
Bounded Context: Cache Management
"""
