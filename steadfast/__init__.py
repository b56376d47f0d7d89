"""steadfast: resilience layer for calling flaky HTTP APIs and surviving restarts.

Rate-limited retrying HTTP client, read-through cache, tiered state store
and a periodic job scheduler, composed through ResilienceContext.
"""

from steadfast.main import ResilienceContext, create_context

__all__ = ["ResilienceContext", "create_context"]
__version__ = "0.1.0"
