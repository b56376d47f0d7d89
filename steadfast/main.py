"""Composition root for steadfast.

Builds the ResilienceContext: one explicit object owning the rate-limit
buckets, HTTP client, cache, state store and scheduler. The host application
creates it once at startup, passes it to whatever needs it, and closes it
once at shutdown.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import httpx

# --- Infrastructure Layer ---
# Config
from steadfast.infrastructure.config.settings import (
    get_cache_ttl_overrides, get_data_dir, get_log_file, get_log_level,
    get_rate_limit_overrides, get_redis_url, load_configuration,
)
# Monitoring
from steadfast.infrastructure.monitoring.logger_setup import LogRotator, setup_logging
# Resilience
from steadfast.infrastructure.resilience.rate_limiter import RateLimiterRegistry
from steadfast.infrastructure.resilience.api_retry import EventHandler, RateLimitedClient
# Cache
from steadfast.infrastructure.cache.caching_service import ReadThroughCache
from steadfast.infrastructure.cache.redis_tier import RedisCacheTier
# Storage
from steadfast.infrastructure.storage.tiered_store import TieredStore
# Scheduling
from steadfast.infrastructure.scheduling.task_scheduler import TaskScheduler
from steadfast.infrastructure.scheduling.maintenance_jobs import register_default_jobs

logger = logging.getLogger(__name__)


@dataclass
class ResilienceContext:
    """Everything the host needs, owned in one place."""
    rate_limiter: RateLimiterRegistry
    client: RateLimitedClient
    cache: ReadThroughCache
    store: TieredStore
    scheduler: TaskScheduler
    log_rotator: Optional[LogRotator] = None
    _closed: bool = field(default=False, repr=False)

    async def aclose(self) -> None:
        """Stops jobs and releases the HTTP, cache and storage handles.

        Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True
        await self.scheduler.shutdown()
        await self.client.aclose()
        await self.cache.close()
        await self.store.close()
        logger.info("Resilience context closed.")

    async def __aenter__(self) -> "ResilienceContext":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


async def create_context(
    redis_url: Optional[str] = None,
    data_dir: Optional[Path] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    event_handler: Optional[EventHandler] = None,
    configure_logging: bool = False,
    start_maintenance: bool = False,
    persist_state: Optional[Callable[[], Awaitable[Any]]] = None,
    queue_gc: Optional[Callable[[], Any]] = None,
) -> ResilienceContext:
    """Creates and wires up all components.

    Args:
        redis_url: Connection string; defaults to the REDIS_URL setting.
            Used independently by the state store and the cache tier.
        data_dir: Local directory for the embedded store / JSON fallback.
        http_client: Optional preconfigured httpx client.
        event_handler: Optional sink for request lifecycle events.
        configure_logging: Install the root logging handlers from settings.
        start_maintenance: Register the default maintenance jobs. Requires a
            running event loop (always true inside this coroutine).
        persist_state: Host coroutine for the state-autosave job.
        queue_gc: Host callable for the queue-gc job.
    """
    logger.info("Initializing resilience context...")
    load_configuration()

    log_rotator = None
    if configure_logging:
        log_rotator = setup_logging(log_level=get_log_level(), log_file=get_log_file())

    url = redis_url if redis_url is not None else get_redis_url()

    rate_limiter = RateLimiterRegistry(overrides=get_rate_limit_overrides())
    client = RateLimitedClient(rate_limiter, http_client=http_client, event_handler=event_handler)

    remote_tier = await RedisCacheTier.connect(url) if url else None
    if not url:
        logger.info("No REDIS_URL set, cache is in-memory only")
    cache = ReadThroughCache(remote_tier=remote_tier, ttl_config=get_cache_ttl_overrides())

    store = TieredStore(data_dir=data_dir or get_data_dir())
    backend = await store.init(url)
    logger.info(f"State persistence backend: {backend}")

    scheduler = TaskScheduler()
    context = ResilienceContext(
        rate_limiter=rate_limiter,
        client=client,
        cache=cache,
        store=store,
        scheduler=scheduler,
        log_rotator=log_rotator,
    )

    if start_maintenance:
        register_default_jobs(
            scheduler,
            cache=cache,
            log_rotator=log_rotator,
            persist_state=persist_state,
            queue_gc=queue_gc,
        )

    logger.info("Resilience context ready.")
    return context
