"""Redis connection helper shared by the state store and the cache tier.

Connecting is a probe: the caller supplies a URL, we retry a small bounded
number of times, and on failure the client is closed and None is returned
so the caller can fall through to a local backend.
"""

import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError, RedisError, TimeoutError

logger = logging.getLogger(__name__)

CONNECT_RETRIES = 3
RETRY_BASE_DELAY = 0.2 # seconds, doubled per retry
RETRY_MAX_DELAY = 1.0
SOCKET_CONNECT_TIMEOUT = 5.0
SOCKET_TIMEOUT = 5.0


def create_redis_client(url: str, retries: int = CONNECT_RETRIES) -> Redis:
    """Builds a client with bounded exponential-backoff retries."""
    retry = Retry(
        backoff=ExponentialBackoff(cap=RETRY_MAX_DELAY, base=RETRY_BASE_DELAY),
        retries=retries,
    )
    return aioredis.from_url(
        url,
        decode_responses=True,
        retry=retry,
        retry_on_error=[ConnectionError, TimeoutError],
        socket_connect_timeout=SOCKET_CONNECT_TIMEOUT,
        socket_timeout=SOCKET_TIMEOUT,
    )


async def connect_redis(url: str, retries: int = CONNECT_RETRIES) -> Optional[Redis]:
    """Connects and verifies with PING.

    Returns:
        A ready client, or None if the server is unreachable.
    """
    client: Optional[Redis] = None
    try:
        client = create_redis_client(url, retries=retries)
        await client.ping()
    except (RedisError, OSError, ValueError) as e:
        # ValueError covers malformed URLs rejected by from_url
        logger.warning(f"Redis not available at {_redact(url)}: {e}")
        if client is not None:
            try:
                await client.aclose()
            except (RedisError, OSError) as close_err:
                logger.debug(f"Error while closing failed Redis client: {close_err}")
        return None
    logger.info(f"Connected to Redis at {_redact(url)}")
    return client


def _redact(url: str) -> str:
    """Hides the password part of a connection string for logging."""
    if "@" not in url:
        return url
    scheme, _, rest = url.partition("://")
    return f"{scheme}://***@{rest.rsplit('@', 1)[1]}"
