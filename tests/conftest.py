import logging
import re
from typing import Any, Callable, Dict, Optional
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from steadfast.infrastructure.config.settings import clear_test_config
from steadfast.infrastructure.resilience.rate_limiter import RateLimitPolicy, RateLimiterRegistry


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """Keep tests on the local-only paths regardless of the developer's shell."""
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.delenv("STEADFAST_DATA_DIR", raising=False)
    yield
    clear_test_config()


@pytest.fixture
def restore_root_logging():
    """Puts root logger handlers back after tests that call setup_logging."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in saved_handlers:
            handler.close()
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)


@pytest.fixture
def fast_registry():
    """Registry whose default policy retries quickly and never throttles in tests."""
    return RateLimiterRegistry(policies={
        "default": RateLimitPolicy(max_requests=100, window_seconds=60, max_retries=3, base_delay_seconds=0.01),
    })


@pytest.fixture
def make_http_client():
    """Factory building an httpx.AsyncClient served by a handler function."""
    def _make(handler: Callable[[httpx.Request], Any]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_redis_client():
    """A redis.asyncio.Redis stand-in backed by a dict."""
    data: Dict[str, str] = {}
    client = MagicMock()

    async def _get(key: str) -> Optional[str]:
        return data.get(key)

    async def _set(key: str, value: str, ex: Optional[int] = None) -> bool:
        data[key] = value
        return True

    async def _delete(*keys: str) -> int:
        return sum(1 for key in keys if data.pop(key, None) is not None)

    async def _scan_iter(match: str = "*"):
        # Only trailing-star patterns are used; unescape the literal part
        prefix = re.sub(r"\\(.)", r"\1", match[:-1] if match.endswith("*") else match)
        for key in list(data):
            if key.startswith(prefix):
                yield key

    client.get = AsyncMock(side_effect=_get)
    client.set = AsyncMock(side_effect=_set)
    client.delete = AsyncMock(side_effect=_delete)
    client.scan_iter = MagicMock(side_effect=_scan_iter)
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    client.data = data
    return client
