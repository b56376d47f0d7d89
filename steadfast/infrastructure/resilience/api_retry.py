"""Client for executing outbound HTTP calls with rate limiting and retries.

Implements exponential backoff for transient errors like rate limits (429),
temporary server issues (5xx), timeouts and connection failures. Any other
response, including 4xx other than 429, is returned to the caller as-is.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, Optional

import httpx

from steadfast.domain.events.api_events import (
    DomainEvent, RequestDeferred, RequestFailed, RequestInitiated,
    RequestSucceeded, RetryScheduled,
)
from steadfast.domain.models.common import DomainName
from steadfast.infrastructure.resilience.rate_limiter import (
    DEFAULT_DOMAIN, RateLimitPolicy, RateLimiterRegistry,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0

# Errors worth another attempt. httpx.TimeoutException is a TransportError.
RETRYABLE_EXCEPTIONS = (httpx.TransportError, asyncio.TimeoutError)

EventHandler = Callable[[DomainEvent], None]


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Converts a Retry-After header (delta-seconds or HTTP date) to seconds.

    Returns None for a missing or unparseable header.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(int(value)))
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0.0, (retry_at - datetime.now(timezone.utc)).total_seconds())


class RateLimitedClient:
    """Executes HTTP requests under a per-domain budget with retries."""

    def __init__(
        self,
        rate_limiter: RateLimiterRegistry,
        http_client: Optional[httpx.AsyncClient] = None,
        default_timeout_s: float = DEFAULT_TIMEOUT_SECONDS,
        event_handler: Optional[EventHandler] = None,
    ):
        """Initializes the RateLimitedClient.

        Args:
            rate_limiter: Registry holding the per-domain buckets.
            http_client: Optional preconfigured client; one is created (and
                owned) when omitted.
            default_timeout_s: Total per-attempt timeout when the caller
                passes none.
            event_handler: Optional sink for request lifecycle events.
        """
        self.rate_limiter = rate_limiter
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient()
        self.default_timeout_s = default_timeout_s
        self.event_handler = event_handler
        self._sleep = asyncio.sleep
        logger.info(f"RateLimitedClient initialized: default_timeout={default_timeout_s}s")

    def _dispatch_event(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self.event_handler is not None:
            self.event_handler(event)

    @staticmethod
    def _backoff_delay(policy: RateLimitPolicy, attempt: int) -> float:
        return policy.base_delay_seconds * (2 ** attempt)

    async def fetch_with_retry(
        self,
        url: str,
        request_options: Optional[Dict[str, Any]] = None,
        *,
        domain: DomainName = DEFAULT_DOMAIN,
        max_retries: Optional[int] = None,
        timeout_s: Optional[float] = None,
    ) -> httpx.Response:
        """Fetches url with rate limiting and exponential backoff retry.

        Args:
            url: The URL to request.
            request_options: Keyword arguments for httpx.AsyncClient.request
                (method, headers, params, json, content, ...). Method
                defaults to GET.
            domain: Rate bucket name.
            max_retries: Overrides the domain policy's retry count.
            timeout_s: Total time allowed per attempt.

        Returns:
            The first usable response (any status other than 429 and 5xx).

        Raises:
            httpx.HTTPStatusError: The final attempt returned 429 or 5xx.
            httpx.TransportError: The final attempt failed at the network level.
            asyncio.TimeoutError: The final attempt exceeded timeout_s.
        """
        options = dict(request_options or {})
        method = options.pop("method", "GET")
        bucket = self.rate_limiter.get_bucket(domain)
        policy = bucket.policy
        retries = policy.max_retries if max_retries is None else max_retries
        timeout = self.default_timeout_s if timeout_s is None else timeout_s
        total_attempts = retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(total_attempts):
            # 1. Wait for a slot in the domain's window
            wait_duration = bucket.get_wait_time()
            if wait_duration > 0:
                self._dispatch_event(RequestDeferred(domain=domain, url=url, wait_time_seconds=wait_duration))
            await bucket.wait_for_permission()

            # 2. Execute the request
            self._dispatch_event(RequestInitiated(domain=domain, url=url, attempt_number=attempt + 1))
            start_time = time.perf_counter()
            try:
                response = await asyncio.wait_for(
                    self.http_client.request(method, url, **options), timeout=timeout
                )
            except RETRYABLE_EXCEPTIONS as e:
                last_error = e
                if isinstance(e, asyncio.TimeoutError):
                    reason = "timeout"
                    logger.warning(
                        f"Timeout ({timeout}s) calling {domain} (attempt {attempt + 1}/{total_attempts})"
                    )
                else:
                    reason = type(e).__name__
                    logger.warning(
                        f"Request error calling {domain}: {type(e).__name__}: {e} (attempt {attempt + 1}/{total_attempts})"
                    )
                if attempt < retries:
                    await self._schedule_retry(domain, url, attempt, self._backoff_delay(policy, attempt), reason)
                continue

            latency_ms = (time.perf_counter() - start_time) * 1000
            status = response.status_code

            # 3. Transient statuses
            if status == 429 or status >= 500:
                last_error = httpx.HTTPStatusError(
                    f"{status} response from {url}", request=response.request, response=response
                )
                if status == 429:
                    retry_after = parse_retry_after(response.headers.get("retry-after"))
                    delay = retry_after if retry_after is not None else self._backoff_delay(policy, attempt)
                    logger.warning(
                        f"429 Too Many Requests ({domain}), retry in {delay:.2f}s (attempt {attempt + 1}/{total_attempts})"
                    )
                else:
                    delay = self._backoff_delay(policy, attempt)
                    logger.warning(
                        f"{status} Server Error ({domain}), retry in {delay:.2f}s (attempt {attempt + 1}/{total_attempts})"
                    )
                if attempt < retries:
                    await self._schedule_retry(domain, url, attempt, delay, str(status))
                continue

            self._dispatch_event(RequestSucceeded(domain=domain, url=url, status_code=status, latency_ms=latency_ms))
            return response

        final_error = last_error or RuntimeError(f"Request to {domain} failed after {total_attempts} attempts")
        logger.error(f"All {total_attempts} attempts failed for {domain} ({url}). Last error: {final_error}")
        self._dispatch_event(RequestFailed(
            domain=domain, url=url, error_type=type(final_error).__name__,
            error_message=str(final_error), attempts=total_attempts,
        ))
        raise final_error

    async def _schedule_retry(self, domain: DomainName, url: str, attempt: int, delay: float, reason: str) -> None:
        self._dispatch_event(RetryScheduled(
            domain=domain, url=url, attempt_number=attempt + 1, delay_seconds=delay, reason=reason
        ))
        await self._sleep(delay)

    async def fetch_json(
        self,
        url: str,
        request_options: Optional[Dict[str, Any]] = None,
        **opts: Any,
    ) -> Optional[Any]:
        """Convenience wrapper returning decoded JSON, or None for non-2xx."""
        response = await self.fetch_with_retry(url, request_options, **opts)
        if not response.is_success:
            logger.debug(f"fetch_json got {response.status_code} from {url}; returning None")
            return None
        return response.json()

    async def aclose(self) -> None:
        """Closes the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self.http_client.aclose()
