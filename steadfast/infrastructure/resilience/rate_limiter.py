"""Implementation of a per-domain rate limiter.

Controls the frequency of outgoing requests to prevent hitting third-party
API rate limits. Each domain gets its own sliding window bucket, created
lazily and kept for the lifetime of the registry.
"""

import time
import asyncio
import logging
from collections import deque
from dataclasses import dataclass, replace
from typing import Any, Deque, Dict, Mapping, Optional

from steadfast.domain.models.common import BucketStats, DomainName

logger = logging.getLogger(__name__)

DEFAULT_DOMAIN = DomainName("default")
SLOT_BUFFER_SECONDS = 0.05 # Added to every computed wait
MIN_WAIT_SECONDS = 0.1


@dataclass(frozen=True)
class RateLimitPolicy:
    """Request budget and retry policy for one domain."""
    max_requests: int
    window_seconds: float
    max_retries: int
    base_delay_seconds: float


DOMAIN_POLICIES: Dict[str, RateLimitPolicy] = {
    "faceit": RateLimitPolicy(max_requests=10, window_seconds=60, max_retries=3, base_delay_seconds=1.0),
    "twitch": RateLimitPolicy(max_requests=30, window_seconds=60, max_retries=3, base_delay_seconds=0.5),
    "soundcloud": RateLimitPolicy(max_requests=20, window_seconds=60, max_retries=2, base_delay_seconds=1.0),
    DEFAULT_DOMAIN: RateLimitPolicy(max_requests=20, window_seconds=60, max_retries=3, base_delay_seconds=1.0),
}


class RateBucket:
    """Sliding window rate limiter for a single domain."""

    def __init__(self, domain: DomainName, policy: RateLimitPolicy):
        """Initializes the bucket.

        Args:
            domain: Name of the domain this bucket guards.
            policy: Budget and retry settings for the domain.
        """
        self.domain = domain
        self.policy = policy
        self.timestamps: Deque[float] = deque()
        logger.debug(
            f"RateBucket '{domain}' created: {policy.max_requests} requests / {policy.window_seconds} seconds"
        )

    def _cleanup_timestamps(self) -> None:
        """Removes timestamps older than the time window."""
        now = time.monotonic()
        while self.timestamps and now - self.timestamps[0] >= self.policy.window_seconds:
            self.timestamps.popleft()

    def has_capacity(self) -> bool:
        self._cleanup_timestamps()
        return len(self.timestamps) < self.policy.max_requests

    def get_wait_time(self) -> float:
        """Estimates the time needed before the next request can be made."""
        if self.has_capacity():
            return 0.0
        oldest_timestamp = self.timestamps[0]
        wait_time = oldest_timestamp + self.policy.window_seconds - time.monotonic() + SLOT_BUFFER_SECONDS
        return max(wait_time, MIN_WAIT_SECONDS)

    async def wait_for_permission(self) -> None:
        """Waits until a request is permitted, then records it.

        The capacity check and the append happen without an await in
        between, so concurrent waiters on the same event loop cannot push
        the bucket past max_requests.
        """
        while True:
            if self.has_capacity():
                self.timestamps.append(time.monotonic())
                logger.debug(f"Rate limit permission granted for '{self.domain}'.")
                return
            wait_time = self.get_wait_time()
            logger.info(f"Rate limit reached for '{self.domain}'. Waiting for {wait_time:.2f} seconds.")
            await asyncio.sleep(wait_time)

    def stats(self) -> BucketStats:
        self._cleanup_timestamps()
        active = len(self.timestamps)
        return BucketStats(
            active_requests=active,
            max_requests=self.policy.max_requests,
            window_seconds=self.policy.window_seconds,
            utilization=f"{round(active / self.policy.max_requests * 100)}%",
        )


class RateLimiterRegistry:
    """Owns one RateBucket per domain."""

    def __init__(
        self,
        policies: Optional[Mapping[str, RateLimitPolicy]] = None,
        overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ):
        """Initializes the registry.

        Args:
            policies: Domain policies; defaults to DOMAIN_POLICIES.
            overrides: Partial per-domain settings (e.g. from config) applied
                on top of policies. Unknown domains are added based on the
                default policy.
        """
        self.policies: Dict[str, RateLimitPolicy] = dict(policies or DOMAIN_POLICIES)
        self.policies.setdefault(DEFAULT_DOMAIN, DOMAIN_POLICIES[DEFAULT_DOMAIN])
        for domain, fields in (overrides or {}).items():
            base = self.policies.get(domain, self.policies[DEFAULT_DOMAIN])
            try:
                self.policies[domain] = replace(base, **fields)
            except TypeError as e:
                logger.warning(f"Ignoring invalid rate limit override for '{domain}': {e}")
        self._buckets: Dict[DomainName, RateBucket] = {}
        logger.info(f"RateLimiterRegistry initialized with policies for: {', '.join(sorted(self.policies))}")

    def policy_for(self, domain: DomainName) -> RateLimitPolicy:
        return self.policies.get(domain, self.policies[DEFAULT_DOMAIN])

    def get_bucket(self, domain: DomainName) -> RateBucket:
        """Returns the bucket for domain, creating it on first use."""
        bucket = self._buckets.get(domain)
        if bucket is None:
            bucket = RateBucket(domain, self.policy_for(domain))
            self._buckets[domain] = bucket
        return bucket

    def get_stats(self) -> Dict[DomainName, BucketStats]:
        return {domain: bucket.stats() for domain, bucket in self._buckets.items()}

    def reset_bucket(self, domain: DomainName) -> None:
        """Forgets a domain's request history."""
        self._buckets.pop(domain, None)
