"""Domain Events related to outbound API calls and resilience.

Emitted by the RateLimitedClient when calls are deferred, retried, fail, or
succeed.
"""

from dataclasses import dataclass, field
import time

# Base Event Class
@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass

# --- Specific API Events ---

@dataclass
class RequestInitiated(DomainEvent):
    """Event triggered when an HTTP request is about to be sent."""
    domain: str # rate bucket, e.g. 'faceit'
    url: str
    attempt_number: int
    timestamp: float = field(default_factory=time.time)

@dataclass
class RequestSucceeded(DomainEvent):
    """Event triggered when a request produced a usable response."""
    domain: str
    url: str
    status_code: int
    latency_ms: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class RequestFailed(DomainEvent):
    """Event triggered when a request fails definitively (after retries)."""
    domain: str
    url: str
    error_type: str
    error_message: str
    attempts: int
    timestamp: float = field(default_factory=time.time)

@dataclass
class RequestDeferred(DomainEvent):
    """Event triggered when a request must wait for a rate limit slot."""
    domain: str
    url: str
    wait_time_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed attempt."""
    domain: str
    url: str
    attempt_number: int
    delay_seconds: float
    reason: str # e.g. '429', '503', 'ConnectTimeout'
    timestamp: float = field(default_factory=time.time)
