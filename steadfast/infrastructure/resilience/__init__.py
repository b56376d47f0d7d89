"""API Resilience Implementations.

Contains services for handling API rate limits and retries with exponential
backoff for outbound HTTP calls.
Bounded Context: API Resilience
"""
