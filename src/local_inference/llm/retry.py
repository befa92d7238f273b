"""Retry with exponential backoff for single-shot chat requests."""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

import httpx

from ..errors import RequestFailed

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    jitter: float = 0.1
    # HTTP 5xx server errors, 408 timeout, 429 rate limit
    retryable_status_codes: frozenset[int] = field(
        default_factory=lambda: frozenset({408, 429, 500, 502, 503, 504})
    )

    def should_retry(self, error: Exception, attempt: int) -> bool:
        if attempt >= self.max_retries:
            return False
        if isinstance(error, RequestFailed):
            return error.status_code in self.retryable_status_codes
        return isinstance(error, httpx.TransportError)

    def delay_for(self, attempt: int) -> float:
        delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        return delay + random.uniform(0, self.jitter * delay)


async def with_retries(operation: Callable[[], Awaitable[T]], config: RetryConfig) -> T:
    """Await ``operation`` until it succeeds or the retry budget is spent.

    Cancellation is never retried: ``asyncio.CancelledError`` is not an
    ``Exception`` and propagates straight through.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except (RequestFailed, httpx.TransportError) as e:
            if not config.should_retry(e, attempt):
                logger.debug("Attempt %d failed, giving up: %s", attempt + 1, e)
                raise
            delay = config.delay_for(attempt)
            logger.debug("Attempt %d failed: %s. Retrying in %.2fs...", attempt + 1, e, delay)
            attempt += 1
            await asyncio.sleep(delay)
