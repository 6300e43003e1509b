"""Token bucket rate limiter for provider requests."""

from __future__ import annotations

import asyncio
import time

import structlog

from ..models.program import RateLimits

logger = structlog.get_logger(__name__)

DEFAULT_MAX_TOKENS = 60
DEFAULT_WAIT_SECONDS = 1.0


class TokenBucketRateLimiter:
    """Per-provider token bucket.

    Tokens refill in proportion to elapsed wall-clock time scaled by
    ``requests_per_minute``. When the bucket is empty the caller sleeps for
    one refill interval and then proceeds; the limiter throttles rather than
    rejects. Callers are served one at a time under an ``asyncio.Lock``.
    """

    def __init__(
        self,
        limits: RateLimits | None = None,
        max_tokens: int | None = None,
        provider_id: str | None = None,
    ) -> None:
        """
        Initialize rate limiter.

        Args:
            limits: Provider rate limits (unconfigured when None)
            max_tokens: Bucket capacity; falls back to ``limits.burst`` then 60
            provider_id: Provider identifier used in log events
        """
        self.limits = limits or RateLimits()
        self.max_tokens = max_tokens or self.limits.burst or DEFAULT_MAX_TOKENS
        self.provider_id = provider_id
        self._tokens = float(self.max_tokens)
        self._last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    @property
    def tokens(self) -> float:
        return self._tokens

    async def acquire(self) -> None:
        """Take one permit, sleeping for one refill interval if none is available."""
        async with self._lock:
            self._refill()

            if self._tokens < 1:
                wait_seconds = self.wait_time()
                logger.debug(
                    "rate_limit_wait",
                    provider_id=self.provider_id,
                    wait_seconds=wait_seconds,
                )
                await asyncio.sleep(wait_seconds)
                self._refill()

            self._tokens = max(0.0, self._tokens - 1)

    def wait_time(self) -> float:
        """Seconds to wait for one permit to refill."""
        if self.limits.requests_per_minute:
            return 60.0 / self.limits.requests_per_minute
        return DEFAULT_WAIT_SECONDS

    def _refill(self) -> None:
        if not self.limits.requests_per_minute:
            return
        now = time.monotonic()
        elapsed = now - self._last_refill
        tokens_to_add = (elapsed / 60.0) * self.limits.requests_per_minute
        self._tokens = min(float(self.max_tokens), self._tokens + tokens_to_add)
        self._last_refill = now
