"""Moving-window rate limiting for outbound HTTP calls."""

import asyncio
import time

from limits import parse
from limits.limits import RateLimitItem
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from silvaplan.utils.logging import get_logger

logger = get_logger(__name__)

MIN_WAIT_SECONDS = 0.01


class RateLimiter:
    """Rate limiter backed by the limits library.

    Waits out the window instead of failing, so callers never see a local
    rate limit as an error.
    """

    def __init__(self, requests: str = "50/minute", tokens: str | None = None):
        """Initialize rate limiter.

        Args:
            requests: Request limit in limits notation (e.g. "1/second")
            tokens: Optional token limit in limits notation (e.g. "40000/minute")
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)

        self.request_limit = parse(requests)
        self.token_limit = parse(tokens) if tokens else None

    async def acquire(self, identifier: str, estimated_tokens: int = 0) -> None:
        """Block until the request (and its estimated tokens) fit the window."""
        logger.debug(f"Checking rate limit for {identifier}, estimated tokens: {estimated_tokens}")

        await self._acquire(self.request_limit, identifier, 1, "Request")

        if self.token_limit and estimated_tokens > 0:
            # a single request larger than the whole budget would otherwise never fit
            cost = min(estimated_tokens, self.token_limit.amount)
            await self._acquire(self.token_limit, f"{identifier}_tokens", cost, "Token")

    async def _acquire(self, limit: RateLimitItem, identifier: str, cost: int, kind: str) -> None:
        """Wait until the hit is recorded inside the window."""
        while not self.limiter.hit(limit, identifier, cost=cost):
            window_stats = self.limiter.get_window_stats(limit, identifier)
            wait_time = max(MIN_WAIT_SECONDS, window_stats.reset_time - time.time())
            logger.warning(f"{kind} rate limit exceeded for {identifier}, waiting {wait_time:.2f}s")
            await asyncio.sleep(wait_time)
