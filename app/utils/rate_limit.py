"""
RATE LIMITER
============

In-memory sliding-window limiter keyed by an identity token (the client IP).
Only requests inside the last `interval` seconds count against the quota.

LEDGER:
  identity -> list of request timestamps (oldest first). An identity is added
  on its first accepted request and removed when it has no timestamps left in
  the window, or when more than `max_unique_identities` identities are tracked
  and it has the oldest first request.

CLEANUP:
  check() prunes the caller's own entry on every call. start() launches a
  background asyncio task that calls sweep() every `interval` seconds to drop
  identities that stopped sending requests; stop() cancels it.

check() and sweep() contain no await, so on one event loop they can never
observe each other's half-finished update.

Example:
  limiter = SlidingWindowRateLimiter(interval=60, max_unique_identities=50)
  limiter.check(5, "203.0.113.7")   # raises RateLimitExceededError on the 6th call in a minute
"""

import asyncio
import logging
import math
import time
from typing import Callable, Dict, List, Optional

from app.errors import InvalidArgumentError, RateLimitExceededError


logger = logging.getLogger("KENSAKU")


class SlidingWindowRateLimiter:
    """Per-identity request counter over a rolling time window."""

    def __init__(
        self,
        interval: float,
        max_unique_identities: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not math.isfinite(interval) or interval <= 0 or max_unique_identities <= 0:
            raise InvalidArgumentError(
                "Invalid parameters: interval and max_unique_identities must be positive"
            )
        self.interval = interval
        self.max_unique_identities = max_unique_identities
        self._clock = clock
        self._requests: Dict[str, List[float]] = {}
        self._sweep_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._requests)

    def __contains__(self, identity: str) -> bool:
        return identity in self._requests

    # ------------------------------------------------------------------------------
    # QUOTA CHECK
    # ------------------------------------------------------------------------------

    def _recent(self, identity: str, now: float) -> List[float]:
        return [ts for ts in self._requests.get(identity, []) if now - ts < self.interval]

    def check(self, max_requests: int, identity: str) -> None:
        """
        Record one request for identity, or raise if it is over quota.

        Raises InvalidArgumentError for max_requests <= 0 or an empty identity and
        RateLimitExceededError when identity already has max_requests requests in
        the window. A rejected request is not recorded.
        """
        if max_requests <= 0 or not identity:
            raise InvalidArgumentError(
                "Invalid parameters: max_requests must be positive and identity non-empty"
            )

        now = self._clock()
        recent = self._recent(identity, now)

        if len(recent) >= max_requests:
            logger.warning("[RateLimit] %s exceeded %s requests per %ss", identity, max_requests, self.interval)
            raise RateLimitExceededError(
                f"Rate limit exceeded for token: {identity}",
                retry_after=self.interval,
            )

        recent.append(now)
        self._requests[identity] = recent

        if len(self._requests) > self.max_unique_identities:
            self._evict_oldest()

    def remaining(self, max_requests: int, identity: str) -> int:
        """How many more requests identity may send right now (no mutation)."""
        return max(0, max_requests - len(self._recent(identity, self._clock())))

    def _evict_oldest(self) -> None:
        # First timestamp is the earliest; min() keeps insertion order on ties.
        oldest = min(self._requests, key=lambda token: self._requests[token][0])
        del self._requests[oldest]
        logger.info("[RateLimit] Tracking limit %s reached; dropped %s", self.max_unique_identities, oldest)

    # ------------------------------------------------------------------------------
    # PERIODIC CLEANUP
    # ------------------------------------------------------------------------------

    def sweep(self) -> int:
        """Drop expired timestamps for every identity; return how many identities were removed."""
        now = self._clock()
        removed = 0
        for identity in list(self._requests):
            valid = [ts for ts in self._requests[identity] if now - ts < self.interval]
            if valid:
                self._requests[identity] = valid
            else:
                del self._requests[identity]
                removed += 1
        if removed:
            logger.debug("[RateLimit] Sweep removed %s idle identities", removed)
        return removed

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.sweep()

    def start(self) -> None:
        """Start the background sweep on the running event loop (no-op if already running)."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_forever())

    async def stop(self) -> None:
        """Cancel the background sweep and wait for it to finish."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()
