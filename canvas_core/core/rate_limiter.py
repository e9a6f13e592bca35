"""Adaptive rate limiting for Canvas API calls.

This module throttles outgoing requests with a token bucket whose refill
rate follows the quota the server reports in ``X-Rate-Limit-Remaining``.
Each client owns its own limiter so independently configured clients never
share throttling state.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from typing import Set

DEFAULT_REQUESTS_PER_SECOND = 5.0
SLOW_REQUESTS_PER_SECOND = 2.0
VERY_SLOW_REQUESTS_PER_SECOND = 1.0

QUOTA_WARNING_THRESHOLD = 0.5  # 50% remaining
QUOTA_CRITICAL_THRESHOLD = 0.2  # 20% remaining


class TokenBucket:
    """Token bucket rate limiter implementation."""

    def __init__(
        self,
        rate: float,
        burst_size: int = 1,
    ) -> None:
        """Initialize token bucket.

        Args:
            rate: Tokens added per second
            burst_size: Maximum tokens that can accumulate
        """
        self.rate = rate
        self.burst_size = burst_size
        self.tokens = float(burst_size)
        self.last_update = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_update
        self.tokens = min(
            self.burst_size,
            self.tokens + elapsed * self.rate,
        )
        self.last_update = now

    async def acquire(self, tokens: int = 1) -> float:
        """Acquire tokens, waiting if necessary.

        Cancelling the caller while it waits leaves the bucket untouched.

        Args:
            tokens: Number of tokens to acquire

        Returns:
            Time waited in seconds
        """
        async with self._lock:
            waited = 0.0

            while True:
                self._refill()

                if self.tokens >= tokens:
                    self.tokens -= tokens
                    return waited

                needed = tokens - self.tokens
                wait_time = needed / self.rate
                waited += wait_time
                await asyncio.sleep(wait_time)

    def set_rate(self, rate: float) -> None:
        """Change the refill rate, crediting tokens earned at the old rate."""
        self._refill()
        self.rate = rate

    def available(self) -> float:
        """Get available tokens without acquiring."""
        now = time.monotonic()
        elapsed = now - self.last_update
        return min(
            self.burst_size,
            self.tokens + elapsed * self.rate,
        )


class AdaptiveRateLimiter:
    """Shared throttle whose rate adapts to the remaining server quota."""

    def __init__(self, requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND) -> None:
        """Initialize the limiter.

        Args:
            requests_per_second: Starting rate, normally the default rate
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self._bucket = TokenBucket(rate=requests_per_second, burst_size=1)
        self._current_rate = requests_per_second
        self._warnings_shown: Set[str] = set()
        self._state_lock = threading.Lock()
        self._requests = 0
        self._total_wait = 0.0

    @property
    def current_rate(self) -> float:
        """Current refill rate in requests per second."""
        with self._state_lock:
            return self._current_rate

    @property
    def warnings_shown(self) -> Set[str]:
        """Warning levels already reported since the last recovery."""
        with self._state_lock:
            return set(self._warnings_shown)

    async def wait(self) -> float:
        """Block until one permit is available.

        Raises:
            asyncio.CancelledError: If the caller is cancelled while waiting;
                no permit is consumed.

        Returns:
            Time waited in seconds
        """
        waited = await self._bucket.acquire(1)
        self._requests += 1
        self._total_wait += waited
        if waited > 0.1:
            self.logger.debug("Rate limited: waited %.2fs", waited)
        return waited

    def adjust_rate(self, remaining: float, total: float) -> None:
        """Adjust the rate from the remaining and total quota.

        Args:
            remaining: Quota left in the current window
            total: Full quota of the window
        """
        if not (math.isfinite(remaining) and math.isfinite(total)) or total <= 0:
            self.logger.debug("Ignoring quota update %r/%r", remaining, total)
            return

        percentage = remaining / total

        with self._state_lock:
            if percentage <= QUOTA_CRITICAL_THRESHOLD:
                self._set_rate(VERY_SLOW_REQUESTS_PER_SECOND, "critical", percentage)
            elif percentage <= QUOTA_WARNING_THRESHOLD:
                self._set_rate(SLOW_REQUESTS_PER_SECOND, "warning", percentage)
            elif (
                percentage > QUOTA_WARNING_THRESHOLD
                and self._current_rate < DEFAULT_REQUESTS_PER_SECOND
            ):
                self._current_rate = DEFAULT_REQUESTS_PER_SECOND
                self._bucket.set_rate(DEFAULT_REQUESTS_PER_SECOND)
                self._warnings_shown.clear()
                self.logger.info(
                    "API quota recovered (%.0f%% remaining), back to %.0f req/sec",
                    percentage * 100,
                    DEFAULT_REQUESTS_PER_SECOND,
                )

    def _set_rate(self, rate: float, level: str, percentage: float) -> None:
        # Caller holds _state_lock.
        if rate == self._current_rate:
            return

        self._current_rate = rate
        self._bucket.set_rate(rate)

        if level not in self._warnings_shown:
            self._warnings_shown.add(level)
            self.logger.warning(
                "API rate limit: %.0f%% remaining, slowing to %.0f req/sec",
                percentage * 100,
                rate,
                extra={
                    "extra_fields": {
                        "event_type": "rate_limit",
                        "level": level,
                        "remaining_ratio": round(percentage, 3),
                        "rate": rate,
                    }
                },
            )

    def get_stats(self) -> dict:
        """Get rate limiting statistics.

        Returns:
            Dictionary with request count, wait totals and current rate
        """
        return {
            "requests": self._requests,
            "total_wait_seconds": round(self._total_wait, 3),
            "avg_wait_seconds": (
                round(self._total_wait / self._requests, 3) if self._requests > 0 else 0
            ),
            "current_rate": self.current_rate,
        }
