"""Retry policy for Canvas API calls.

Retries transient failures (throttling, server errors and transport
failures) with bounded exponential backoff. Caller cancellation and
deadline expiry are never retried and surface immediately.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, FrozenSet, Optional

import httpx

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
INITIAL_BACKOFF = 1.0  # seconds
MAX_BACKOFF = 8.0  # seconds

RETRYABLE_STATUS_CODES: FrozenSet[int] = frozenset({429, 500, 502, 503, 504})


@dataclass
class RetryPolicy:
    """Retry behaviour for HTTP requests.

    Attributes:
        max_retries: Retries after the first attempt
        initial_backoff: Delay before the first retry, in seconds
        max_backoff: Upper bound for any delay, in seconds
    """

    max_retries: int = MAX_RETRIES
    initial_backoff: float = INITIAL_BACKOFF
    max_backoff: float = MAX_BACKOFF
    retry_on_status: FrozenSet[int] = field(default=RETRYABLE_STATUS_CODES)

    def should_retry(
        self,
        response: Optional[httpx.Response],
        error: Optional[BaseException] = None,
    ) -> bool:
        """Determine if an attempt should be retried.

        Args:
            response: The completed response, if any
            error: The failure raised by the attempt, if any

        Returns:
            True for retryable statuses and transport failures
        """
        if error is not None:
            if isinstance(error, (asyncio.CancelledError, TimeoutError)):
                return False
            return isinstance(error, httpx.TransportError)

        if response is None:
            return False
        return response.status_code in self.retry_on_status

    def backoff(self, attempt: int) -> float:
        """Calculate the delay before retry number ``attempt`` (0-based)."""
        return min(self.max_backoff, self.initial_backoff * (2**attempt))

    async def execute_with_retry(
        self,
        func: Callable[[], Awaitable[httpx.Response]],
    ) -> httpx.Response:
        """Run ``func`` until it succeeds or the retry budget is spent.

        The last failure is returned (retryable status) or re-raised
        (transport failure) unchanged once attempts exceed ``max_retries``.
        A cancellation during a backoff sleep aborts the loop at once.

        Args:
            func: Coroutine factory performing one attempt

        Returns:
            The first non-retryable response, or the last one
        """
        attempt = 0

        while True:
            response: Optional[httpx.Response] = None
            error: Optional[httpx.TransportError] = None

            try:
                response = await func()
            except httpx.TransportError as exc:
                error = exc

            if not self.should_retry(response, error):
                if error is not None:
                    raise error
                assert response is not None
                return response

            if attempt >= self.max_retries:
                logger.error(
                    "Request failed after %d retries: %s",
                    self.max_retries,
                    error if error is not None else f"status {response.status_code}",
                )
                if error is not None:
                    raise error
                assert response is not None
                return response

            delay = self.backoff(attempt)
            logger.warning(
                "Request failed, retrying (attempt %d/%d, backoff %.1fs): %s",
                attempt + 1,
                self.max_retries,
                delay,
                error if error is not None else f"status {response.status_code}",
            )
            await asyncio.sleep(delay)
            attempt += 1


def default_retry_policy() -> RetryPolicy:
    """Return the default retry policy (3 retries, 1s initial, 8s cap)."""
    return RetryPolicy()
