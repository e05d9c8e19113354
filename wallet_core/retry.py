"""Reusable retry policy with rate-limit-aware backoff."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


class RateLimited(Exception):
    """Remote reported a rate-limit condition. Retryable with a longer wait."""


@dataclass(frozen=True)
class RetryPolicy:
    """
    Max attempts, base delay, and the extra multiplier for rate limits.

    The delay after attempt ``n`` is ``base_delay * n``, multiplied by
    ``rate_limit_multiplier`` when the failure was a rate limit.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    rate_limit_multiplier: float = 2.0

    def delay(self, attempt: int, rate_limited: bool = False) -> float:
        delay = self.base_delay * attempt
        if rate_limited:
            delay *= self.rate_limit_multiplier
        return delay

    async def run(
        self,
        fn: Callable[[], Awaitable[T]],
        retry_on: tuple[type[BaseException], ...],
        label: str = "call",
    ) -> T:
        """
        Await ``fn()`` until it succeeds or attempts run out.

        Only exceptions in ``retry_on`` (and RateLimited) are retried; the
        last one is re-raised after the final attempt.
        """
        retryable = (RateLimited, *retry_on)
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await fn()
            except retryable as e:
                if attempt == self.max_attempts:
                    raise
                rate_limited = isinstance(e, RateLimited)
                delay = self.delay(attempt, rate_limited)
                logger.warning(
                    f"Retry {attempt}/{self.max_attempts} for {label} in {delay:.1f}s: {e}"
                )
                await asyncio.sleep(delay)
        raise RuntimeError("unreachable")
