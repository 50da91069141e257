"""Retry policy for remote calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from meal_sync.domain.errors import SyncError

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Exponential backoff for retryable sync errors.

    With the defaults a failing call is attempted four times, sleeping
    1s, 2s and 4s between attempts.
    """

    max_retries: int = 3
    base_delay_seconds: float = 1.0
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    def delay_for(self, retry: int) -> float:
        """Return the backoff before the given retry (zero-based)."""
        return self.base_delay_seconds * (2**retry)

    async def run(self, func: Callable[[], Awaitable[T]], *, action: str) -> T:
        """Call ``func`` until it succeeds or the retry budget is spent."""
        retry = 0
        while True:
            try:
                return await func()
            except SyncError as exc:
                if not exc.retryable or retry >= self.max_retries:
                    raise
                delay = self.delay_for(retry)
                _logger.warning(
                    "%s failed (attempt %s/%s, tag=%s), retrying in %.1fs: %s",
                    action,
                    retry + 1,
                    self.max_retries + 1,
                    exc.tag,
                    delay,
                    exc,
                )
                retry += 1
                await self.sleep(delay)
