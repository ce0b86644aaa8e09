"""Bounded retry with exponential backoff for transient step failures."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from errors import TransientPublishError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 2.0  # seconds
    max_delay: float = 30.0
    multiplier: float = 2.0
    jitter: bool = True
    retryable: tuple[type[Exception], ...] = (TransientPublishError,)

    def delay_for(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.multiplier ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random() * 0.5
        return delay


async def run_with_retry(
    step: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    label: str = "step",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``step()``, retrying only the policy's retryable errors.

    The last error is re-raised once attempts run out; any other error
    propagates on the first occurrence.
    """
    attempts = max(1, policy.max_attempts)
    for attempt in range(1, attempts):
        try:
            return await step()
        except policy.retryable as exc:
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s failed (%s), retrying in %.1fs (attempt %d/%d)",
                label, exc, delay, attempt, attempts,
            )
            await sleep(delay)
    return await step()
