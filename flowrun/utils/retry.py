from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

from ..errors import ConcurrentModification

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int, base: float = 1.5, jitter: float = 0.5) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt, base=base, jitter=jitter)
    await asyncio.sleep(delay)


async def retry_on_conflict(
    operation: Callable[[], Awaitable[T]],
    attempts: int = 3,
    base: float = 0.1,
    jitter: float = 0.1,
) -> T:
    """Run ``operation`` again with fresh state when it loses a version race.

    ``operation`` must reload whatever it writes; the last
    ``ConcurrentModification`` is re-raised once ``attempts`` are used up.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except ConcurrentModification as e:
            if attempt >= attempts:
                raise
            logger.info(f"Retrying after conflict ({attempt}/{attempts}): {e}")
            await schedule_retry(attempt, base=base, jitter=jitter)
            attempt += 1
