"""Process-local event transport."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import AsyncIterator, Dict, Optional

from ..contracts import GateOpenedEvent
from .base import EventTransport

_POLL_SECONDS = 0.1


class InMemoryTransport(EventTransport):
    """One ``asyncio.Queue`` per topic; for tests and single-process setups."""

    def __init__(self) -> None:
        self._topics: Dict[str, asyncio.Queue[GateOpenedEvent]] = defaultdict(asyncio.Queue)

    def pending(self, topic: str) -> int:
        """Number of published events not consumed yet."""
        return self._topics[topic].qsize()

    def drain(self, topic: str) -> list[GateOpenedEvent]:
        """Remove and return every queued event without waiting."""
        queue = self._topics[topic]
        drained = []
        while not queue.empty():
            drained.append(queue.get_nowait())
        return drained

    async def publish(self, topic: str, event: GateOpenedEvent) -> None:
        self._topics[topic].put_nowait(event)

    async def events(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[GateOpenedEvent]:
        queue = self._topics[topic]
        loop = asyncio.get_running_loop()
        deadline = loop.time() + lifespan if lifespan is not None else None
        while deadline is None or loop.time() < deadline:
            wait = _POLL_SECONDS
            if deadline is not None:
                wait = min(wait, max(deadline - loop.time(), 0))
            try:
                yield await asyncio.wait_for(queue.get(), timeout=wait)
            except asyncio.TimeoutError:
                continue
