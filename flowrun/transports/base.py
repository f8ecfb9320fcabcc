"""Delivery channel for events the engine publishes."""

from __future__ import annotations

import abc
from typing import AsyncIterator, Optional

from ..contracts import GateOpenedEvent


class EventTransport(metaclass=abc.ABCMeta):
    """Publishes gate events to a topic and lets delivery services consume them.

    Usable as an async context manager; ``close`` releases any connection.
    """

    async def close(self) -> None:
        return None

    async def __aenter__(self) -> "EventTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @abc.abstractmethod
    async def publish(self, topic: str, event: GateOpenedEvent) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    def events(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[GateOpenedEvent]:
        """Yield events from ``topic`` in publish order.

        Args:
            topic: Topic to consume
            lifespan: Stop after this many seconds. If None, runs indefinitely.
        """
        raise NotImplementedError
