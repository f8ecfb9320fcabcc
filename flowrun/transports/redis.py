"""Redis list transport so delivery services in other processes see gate events."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

import redis.asyncio as aioredis
from pydantic import ValidationError

from ..config import RedisConfig
from ..contracts import GateOpenedEvent
from .base import EventTransport

logger = logging.getLogger(__name__)

KEY_PREFIX = "flowrun:"


class RedisTransport(EventTransport):
    """Each topic is a Redis list: ``LPUSH`` to publish, ``BRPOP`` to consume."""

    def __init__(self, config: Optional[RedisConfig] = None) -> None:
        self.config = config or RedisConfig()
        self._client: Optional[aioredis.Redis] = None

    @staticmethod
    def key(topic: str) -> str:
        return f"{KEY_PREFIX}{topic}"

    async def client(self) -> aioredis.Redis:
        if self._client is None:
            self._client = aioredis.Redis(
                host=self.config.host,
                port=self.config.port,
                db=self.config.db,
                password=self.config.password,
                decode_responses=True,
            )
            await self._client.ping()
            logger.debug(f"Connected to Redis at {self.config.host}:{self.config.port}")
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def publish(self, topic: str, event: GateOpenedEvent) -> None:
        client = await self.client()
        await client.lpush(self.key(topic), event.to_json())

    async def events(
        self, topic: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[GateOpenedEvent]:
        client = await self.client()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + lifespan if lifespan is not None else None
        while deadline is None or loop.time() < deadline:
            item = await client.brpop(self.key(topic), timeout=1)
            if item is None:
                continue
            _, payload = item
            try:
                event = GateOpenedEvent.from_json(payload)
            except ValidationError as e:
                logger.warning(f"Dropping malformed event on {topic}: {e}")
                continue
            yield event
