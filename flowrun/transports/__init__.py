"""Event transports for gate notifications."""

from __future__ import annotations

import os
from typing import Optional

from ..config import FlowrunConfig, load_config
from .base import EventTransport
from .inmemory import InMemoryTransport


def get_transport(
    backend: Optional[str] = None, config: Optional[FlowrunConfig] = None
) -> EventTransport:
    """Build the transport named by ``backend``, ``FLOWRUN_TRANSPORT`` or config."""

    config = config or load_config()
    name = (backend or os.getenv("FLOWRUN_TRANSPORT") or config.transport.backend).lower()

    if name == "inmemory":
        return InMemoryTransport()
    if name == "redis":
        from .redis import RedisTransport

        return RedisTransport(config.transport.redis)
    raise ValueError(f"Unsupported transport backend: {name}")


__all__ = ["EventTransport", "InMemoryTransport", "get_transport"]
