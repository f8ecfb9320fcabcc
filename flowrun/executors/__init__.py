"""Task executor implementations."""

from __future__ import annotations

from typing import Optional

from ..config import FlowrunConfig, load_config
from .base import TaskExecutor


def get_executor(config: Optional[FlowrunConfig] = None) -> TaskExecutor:
    """Build the pydantic-ai executor from the ``executor`` config section."""

    from .llm import PydanticAIExecutor

    config = config or load_config()
    return PydanticAIExecutor(
        model=config.executor.model, instructions=config.executor.instructions
    )


__all__ = ["TaskExecutor", "get_executor"]
