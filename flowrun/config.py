from __future__ import annotations

import os
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import DEFAULT_SCHEDULER_INTERVAL_SECONDS, DEFAULT_SCHEDULER_TIMEZONE
from .registry.models import AgentProfile


class RedisConfig(BaseModel):
    """Configuration for Redis transport."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class TransportConfig(BaseModel):
    """Transport used to publish gate notifications."""

    backend: Literal["inmemory", "redis"] = "inmemory"
    redis: RedisConfig = RedisConfig()


class SchedulerConfig(BaseModel):
    interval_seconds: float = DEFAULT_SCHEDULER_INTERVAL_SECONDS
    timezone: str = DEFAULT_SCHEDULER_TIMEZONE


class ExecutorConfig(BaseModel):
    """Settings for the pydantic-ai backed task executor."""

    model: Optional[str] = None
    instructions: Optional[str] = None


class FlowrunConfig(BaseModel):
    """Top-level configuration model."""

    transport: TransportConfig = TransportConfig()
    database_url: Optional[str] = None
    scheduler: SchedulerConfig = SchedulerConfig()
    executor: ExecutorConfig = ExecutorConfig()
    agents: List[AgentProfile] = Field(default_factory=list)


def load_config(path: Optional[str] = None) -> FlowrunConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to FLOWRUN_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("FLOWRUN_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = FlowrunConfig(**data)
    else:
        config = FlowrunConfig()

    env_db_url = os.getenv("FLOWRUN_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
