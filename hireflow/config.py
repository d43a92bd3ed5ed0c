from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import DEFAULT_EXECUTION_TOPIC


class RedisConfig(BaseModel):
    """Configuration for the Redis execution queue."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class TransportConfig(BaseModel):
    """Queue used to hand triggered executions to workers."""

    backend: Literal["inmemory", "redis"] = "inmemory"
    redis: RedisConfig = RedisConfig()


class WorkerConfig(BaseModel):
    concurrency: int = Field(default=4, ge=1)
    topic: str = DEFAULT_EXECUTION_TOPIC


class SchedulerConfig(BaseModel):
    """Polling settings for resuming suspended executions."""

    poll_interval: float = Field(default=30.0, gt=0)


class SlackConfig(BaseModel):
    webhook_url: Optional[str] = None


class HireflowConfig(BaseModel):
    """Top-level configuration model."""

    transport: TransportConfig = TransportConfig()
    database_url: Optional[str] = None
    worker: WorkerConfig = WorkerConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    slack: SlackConfig = SlackConfig()
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> HireflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to HIREFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("HIREFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = HireflowConfig(**data)
    else:
        config = HireflowConfig()

    env_db_url = os.getenv("HIREFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_log_level = os.getenv("HIREFLOW_LOG_LEVEL")
    if env_log_level:
        config.log_level = env_log_level.upper()
    return config
