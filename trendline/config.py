from __future__ import annotations

import os
from typing import Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_STAGE_MODEL,
    DEFAULT_STAGE_TIMEOUT_SECONDS,
    EVENT_TTL_SECONDS,
    SLACK_MESSAGE_LIMIT,
    WORKFLOW_TTL_SECONDS,
)


class RedisConfig(BaseModel):
    """Connection settings for the Redis store backend."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    url: Optional[str] = None


class StoreConfig(BaseModel):
    """Workflow state and event deduplication storage."""

    backend: Literal["inmemory", "sqlite", "redis"] = "inmemory"
    sqlite_path: str = "trendline.db"
    redis: RedisConfig = RedisConfig()
    workflow_ttl: int = WORKFLOW_TTL_SECONDS
    event_ttl: int = EVENT_TTL_SECONDS


class SlackConfig(BaseModel):
    """Slack signing and delivery settings."""

    signing_secret: Optional[str] = None
    bot_token: Optional[str] = None
    team_tokens: Dict[str, str] = Field(default_factory=dict)
    api_base_url: str = "https://slack.com/api"
    max_message_length: int = SLACK_MESSAGE_LIMIT
    timeout: float = 30.0


class StagesConfig(BaseModel):
    """Settings shared by the pipeline stage agents."""

    model: str = DEFAULT_STAGE_MODEL
    timeout: Optional[float] = DEFAULT_STAGE_TIMEOUT_SECONDS


class TrendlineConfig(BaseModel):
    """Top-level configuration model."""

    slack: SlackConfig = SlackConfig()
    store: StoreConfig = StoreConfig()
    stages: StagesConfig = StagesConfig()
    log_level: str = "INFO"


def _first_env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


def load_config(path: Optional[str] = None) -> TrendlineConfig:
    """Load configuration from YAML file and environment.

    Args:
        path: Optional path to config file. Falls back to TRENDLINE_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("TRENDLINE_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = TrendlineConfig(**data)
    else:
        config = TrendlineConfig()

    signing_secret = _first_env("TRENDLINE_SLACK_SIGNING_SECRET", "SLACK_SIGNING_SECRET")
    if signing_secret:
        config.slack.signing_secret = signing_secret
    bot_token = _first_env("TRENDLINE_SLACK_BOT_TOKEN", "SLACK_BOT_TOKEN")
    if bot_token:
        config.slack.bot_token = bot_token

    backend = os.getenv("TRENDLINE_STORE")
    if backend:
        config.store.backend = backend.lower()
    redis_url = os.getenv("TRENDLINE_REDIS_URL")
    if redis_url:
        config.store.redis.url = redis_url
    return config
