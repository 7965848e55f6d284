from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel

from .constants import (
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_LEDGER_PAGE_SIZE,
    DEFAULT_RECENT_WINDOW_HOURS,
    DEFAULT_STEP_TIMEOUT,
    DEFAULT_STORAGE_TIMEOUT,
)


class SchedulerConfig(BaseModel):
    """Settings for the recurring job scheduler."""

    enabled: bool = True
    timezone: str = "UTC"
    misfire_grace_time: int = 60
    coalesce: bool = True


class ExecutionConfig(BaseModel):
    """Timeouts bounding storage calls and delegated step work (seconds)."""

    step_timeout: float = DEFAULT_STEP_TIMEOUT
    storage_timeout: float = DEFAULT_STORAGE_TIMEOUT
    http_timeout: float = DEFAULT_HTTP_TIMEOUT


class LedgerConfig(BaseModel):
    """Read-side limits for execution history queries."""

    page_size: int = DEFAULT_LEDGER_PAGE_SIZE
    recent_window_hours: int = DEFAULT_RECENT_WINDOW_HOURS


class HookitConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    log_level: str = "INFO"
    scheduler: SchedulerConfig = SchedulerConfig()
    execution: ExecutionConfig = ExecutionConfig()
    ledger: LedgerConfig = LedgerConfig()


def load_config(path: Optional[str] = None) -> HookitConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to HOOKIT_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("HOOKIT_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = HookitConfig(**data)
    else:
        config = HookitConfig()

    env_db_url = os.getenv("HOOKIT_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
