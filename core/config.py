"""Minimal environment variable loading and settings dataclass.

Domain constants live in ``config/`` subpackages (``config.parallel`` for the
remote task API). This module only:

1. Detects the runtime environment (delegates to ``config.environment``)
2. Resolves env overrides for the Parallel integration
3. Exposes a frozen ``Settings`` dataclass for dependency injection

The Parallel API key is deliberately not part of ``Settings``; it is read per
call through :func:`config.api_keys.get_parallel_api_key`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from config import parallel as parallel_defaults
from config.environment import ENVIRONMENT, IS_DEVELOPMENT, IS_PRODUCTION, IS_TEST, get_node_env
from core.utils.env import get_env, get_env_float, get_env_int

DEBUG_MODE = os.getenv("DEBUG_MODE", "false").lower() == "true"


@dataclass(frozen=True)
class Settings:
    """Dependency injection wrapper for backend settings."""

    environment: str = ENVIRONMENT
    debug_mode: bool = DEBUG_MODE
    parallel_base_url: str = parallel_defaults.PARALLEL_API_BASE_URL
    relay_timeout_seconds: float = float(parallel_defaults.RELAY_TIMEOUT_SECONDS)
    polling_interval_seconds: float = parallel_defaults.POLLING_INTERVAL_SECONDS
    polling_heartbeat_every: int = parallel_defaults.POLLING_HEARTBEAT_EVERY
    findall_max_wait_seconds: float = float(parallel_defaults.FINDALL_MAX_WAIT_SECONDS)
    http_timeout_seconds: float = parallel_defaults.HTTP_TIMEOUT_SECONDS
    run_log_dir: Path = Path(parallel_defaults.RUN_LOG_DIR)
    run_log_retention_days: int = parallel_defaults.RUN_LOG_RETENTION_DAYS


def build_settings() -> Settings:
    """Build ``Settings`` from the current environment."""

    return Settings(
        parallel_base_url=(
            get_env("PARALLEL_API_BASE_URL", default=parallel_defaults.PARALLEL_API_BASE_URL)
            or parallel_defaults.PARALLEL_API_BASE_URL
        ),
        relay_timeout_seconds=get_env_float(
            "PARALLEL_RELAY_TIMEOUT_SECONDS", float(parallel_defaults.RELAY_TIMEOUT_SECONDS)
        ),
        polling_interval_seconds=get_env_float(
            "PARALLEL_POLL_INTERVAL_SECONDS", parallel_defaults.POLLING_INTERVAL_SECONDS
        ),
        polling_heartbeat_every=get_env_int(
            "PARALLEL_POLL_HEARTBEAT_EVERY", parallel_defaults.POLLING_HEARTBEAT_EVERY
        ),
        findall_max_wait_seconds=get_env_float(
            "PARALLEL_FINDALL_MAX_WAIT_SECONDS", float(parallel_defaults.FINDALL_MAX_WAIT_SECONDS)
        ),
        http_timeout_seconds=get_env_float(
            "PARALLEL_HTTP_TIMEOUT_SECONDS", parallel_defaults.HTTP_TIMEOUT_SECONDS
        ),
        run_log_dir=Path(get_env("PARALLEL_RUN_LOG_DIR") or parallel_defaults.RUN_LOG_DIR),
        run_log_retention_days=get_env_int(
            "PARALLEL_RUN_LOG_RETENTION_DAYS", parallel_defaults.RUN_LOG_RETENTION_DAYS
        ),
    )


settings = build_settings()

__all__ = [
    # Environment
    "get_node_env",
    "ENVIRONMENT",
    "IS_DEVELOPMENT",
    "IS_PRODUCTION",
    "IS_TEST",
    # Feature toggles
    "DEBUG_MODE",
    # Settings
    "Settings",
    "build_settings",
    "settings",
]
