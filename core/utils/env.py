"""Common environment helpers used across the backend."""

from __future__ import annotations

import os

from config.environment import get_node_env
from core.exceptions import ConfigurationError

__all__ = ["get_env", "get_env_float", "get_env_int", "is_production"]


def get_env(key: str, default: str | None = None, *, required: bool = False) -> str | None:
    """Return an environment variable and optionally enforce its presence."""

    value = os.getenv(key, default)
    if required and value is None:
        raise ConfigurationError(f"Required environment variable {key} not set", key=key)
    return value


def get_env_int(key: str, default: int) -> int:
    """Return an integer environment variable, rejecting malformed values."""

    raw = get_env(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Environment variable {key} must be an integer, got {raw!r}", key=key) from exc


def get_env_float(key: str, default: float) -> float:
    """Return a float environment variable, rejecting malformed values."""

    raw = get_env(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"Environment variable {key} must be a number, got {raw!r}", key=key) from exc


def is_production() -> bool:
    """True when running in production."""

    return get_node_env() == "production"
