"""API key loading for external providers."""

from __future__ import annotations

import os

from core.exceptions import ConfigurationError

PARALLEL_API_KEY_ENV = "PARALLEL_API_KEY"


def get_parallel_api_key() -> str | None:
    """Return the Parallel API key as currently set in the environment.

    The key is looked up on every call rather than cached at import time so a
    rotated key (or a test monkeypatching the environment) takes effect
    without a restart.
    """

    value = os.getenv(PARALLEL_API_KEY_ENV, "").strip()
    return value or None


def require_parallel_api_key() -> str:
    """Return the Parallel API key or raise :class:`ConfigurationError`."""

    api_key = get_parallel_api_key()
    if not api_key:
        raise ConfigurationError(
            f"{PARALLEL_API_KEY_ENV} environment variable is not set",
            key=PARALLEL_API_KEY_ENV,
        )
    return api_key


__all__ = [
    "PARALLEL_API_KEY_ENV",
    "get_parallel_api_key",
    "require_parallel_api_key",
]
