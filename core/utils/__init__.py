"""Utility helpers shared across core packages."""

from .env import get_env, get_env_float, get_env_int, is_production

__all__ = [
    "get_env",
    "get_env_float",
    "get_env_int",
    "is_production",
]
