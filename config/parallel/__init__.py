"""Parallel AI integration configuration exports."""

from . import defaults, utils
from .defaults import *  # noqa: F401,F403
from .utils import *  # noqa: F401,F403

__all__ = [
    *defaults.__all__,
    *utils.__all__,
]
