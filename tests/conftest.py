"""Test configuration helpers."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import pytest

# Explicitly opt-in to the async plugins we rely on. Some execution environments
# disable plugin auto-discovery via ``PYTEST_DISABLE_PLUGIN_AUTOLOAD``, which
# would prevent ``pytest-asyncio`` and AnyIO's plugin from being loaded even if
# the packages are installed.
pytest_plugins = ("anyio", "pytest_asyncio")

# Ensure the repository root is importable so ``import core`` and the other
# absolute imports used throughout the codebase succeed from any directory.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep run logs produced while importing ``main`` out of the working tree.
os.environ.setdefault("PARALLEL_RUN_LOG_DIR", str(PROJECT_ROOT / ".pytest-run-logs"))


@pytest.fixture
def anyio_backend() -> str:
    """Default AnyIO backend used when tests do not override the fixture."""

    return "asyncio"


@pytest.fixture
def api_key(monkeypatch) -> str:
    """Configure a Parallel API key for the duration of a test."""

    monkeypatch.setenv("PARALLEL_API_KEY", "test-key")
    return "test-key"


@pytest.fixture
def no_api_key(monkeypatch) -> None:
    monkeypatch.delenv("PARALLEL_API_KEY", raising=False)


@pytest.fixture(scope="session", autouse=True)
def suppress_asyncio_debug_logging() -> None:
    """Prevent asyncio debug logs from writing to closed pytest capture streams."""

    logger = logging.getLogger("asyncio")
    if logger.getEffectiveLevel() < logging.INFO:
        logger.setLevel(logging.INFO)
