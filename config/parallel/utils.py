"""Utility helpers for Parallel API configuration."""

from __future__ import annotations

from config.parallel.defaults import (
    FINDALL_BASE_PATH,
    TASK_RUN_EVENTS_PATH,
    TASK_RUNS_PATH,
)


def build_task_runs_url(base_url: str) -> str:
    """Return the task run creation URL for ``base_url``."""

    return f"{base_url.rstrip('/')}{TASK_RUNS_PATH}"


def build_task_run_events_url(base_url: str, run_id: str) -> str:
    """Return the event feed URL for a single run."""

    return f"{base_url.rstrip('/')}{TASK_RUN_EVENTS_PATH.format(run_id=run_id)}"


def build_findall_url(base_url: str, endpoint: str) -> str:
    """Return a FindAll URL, ``endpoint`` being e.g. ``/runs`` or ``/ingest``."""

    return f"{base_url.rstrip('/')}{FINDALL_BASE_PATH}{endpoint}"


__all__ = ["build_task_runs_url", "build_task_run_events_url", "build_findall_url"]
