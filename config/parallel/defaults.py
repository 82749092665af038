"""Default configuration values for the Parallel AI integration."""

# Endpoints
PARALLEL_API_BASE_URL = "https://api.parallel.ai"
"""Root URL of the Parallel API."""

TASK_RUNS_PATH = "/v1/tasks/runs"
"""Task run creation endpoint."""

TASK_RUN_EVENTS_PATH = "/v1beta/tasks/runs/{run_id}/events"
"""Server-sent event feed for a single task run."""

FINDALL_BASE_PATH = "/v1beta/findall"
"""Prefix for the FindAll endpoints (ingest, runs, results)."""

# Beta headers
EVENTS_SSE_BETA_HEADER = "events-sse-2025-07-24"
"""Value of ``parallel-beta`` that enables the task run event feed."""

FINDALL_BETA_HEADER = "findall-2025-09-15"
"""Value of ``parallel-beta`` required by the FindAll API."""

# Relay
RELAY_TIMEOUT_SECONDS = 600
"""Hard wall clock for a single event feed subscription (10 minutes)."""

# Polling
POLLING_INTERVAL_SECONDS = 2.0
"""Fixed delay between two status polls."""

POLLING_HEARTBEAT_EVERY = 5
"""Emit an unchanged status every Nth poll so metrics keep flowing."""

FINDALL_MAX_WAIT_SECONDS = 900
"""Polling budget for FindAll runs (15 minutes)."""

# HTTP
HTTP_TIMEOUT_SECONDS = 60.0
"""Timeout for non-streaming requests (create, status, result)."""

# Durable run logs
RUN_LOG_DIR = "logs/parallel-ai-runs"
"""Directory holding one audit log file per run."""

RUN_LOG_RETENTION_DAYS = 30
"""Age after which run log files are removed by the retention sweep."""


__all__ = [
    "PARALLEL_API_BASE_URL",
    "TASK_RUNS_PATH",
    "TASK_RUN_EVENTS_PATH",
    "FINDALL_BASE_PATH",
    "EVENTS_SSE_BETA_HEADER",
    "FINDALL_BETA_HEADER",
    "RELAY_TIMEOUT_SECONDS",
    "POLLING_INTERVAL_SECONDS",
    "POLLING_HEARTBEAT_EVERY",
    "FINDALL_MAX_WAIT_SECONDS",
    "HTTP_TIMEOUT_SECONDS",
    "RUN_LOG_DIR",
    "RUN_LOG_RETENTION_DAYS",
]
