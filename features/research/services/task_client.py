"""Creation of remote task runs with the event feed enabled."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

import httpx

from config.api_keys import require_parallel_api_key
from config.parallel import EVENTS_SSE_BETA_HEADER, HTTP_TIMEOUT_SECONDS, PARALLEL_API_BASE_URL
from config.parallel.utils import build_task_runs_url
from core.exceptions import TaskCreationError
from features.research.types import RunHandle
from infrastructure.run_logs import DurableRunLogger

logger = logging.getLogger(__name__)


class RemoteTaskClient:
    """Create remote runs and hand back a :class:`RunHandle`."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        base_url: str = PARALLEL_API_BASE_URL,
        run_logger: Optional[DurableRunLogger] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        api_key_provider: Callable[[], str] = require_parallel_api_key,
    ) -> None:
        self._http = http_client
        self._url = build_task_runs_url(base_url)
        self._run_logger = run_logger
        self._timeout = timeout
        self._api_key_provider = api_key_provider

    async def create(
        self,
        input_text: str,
        tier: str,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> RunHandle:
        """
        Create a remote run.

        Args:
            input_text: Complete task input sent to the remote service
            tier: Processor selector, passed through untouched
            meta: Logging-only context (query, service name, ...)

        Returns:
            Handle of the created run

        Raises:
            ConfigurationError: If the API key is not configured (no request is sent)
            TaskCreationError: On non-2xx responses, transport failures or a
                response without ``run_id``
        """
        api_key = self._api_key_provider()

        logger.info("Creating remote task run (processor=%s)", tier)
        logger.debug("Task input length: %s chars", len(input_text))

        headers = {
            "x-api-key": api_key,
            "Content-Type": "application/json",
            "parallel-beta": EVENTS_SSE_BETA_HEADER,
        }
        body = {"input": input_text, "processor": tier, "enable_events": True}

        try:
            response = await self._http.post(self._url, headers=headers, json=body, timeout=self._timeout)
        except httpx.HTTPError as exc:
            logger.error("Task creation request failed: %s", exc)
            raise TaskCreationError(
                f"Unexpected error creating task: {exc}",
                original_error=exc,
            ) from exc

        if response.is_error:
            message = (
                f"Failed to create task: {response.status_code} "
                f"{response.reason_phrase} - {response.text}"
            )
            logger.error(message)
            raise TaskCreationError(message, status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            logger.error("Task creation returned a non-JSON body")
            raise TaskCreationError(
                f"Unexpected error creating task: invalid JSON response ({exc})",
                original_error=exc,
            ) from exc

        run_id = payload.get("run_id") if isinstance(payload, dict) else None
        if not isinstance(run_id, str) or not run_id.strip():
            logger.error("Task creation response missing run_id")
            raise TaskCreationError("Failed to create task: No run ID returned")

        handle = RunHandle(run_id)
        logger.info("Remote task created", extra={"run_id": run_id})

        if self._run_logger is not None:
            context: Dict[str, Any] = dict(meta or {})
            self._run_logger.emit_open(
                handle,
                {**context, "processor": tier, "taskInputLength": len(input_text)},
                {
                    "query": context.get("query"),
                    "processor": tier,
                    "taskInputLength": len(input_text),
                    "serviceName": context.get("serviceName") or "Unknown",
                },
            )

        return handle


__all__ = ["RemoteTaskClient"]
