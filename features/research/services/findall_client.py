"""Client for the FindAll API, which is polled rather than streamed."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

import httpx

from config.api_keys import require_parallel_api_key
from config.parallel import FINDALL_BETA_HEADER, HTTP_TIMEOUT_SECONDS, PARALLEL_API_BASE_URL
from config.parallel.utils import build_findall_url
from core.exceptions import ProviderError, TaskCreationError
from features.research.types import RunHandle
from infrastructure.run_logs import DurableRunLogger

logger = logging.getLogger(__name__)

DEFAULT_MATCH_LIMIT = 10


class FindAllClient:
    """Create FindAll runs and fetch their status and results.

    Implements the ``create`` contract used by the orchestrator and the
    ``get_status`` / ``get_result`` pair consumed by the polling tracker.
    """

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
        self._base_url = base_url
        self._run_logger = run_logger
        self._timeout = timeout
        self._api_key_provider = api_key_provider

    async def _request(self, endpoint: str, method: str = "GET", body: Optional[Dict[str, Any]] = None) -> Any:
        api_key = self._api_key_provider()
        headers = {
            "x-api-key": api_key,
            "parallel-beta": FINDALL_BETA_HEADER,
            "Content-Type": "application/json",
        }
        url = build_findall_url(self._base_url, endpoint)

        try:
            response = await self._http.request(method, url, headers=headers, json=body, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"FindAll API request failed: {exc}",
                provider="parallel",
                original_error=exc,
            ) from exc

        if response.is_error:
            raise ProviderError(
                f"FindAll API request failed: {response.status_code} {response.reason_phrase} - {response.text}",
                provider="parallel",
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                f"FindAll API returned invalid JSON for {endpoint}",
                provider="parallel",
                original_error=exc,
            ) from exc

    async def ingest(self, objective: str) -> Dict[str, Any]:
        """Ask the remote service to derive an entity type and match conditions."""

        result = await self._request("/ingest", "POST", {"objective": objective})
        return result if isinstance(result, dict) else {}

    async def create(
        self,
        objective: str,
        generator: str,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> RunHandle:
        """
        Create a FindAll run.

        ``meta`` carries the run options (``match_limit``, ``entity_type``,
        ``match_conditions``, ``enrichments``) alongside logging context.
        A missing entity type or match conditions triggers a best-effort
        schema ingest first.

        Raises:
            ConfigurationError: If the API key is not configured
            TaskCreationError: If the run cannot be created
        """
        options: Dict[str, Any] = dict(meta or {})
        self._api_key_provider()

        entity_type = options.get("entity_type")
        match_conditions: List[Any] = list(options.get("match_conditions") or [])

        if not entity_type or not match_conditions:
            logger.debug("Entity type or match conditions missing, running schema ingest")
            try:
                ingested = await self.ingest(objective)
            except ProviderError as exc:
                logger.warning("Schema ingest failed, proceeding with provided values: %s", exc)
            else:
                entity_type = entity_type or ingested.get("entity_type")
                match_conditions = match_conditions or list(ingested.get("match_conditions") or [])

        body: Dict[str, Any] = {
            "objective": objective,
            "generator": generator,
            "match_limit": options.get("match_limit") or DEFAULT_MATCH_LIMIT,
        }
        if entity_type:
            body["entity_type"] = entity_type
        if match_conditions:
            body["match_conditions"] = match_conditions
        if options.get("enrichments"):
            body["enrichments"] = list(options["enrichments"])

        logger.info("Creating FindAll run (generator=%s)", generator)
        try:
            created = await self._request("/runs", "POST", body)
        except ProviderError as exc:
            raise TaskCreationError(
                f"Failed to create FindAll run: {exc}",
                original_error=exc,
            ) from exc

        findall_id = created.get("findall_id") if isinstance(created, dict) else None
        if not isinstance(findall_id, str) or not findall_id.strip():
            raise TaskCreationError("Failed to create FindAll run: No findall_id returned")

        handle = RunHandle(findall_id)
        logger.info("FindAll run created", extra={"run_id": findall_id})

        if self._run_logger is not None:
            self._run_logger.emit_open(
                handle,
                {**options, "generator": generator},
                {
                    "query": options.get("query", objective),
                    "processor": generator,
                    "taskInputLength": len(objective),
                    "serviceName": options.get("serviceName") or "FindAll",
                },
            )
        return handle

    async def get_status(self, handle: RunHandle) -> Dict[str, Any]:
        return await self._request(f"/runs/{handle}")

    async def get_result(self, handle: RunHandle) -> Any:
        return await self._request(f"/runs/{handle}/result")


__all__ = ["DEFAULT_MATCH_LIMIT", "FindAllClient"]
