"""Relay of a remote run's push-event feed to a local callback.

One subscription moves through ``connecting -> streaming`` and ends in exactly
one of: completed, failed, timed out, or stream ended without result. The
outcome is written once into a per-subscription slot; whichever of the stream
reader and the wall clock gets there second defers to what is already stored.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union

import httpx

from config.api_keys import require_parallel_api_key
from config.parallel import (
    EVENTS_SSE_BETA_HEADER,
    HTTP_TIMEOUT_SECONDS,
    PARALLEL_API_BASE_URL,
    RELAY_TIMEOUT_SECONDS,
)
from config.parallel.utils import build_task_run_events_url
from core.exceptions import RelayError, RemoteTaskFailure
from core.streaming.types import RelayEvent
from features.research.services.sse_parser import SSEEventParser
from features.research.types import Completed, RunHandle
from infrastructure.run_logs import DurableRunLogger

logger = logging.getLogger(__name__)

STATE_EVENT_TYPE = "task_run.state"

EventCallback = Callable[[RelayEvent], Union[None, Awaitable[None]]]

_MISSING = object()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _failure_reason(run: Dict[str, Any]) -> str:
    error = run.get("error")
    if isinstance(error, dict):
        error = error.get("message") or error.get("detail")
    return str(error) if error else "Task failed"


def inspect_state_event(event: RelayEvent) -> Optional[Union[Completed, RemoteTaskFailure]]:
    """Return the terminal outcome carried by ``event``, if any.

    A ``completed`` state whose output is explicitly ``null`` is not terminal;
    the remote service follows up with another state event once the output
    is attached.
    """

    if event.type != STATE_EVENT_TYPE or not isinstance(event.data, dict):
        return None
    run = event.data.get("run")
    if not isinstance(run, dict):
        return None

    status = run.get("status")
    if status == "completed":
        output = event.data.get("output", _MISSING)
        if output is _MISSING:
            output = run.get("output", _MISSING)
        if output is None:
            return None
        return Completed(output=None if output is _MISSING else output, run=run)
    if status == "failed":
        return RemoteTaskFailure(_failure_reason(run), run_id=run.get("run_id"))
    return None


@dataclass
class _Subscription:
    handle: RunHandle
    event_count: int = 0
    outcome: Optional[Union[Completed, BaseException]] = None

    def settle(self, outcome: Union[Completed, BaseException]) -> Union[Completed, BaseException]:
        if self.outcome is None:
            self.outcome = outcome
        return self.outcome

    def resolve(self) -> Completed:
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        assert self.outcome is not None
        return self.outcome


class EventFeedRelay:
    """Subscribe to a run's event feed and resolve with its terminal result."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        base_url: str = PARALLEL_API_BASE_URL,
        run_logger: Optional[DurableRunLogger] = None,
        timeout_seconds: float = RELAY_TIMEOUT_SECONDS,
        connect_timeout: float = HTTP_TIMEOUT_SECONDS,
        api_key_provider: Callable[[], str] = require_parallel_api_key,
    ) -> None:
        self._http = http_client
        self._base_url = base_url
        self._run_logger = run_logger
        self._timeout_seconds = timeout_seconds
        self._connect_timeout = connect_timeout
        self._api_key_provider = api_key_provider
        self._active: Set[str] = set()

    @property
    def active_runs(self) -> frozenset[str]:
        return frozenset(self._active)

    async def subscribe(self, handle: RunHandle, on_event: EventCallback) -> Completed:
        """
        Relay events for ``handle`` until a terminal state is observed.

        Raises:
            ConfigurationError: If the API key is not configured
            RemoteTaskFailure: If the run reports ``failed``
            RelayError: On connection errors, timeout, stream processing
                errors or a stream that ends without a terminal state
        """
        api_key = self._api_key_provider()
        run_id = str(handle)

        if run_id in self._active:
            raise RelayError(
                f"Run {run_id} already has an active subscription",
                reason="already_subscribed",
            )

        self._active.add(run_id)
        subscription = _Subscription(handle=handle)
        logger.info("Starting event feed relay", extra={"run_id": run_id})
        self._audit(handle, "SSE_STREAM_START", {"runId": run_id, "timestamp": _now_iso()})

        try:
            try:
                return await asyncio.wait_for(
                    self._stream(subscription, api_key, on_event),
                    timeout=self._timeout_seconds,
                )
            except asyncio.TimeoutError:
                if subscription.outcome is not None:
                    return subscription.resolve()
                message = f"Stream timeout after {self._describe_timeout()}"
                subscription.settle(RelayError(message, reason="timeout"))
                logger.warning(message, extra={"run_id": run_id})
                self._audit_error(subscription, message, "timeout")
                return subscription.resolve()
        finally:
            self._active.discard(run_id)

    async def _stream(
        self,
        subscription: _Subscription,
        api_key: str,
        on_event: EventCallback,
    ) -> Completed:
        handle = subscription.handle
        run_id = str(handle)
        url = build_task_run_events_url(self._base_url, run_id)
        headers = {
            "x-api-key": api_key,
            "parallel-beta": EVENTS_SSE_BETA_HEADER,
            "Accept": "text/event-stream",
        }
        parser = SSEEventParser(run_label=run_id)

        try:
            async with self._http.stream(
                "GET",
                url,
                headers=headers,
                timeout=httpx.Timeout(self._connect_timeout, read=None),
            ) as response:
                logger.info(
                    "Event feed responded %s %s",
                    response.status_code,
                    response.reason_phrase,
                    extra={"run_id": run_id},
                )
                if response.is_error:
                    message = f"HTTP error! status: {response.status_code} {response.reason_phrase}"
                    raise self._fail(
                        subscription,
                        RelayError(message, reason="http_error", status_code=response.status_code),
                    )

                try:
                    async for chunk in response.aiter_bytes():
                        for event in parser.feed(chunk):
                            outcome = await self._dispatch(subscription, event, on_event)
                            if outcome is not None:
                                return outcome
                except httpx.HTTPError as exc:
                    raise self._fail(
                        subscription,
                        RelayError(
                            f"Stream processing error: {exc}",
                            reason="stream_processing_error",
                            original_error=exc,
                        ),
                    ) from exc

                for event in parser.flush():
                    outcome = await self._dispatch(subscription, event, on_event)
                    if outcome is not None:
                        return outcome
        except httpx.HTTPError as exc:
            if isinstance(subscription.outcome, Completed):
                return subscription.outcome
            raise self._fail(
                subscription,
                RelayError(f"Fetch error: {exc}", reason="fetch_error", original_error=exc),
            ) from exc

        logger.info(
            "Event feed closed after %s event(s)",
            subscription.event_count,
            extra={"run_id": run_id},
        )
        raise self._fail(
            subscription,
            RelayError("Stream ended without result", reason="stream_ended_without_result"),
        )

    async def _dispatch(
        self,
        subscription: _Subscription,
        event: RelayEvent,
        on_event: EventCallback,
    ) -> Optional[Completed]:
        handle = subscription.handle
        subscription.event_count += 1
        logger.debug(
            "Relaying %s (event #%s)",
            event.type,
            subscription.event_count,
            extra={"run_id": str(handle)},
        )
        self._audit(handle, f"SSE_{event.type}", {"data": event.data, "timestamp": _now_iso()})

        try:
            result = on_event(event)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            raise self._fail(
                subscription,
                RelayError(
                    f"Stream processing error: {exc}",
                    reason="stream_processing_error",
                    original_error=exc,
                ),
            ) from exc

        outcome = inspect_state_event(event)
        if outcome is None:
            return None

        if isinstance(outcome, RemoteTaskFailure):
            if outcome.run_id is None:
                outcome.run_id = str(handle)
            raise self._fail(subscription, outcome, audit_type="task_failed")

        settled = subscription.settle(outcome)
        logger.info(
            "Run completed after %s event(s)",
            subscription.event_count,
            extra={"run_id": str(handle)},
        )
        output = outcome.output
        self._audit(
            handle,
            "RUN_COMPLETE",
            {
                "status": "completed",
                "eventCount": subscription.event_count,
                "outputLength": len(output) if isinstance(output, (str, list, dict)) else 0,
                "timestamp": _now_iso(),
            },
        )
        return settled if isinstance(settled, Completed) else subscription.resolve()

    def _fail(
        self,
        subscription: _Subscription,
        exc: BaseException,
        *,
        audit_type: Optional[str] = None,
    ) -> BaseException:
        settled = subscription.settle(exc)
        if settled is exc:
            reason = audit_type or getattr(exc, "reason", None) or type(exc).__name__
            logger.error(
                "Relay failed (%s): %s",
                reason,
                exc,
                extra={"run_id": str(subscription.handle)},
            )
            self._audit_error(subscription, str(exc), reason)
        return settled if isinstance(settled, BaseException) else exc

    def _audit_error(self, subscription: _Subscription, message: str, error_type: str) -> None:
        self._audit(
            subscription.handle,
            "ERROR",
            {
                "message": message,
                "type": error_type,
                "eventCount": subscription.event_count,
                "timestamp": _now_iso(),
            },
        )

    def _audit(self, handle: RunHandle, event_type: str, payload: Dict[str, Any]) -> None:
        if self._run_logger is not None:
            self._run_logger.emit(handle, event_type, payload)

    def _describe_timeout(self) -> str:
        seconds = self._timeout_seconds
        if seconds >= 60 and seconds % 60 == 0:
            minutes = int(seconds // 60)
            return f"{minutes} minute{'s' if minutes != 1 else ''}"
        return f"{seconds:g} seconds"


__all__ = ["EventFeedRelay", "STATE_EVENT_TYPE", "inspect_state_event"]
