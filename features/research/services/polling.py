"""Status polling for remote runs that expose no push-event feed."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, Union

from config.parallel import POLLING_HEARTBEAT_EVERY, POLLING_INTERVAL_SECONDS
from core.streaming.types import RelayEvent, StreamEventType
from features.research.types import BudgetExhausted, Completed, Failed, PollOutcome, RunHandle
from infrastructure.run_logs import DurableRunLogger

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({"completed", "failed"})

EventCallback = Callable[[RelayEvent], Union[None, Awaitable[None]]]


class StatusSource(Protocol):
    async def get_status(self, handle: RunHandle) -> Mapping[str, Any]: ...

    async def get_result(self, handle: RunHandle) -> Any: ...


@dataclass(frozen=True)
class StatusSnapshot:
    """Normalised view of one status document."""

    status: str
    is_active: bool
    metrics: Any
    document: Mapping[str, Any]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES or not self.is_active

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "StatusSnapshot":
        # FindAll nests the status object under ``status``; plain task runs do not.
        if not isinstance(document, Mapping):
            document = {}
        nested = document.get("status")
        body: Mapping[str, Any] = nested if isinstance(nested, Mapping) else document
        status = body.get("status")
        return cls(
            status=status if isinstance(status, str) and status else "unknown",
            is_active=body.get("is_active") is not False,
            metrics=body.get("metrics"),
            document=body,
        )


def _failure_reason(snapshot: StatusSnapshot) -> str:
    for key in ("error", "termination_reason", "message"):
        value = snapshot.document.get(key)
        if isinstance(value, Mapping):
            value = value.get("message")
        if value:
            return str(value)
    return "Task failed"


async def _deliver(on_event: Optional[EventCallback], event: RelayEvent) -> None:
    if on_event is None:
        return
    result = on_event(event)
    if inspect.isawaitable(result):
        await result


class PollingStatusTracker:
    """Poll a :class:`StatusSource` at a fixed interval until a terminal state.

    Budget exhaustion is reported as :class:`BudgetExhausted` rather than
    raised, leaving the final judgement to the caller.
    """

    def __init__(
        self,
        source: StatusSource,
        *,
        interval_seconds: float = POLLING_INTERVAL_SECONDS,
        heartbeat_every: int = POLLING_HEARTBEAT_EVERY,
        run_logger: Optional[DurableRunLogger] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._source = source
        self._interval = interval_seconds
        self._heartbeat_every = max(1, heartbeat_every)
        self._run_logger = run_logger

    @property
    def source(self) -> StatusSource:
        return self._source

    def attempts_for(self, max_wait_seconds: float) -> int:
        return max(1, int(max_wait_seconds // self._interval))

    async def poll(
        self,
        handle: RunHandle,
        max_wait_seconds: float,
        on_event: Optional[EventCallback] = None,
    ) -> PollOutcome:
        run_id = str(handle)
        attempts = self.attempts_for(max_wait_seconds)
        logger.info(
            "Starting status polling",
            extra={
                "run_id": run_id,
                "interval_seconds": self._interval,
                "max_wait_seconds": max_wait_seconds,
                "attempts": attempts,
            },
        )
        self._audit(
            handle,
            "POLL_START",
            {"intervalSeconds": self._interval, "maxWaitSeconds": max_wait_seconds, "attempts": attempts},
        )

        last: Optional[StatusSnapshot] = None
        for attempt in range(1, attempts + 1):
            try:
                document = await self._source.get_status(handle)
            except Exception as exc:
                logger.warning(
                    "Status fetch failed on attempt %s/%s: %s",
                    attempt,
                    attempts,
                    exc,
                    extra={"run_id": run_id},
                )
            else:
                snapshot = StatusSnapshot.from_document(document)
                changed = last is None or snapshot.status != last.status
                last = snapshot

                if changed or attempt % self._heartbeat_every == 0:
                    logger.debug(
                        "Emitting status %s (changed=%s, attempt=%s)",
                        snapshot.status,
                        changed,
                        attempt,
                        extra={"run_id": run_id},
                    )
                    payload = {"run_id": run_id, "status": snapshot.document, "metrics": snapshot.metrics}
                    await _deliver(on_event, RelayEvent(StreamEventType.STATUS_UPDATE.value, payload))
                    self._audit(handle, "POLL_STATUS", {"attempt": attempt, "status": snapshot.status})

                if snapshot.is_terminal:
                    return await self._finish(handle, snapshot)

            if attempt < attempts:
                await asyncio.sleep(self._interval)

        logger.warning(
            "Polling budget of %ss exhausted (last status: %s)",
            max_wait_seconds,
            last.status if last else None,
            extra={"run_id": run_id},
        )
        self._audit(
            handle,
            "RUN_COMPLETE",
            {"status": "budget_exhausted", "lastStatus": last.status if last else None},
        )
        return BudgetExhausted(last_status=last.document if last else None)

    async def _finish(self, handle: RunHandle, snapshot: StatusSnapshot) -> Union[Completed, Failed]:
        run_id = str(handle)
        if snapshot.status == "failed":
            reason = _failure_reason(snapshot)
            logger.error("Remote run failed: %s", reason, extra={"run_id": run_id})
            self._audit(handle, "RUN_COMPLETE", {"status": "failed", "error": reason})
            return Failed(reason=reason, run=snapshot.document)

        logger.info("Remote run reached %s", snapshot.status, extra={"run_id": run_id})
        try:
            result = await self._source.get_result(handle)
        except Exception as exc:
            logger.warning(
                "Result fetch failed after terminal status, completing with status only: %s",
                exc,
                extra={"run_id": run_id},
            )
            self._audit(handle, "RUN_COMPLETE", {"status": snapshot.status, "resultFetched": False})
            return Completed(output=None, run=snapshot.document)

        self._audit(handle, "RUN_COMPLETE", {"status": snapshot.status, "resultFetched": True})
        return Completed(output=result, run=snapshot.document)

    def _audit(self, handle: RunHandle, event_type: str, payload: Dict[str, Any]) -> None:
        if self._run_logger is not None:
            self._run_logger.emit(
                handle,
                event_type,
                {**payload, "timestamp": datetime.now(timezone.utc).isoformat()},
            )


__all__ = ["PollingStatusTracker", "StatusSnapshot", "StatusSource", "TERMINAL_STATUSES"]
