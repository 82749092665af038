"""Client-facing sinks for orchestrated runs.

A sink receives an ordered sequence of ``{"type", "data"}`` events followed by
exactly one terminal call: ``complete()`` or ``error(exc)``. The orchestrator
always wraps the caller's sink in :class:`GuardedSink`, which owns that
exactly-once guarantee, so concrete sinks can stay simple.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, runtime_checkable

from core.streaming.types import StreamEventType
from core.utils.json_serialization import sanitize_for_json

logger = logging.getLogger(__name__)


@runtime_checkable
class Sink(Protocol):
    async def next(self, event: Dict[str, Any]) -> None: ...

    async def error(self, exc: BaseException) -> None: ...

    async def complete(self) -> None: ...


class GuardedSink:
    """Terminal-once wrapper around another sink.

    Events delivered after termination and second terminal calls are logged
    and dropped. A failure in the wrapped sink's ``next`` is logged and
    re-raised so the run ends with an error; failures inside the terminal
    calls are only logged.
    """

    def __init__(self, inner: Sink, *, run_label: str = "") -> None:
        self._inner = inner
        self._run_label = run_label
        self._terminated = False
        self._outcome: Optional[str] = None

    @property
    def terminated(self) -> bool:
        return self._terminated

    @property
    def outcome(self) -> Optional[str]:
        """``"complete"``, ``"error"`` or ``None`` while the run is live."""

        return self._outcome

    def bind(self, run_label: str) -> None:
        self._run_label = run_label

    async def next(self, event: Dict[str, Any]) -> None:
        if self._terminated:
            logger.warning(
                "Dropping %s event after sink termination",
                event.get("type") if isinstance(event, dict) else type(event).__name__,
                extra={"run_id": self._run_label},
            )
            return
        try:
            await self._inner.next(event)
        except Exception as exc:
            logger.error(
                "Sink rejected event: %s",
                exc,
                extra={"run_id": self._run_label},
            )
            raise

    async def error(self, exc: BaseException) -> None:
        if not self._claim("error"):
            return
        try:
            await self._inner.error(exc)
        except Exception as sink_exc:
            logger.error(
                "Sink failed while terminating with error: %s",
                sink_exc,
                exc_info=True,
                extra={"run_id": self._run_label},
            )

    async def complete(self) -> None:
        if not self._claim("complete"):
            return
        try:
            await self._inner.complete()
        except Exception as sink_exc:
            logger.error(
                "Sink failed while completing: %s",
                sink_exc,
                exc_info=True,
                extra={"run_id": self._run_label},
            )

    def _claim(self, outcome: str) -> bool:
        if self._terminated:
            logger.warning(
                "Ignoring %s after sink already terminated with %s",
                outcome,
                self._outcome,
                extra={"run_id": self._run_label},
            )
            return False
        self._terminated = True
        self._outcome = outcome
        return True


class QueueSink:
    """Sink backed by an ``asyncio.Queue``; ``None`` marks end of stream."""

    def __init__(self, maxsize: int = 0) -> None:
        self.queue: asyncio.Queue[Optional[Dict[str, Any]]] = asyncio.Queue(maxsize=maxsize)
        self.failure: Optional[BaseException] = None
        self.closed = False

    async def next(self, event: Dict[str, Any]) -> None:
        await self.queue.put(sanitize_for_json(event))

    async def error(self, exc: BaseException) -> None:
        self.failure = exc
        await self._close()

    async def complete(self) -> None:
        await self._close()

    async def _close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.queue.put(None)

    async def events(self) -> AsyncIterator[Dict[str, Any]]:
        """Yield queued events until the sink terminates."""

        while True:
            item = await self.queue.get()
            if item is None:
                return
            yield item


class BufferedSink:
    """Collects a run for callers that want one response instead of a stream."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []
        self.run_id: Optional[str] = None
        self.completion: Optional[Dict[str, Any]] = None
        self.failure: Optional[BaseException] = None
        self.finished = False

    async def next(self, event: Dict[str, Any]) -> None:
        self.events.append(event)
        event_type = event.get("type")
        data = event.get("data")
        if event_type == StreamEventType.CONNECTED.value and isinstance(data, dict):
            self.run_id = data.get("run_id")
        elif event_type == StreamEventType.COMPLETE.value and isinstance(data, dict):
            self.completion = data

    async def error(self, exc: BaseException) -> None:
        self.failure = exc
        self.finished = True

    async def complete(self) -> None:
        self.finished = True

    def as_result(self) -> Dict[str, Any]:
        if self.failure is not None:
            return {"success": False, "error": str(self.failure) or type(self.failure).__name__}
        if not self.finished or self.completion is None:
            return {"success": False, "error": "Run finished without a result"}
        return {
            "success": True,
            "run_id": self.completion.get("run_id", self.run_id),
            "output": sanitize_for_json(self.completion.get("output")),
            "message": self.completion.get("message"),
        }


__all__ = ["BufferedSink", "GuardedSink", "QueueSink", "Sink"]
