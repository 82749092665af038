"""Generic lifecycle driver for one bridged remote run.

``run()`` creates the remote run, announces it, follows it (push feed or
polling), and terminates the caller's sink through exactly one of
``complete()`` / ``error()`` whatever step fails, cancellation included.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Protocol

from config.parallel import FINDALL_MAX_WAIT_SECONDS
from core.exceptions import ConfigurationError, RemoteTaskFailure, StreamingError
from core.streaming.sinks import GuardedSink, Sink
from core.streaming.types import RelayEvent, StreamEventType
from features.research.services.event_relay import EventFeedRelay
from features.research.services.jobs import JobDescriptor
from features.research.services.polling import PollingStatusTracker
from features.research.types import BudgetExhausted, Completed, Failed, JobSpec, RunHandle
from infrastructure.run_logs import DurableRunLogger

logger = logging.getLogger(__name__)


class TaskCreator(Protocol):
    async def create(
        self,
        input_text: str,
        tier: str,
        meta: Optional[Mapping[str, Any]] = None,
    ) -> RunHandle: ...


class StreamingOrchestrator:
    """Tie creation, relay or polling, and sink termination together.

    Exactly one follower is used per instance: an :class:`EventFeedRelay` for
    feed-backed APIs or a :class:`PollingStatusTracker` for feed-less ones.
    """

    def __init__(
        self,
        creator: TaskCreator,
        *,
        relay: Optional[EventFeedRelay] = None,
        tracker: Optional[PollingStatusTracker] = None,
        run_logger: Optional[DurableRunLogger] = None,
        default_max_wait_seconds: float = FINDALL_MAX_WAIT_SECONDS,
    ) -> None:
        if (relay is None) == (tracker is None):
            raise ConfigurationError("Orchestrator needs exactly one of relay or tracker")
        self._creator = creator
        self._relay = relay
        self._tracker = tracker
        self._run_logger = run_logger
        self._default_max_wait = default_max_wait_seconds

    @property
    def uses_polling(self) -> bool:
        return self._tracker is not None

    async def run(self, job_spec: JobSpec, job: JobDescriptor, sink: Sink) -> Optional[Completed]:
        """Drive one run; returns the completed result or ``None`` on error."""

        guarded = GuardedSink(sink)
        handle: Optional[RunHandle] = None
        logger.info(
            "Starting %s run (processor=%s, query=%r)",
            job.name,
            job_spec.tier,
            job_spec.query[:100],
        )

        try:
            task_input = job.build_input(job_spec)
            meta = {"query": job_spec.query, "serviceName": job.service_name, **job_spec.params}
            handle = await self._creator.create(task_input, job_spec.tier, meta)
            run_id = str(handle)
            guarded.bind(run_id)

            await guarded.next(
                {
                    "type": StreamEventType.CONNECTED.value,
                    "data": {"message": job.connected_message, "run_id": run_id, **job_spec.as_payload()},
                }
            )

            async def forward(event: RelayEvent) -> None:
                await guarded.next(event.as_message())

            if self._tracker is not None:
                result = await self._follow_by_polling(handle, job_spec, forward, guarded)
            else:
                assert self._relay is not None
                result = await self._relay.subscribe(handle, forward)

            complete_data: Dict[str, Any] = {
                "message": job.completion_message,
                "run_id": run_id,
                "output": result.output,
            }
            if result.output is None and result.run is not None:
                complete_data["status"] = result.run
            await guarded.next({"type": StreamEventType.COMPLETE.value, "data": complete_data})
            await guarded.complete()

            logger.info("%s run completed", job.name, extra={"run_id": run_id})
            self._audit(handle, "STREAM_COMPLETE", {"job": job.name, "status": "completed"})
            return result

        except asyncio.CancelledError:
            logger.warning(
                "%s run cancelled before completion",
                job.name,
                extra={"run_id": str(handle) if handle else None},
            )
            await guarded.error(StreamingError("Run cancelled by client", stage="cancelled"))
            if handle is not None:
                self._audit(handle, "ERROR", {"message": "Run cancelled by client", "type": "cancelled"})
            raise

        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.error(
                "%s run failed: %s",
                job.name,
                message,
                exc_info=not isinstance(exc, (StreamingError, RemoteTaskFailure, ConfigurationError)),
                extra={"run_id": str(handle) if handle else None},
            )
            try:
                await guarded.next({"type": StreamEventType.ERROR.value, "data": {"error": message}})
            except Exception as sink_exc:
                logger.warning(
                    "Could not deliver error event: %s",
                    sink_exc,
                    extra={"run_id": str(handle) if handle else None},
                )
            await guarded.error(exc)
            if handle is not None:
                self._audit(handle, "ERROR", {"message": message, "type": type(exc).__name__})
            return None

    async def _follow_by_polling(
        self,
        handle: RunHandle,
        job_spec: JobSpec,
        forward,
        guarded: GuardedSink,
    ) -> Completed:
        assert self._tracker is not None
        max_wait = float(job_spec.params.get("max_wait_seconds") or self._default_max_wait)
        outcome = await self._tracker.poll(handle, max_wait, forward)

        if isinstance(outcome, Failed):
            raise RemoteTaskFailure(outcome.reason, run_id=str(handle))
        if isinstance(outcome, Completed):
            return outcome

        assert isinstance(outcome, BudgetExhausted)
        try:
            output = await self._tracker.source.get_result(handle)
        except Exception as exc:
            logger.warning(
                "Final result fetch after polling budget failed: %s",
                exc,
                extra={"run_id": str(handle)},
            )
            await guarded.next(
                {
                    "type": StreamEventType.TIMEOUT.value,
                    "data": {
                        "message": f"Polling timeout after {max_wait:g} seconds",
                        "run_id": str(handle),
                        "status": outcome.last_status,
                    },
                }
            )
            return Completed(output=None, run=outcome.last_status)
        return Completed(output=output, run=outcome.last_status)

    def _audit(self, handle: RunHandle, event_type: str, payload: Dict[str, Any]) -> None:
        if self._run_logger is not None:
            self._run_logger.emit(
                handle,
                event_type,
                {**payload, "timestamp": datetime.now(timezone.utc).isoformat()},
            )


__all__ = ["StreamingOrchestrator", "TaskCreator"]
