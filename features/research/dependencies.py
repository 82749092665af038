"""Construction and FastAPI injection of the research services."""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
from fastapi import HTTPException, Request, status

from core.config import Settings
from core.utils.background import DetachedTasks
from features.research.services.event_relay import EventFeedRelay
from features.research.services.findall_client import FindAllClient
from features.research.services.jobs import JobDescriptor
from features.research.services.orchestrator import StreamingOrchestrator
from features.research.services.polling import PollingStatusTracker
from features.research.services.task_client import RemoteTaskClient
from infrastructure.run_logs import DurableRunLogger


@dataclass
class ResearchServices:
    """Everything one process needs to bridge runs; built once at startup."""

    settings: Settings
    run_logger: DurableRunLogger
    task_client: RemoteTaskClient
    findall_client: FindAllClient
    relay: EventFeedRelay
    tracker: PollingStatusTracker
    relay_orchestrator: StreamingOrchestrator
    polling_orchestrator: StreamingOrchestrator
    stream_runs: DetachedTasks = field(default_factory=lambda: DetachedTasks("research-stream"))

    def orchestrator_for(self, job: JobDescriptor) -> StreamingOrchestrator:
        return self.polling_orchestrator if job.uses_polling else self.relay_orchestrator

    async def aclose(self) -> None:
        """Stop in-flight streamed runs, then flush pending audit writes."""

        await self.stream_runs.cancel()
        await self.run_logger.drain()


def build_research_services(settings: Settings, http_client: httpx.AsyncClient) -> ResearchServices:
    run_logger = DurableRunLogger(settings.run_log_dir, retention_days=settings.run_log_retention_days)
    task_client = RemoteTaskClient(
        http_client,
        base_url=settings.parallel_base_url,
        run_logger=run_logger,
        timeout=settings.http_timeout_seconds,
    )
    findall_client = FindAllClient(
        http_client,
        base_url=settings.parallel_base_url,
        run_logger=run_logger,
        timeout=settings.http_timeout_seconds,
    )
    relay = EventFeedRelay(
        http_client,
        base_url=settings.parallel_base_url,
        run_logger=run_logger,
        timeout_seconds=settings.relay_timeout_seconds,
        connect_timeout=settings.http_timeout_seconds,
    )
    tracker = PollingStatusTracker(
        findall_client,
        interval_seconds=settings.polling_interval_seconds,
        heartbeat_every=settings.polling_heartbeat_every,
        run_logger=run_logger,
    )
    return ResearchServices(
        settings=settings,
        run_logger=run_logger,
        task_client=task_client,
        findall_client=findall_client,
        relay=relay,
        tracker=tracker,
        relay_orchestrator=StreamingOrchestrator(task_client, relay=relay, run_logger=run_logger),
        polling_orchestrator=StreamingOrchestrator(
            findall_client,
            tracker=tracker,
            run_logger=run_logger,
            default_max_wait_seconds=settings.findall_max_wait_seconds,
        ),
    )


def get_research_services(request: Request) -> ResearchServices:
    services = getattr(request.app.state, "research", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Research services are not initialised",
        )
    return services


__all__ = ["ResearchServices", "build_research_services", "get_research_services"]
