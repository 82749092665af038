"""HTTP routes for research, web search and FindAll runs."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from core.exceptions import ValidationError
from core.streaming.sinks import BufferedSink, QueueSink
from core.streaming.sse import SSE_HEADERS, format_sse
from features.research.dependencies import ResearchServices, get_research_services
from features.research.schemas import (
    FindAllRunRequest,
    JobCatalogueResponse,
    LogCleanupResponse,
    ResearchRunRequest,
    RunResultResponse,
)
from features.research.services.jobs import FINDALL, JOBS, JobDescriptor, get_job
from features.research.types import JobSpec

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/research", tags=["research"])


def _query_preview(text: Optional[str]) -> str:
    text = text or ""
    return text if len(text) <= 100 else f"{text[:100]}..."


def _resolve_feed_job(name: str) -> JobDescriptor:
    try:
        job = get_job(name)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if job.uses_polling:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Use the /api/v1/research/{job.name} endpoints for {job.name} runs",
        )
    return job


def _make_spec(job: JobDescriptor, query: Optional[str], tier: Optional[str], **params: Any) -> JobSpec:
    try:
        return job.make_spec(query or "", tier, **params)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


async def _run_blocking(services: ResearchServices, job: JobDescriptor, spec: JobSpec) -> Dict[str, Any]:
    sink = BufferedSink()
    await services.orchestrator_for(job).run(spec, job, sink)
    result = sink.as_result()
    if not result["success"]:
        logger.warning("%s request finished without result: %s", job.name, result.get("error"))
    return result


def _stream(services: ResearchServices, job: JobDescriptor, spec: JobSpec) -> StreamingResponse:
    sink = QueueSink()
    run_task = services.stream_runs.spawn(
        services.orchestrator_for(job).run(spec, job, sink),
        description=f"{job.name} stream",
    )

    async def event_stream() -> AsyncIterator[str]:
        try:
            async for event in sink.events():
                yield format_sse(event)
        finally:
            if not run_task.done():
                logger.info("Client left %s stream early, cancelling run", job.name)
                run_task.cancel()

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.get("/jobs", response_model=JobCatalogueResponse)
async def list_jobs() -> Dict[str, Any]:
    """List the job kinds, their processors and defaults."""

    return {"jobs": [job.as_catalogue_entry() for job in JOBS.values()]}


@router.post("/logs/cleanup", response_model=LogCleanupResponse)
async def cleanup_run_logs(
    days: Optional[int] = Query(None, ge=0, description="Delete run logs older than this many days"),
    services: ResearchServices = Depends(get_research_services),
) -> Dict[str, Any]:
    """Delete expired per-run audit logs."""

    older_than = services.run_logger.retention_days if days is None else days
    removed = await services.run_logger.sweep(older_than)
    return {"removed": removed, "older_than_days": older_than}


@router.post("/findall/run", response_model=RunResultResponse)
async def run_findall(
    request: FindAllRunRequest,
    services: ResearchServices = Depends(get_research_services),
) -> Dict[str, Any]:
    """Create a FindAll run and wait for its results."""

    logger.info("POST /findall/run (objective='%s')", _query_preview(request.objective))
    spec = _make_spec(FINDALL, request.objective, request.generator, **request.job_params())
    return await _run_blocking(services, FINDALL, spec)


@router.get("/findall/stream")
async def stream_findall(
    objective: Optional[str] = Query(None),
    generator: Optional[str] = Query(None),
    match_limit: Optional[int] = Query(None, ge=1, le=1000),
    entity_type: Optional[str] = Query(None),
    max_wait_seconds: Optional[int] = Query(None, ge=1, le=3600),
    services: ResearchServices = Depends(get_research_services),
) -> StreamingResponse:
    """Create a FindAll run and stream its polled status as SSE."""

    logger.info("GET /findall/stream (objective='%s')", _query_preview(objective))
    spec = _make_spec(
        FINDALL,
        objective,
        generator,
        match_limit=match_limit,
        entity_type=entity_type,
        max_wait_seconds=max_wait_seconds,
    )
    return _stream(services, FINDALL, spec)


@router.post("/{job_name}", response_model=RunResultResponse)
async def run_job(
    job_name: str,
    request: ResearchRunRequest,
    services: ResearchServices = Depends(get_research_services),
) -> Dict[str, Any]:
    """Run a research or search job and return its output in one response.

    Failures are reported as ``{"success": false, "error": ...}`` with a 200
    status.
    """

    job = _resolve_feed_job(job_name)
    logger.info("POST /%s (query='%s')", job.name, _query_preview(request.query))
    spec = _make_spec(job, request.query, request.processor, **request.job_params(list(job.param_defaults)))
    return await _run_blocking(services, job, spec)


@router.get("/{job_name}/stream")
async def stream_job(
    job_name: str,
    query: Optional[str] = Query(None),
    processor: Optional[str] = Query(None),
    include_analysis: Optional[bool] = Query(None),
    max_results: Optional[int] = Query(None, gt=0, le=100),
    include_excerpts: Optional[bool] = Query(None),
    services: ResearchServices = Depends(get_research_services),
) -> StreamingResponse:
    """Run a research or search job and stream its progress as SSE."""

    job = _resolve_feed_job(job_name)
    logger.info("GET /%s/stream (query='%s', processor=%s)", job.name, _query_preview(query), processor)
    supplied = {
        "include_analysis": include_analysis,
        "max_results": max_results,
        "include_excerpts": include_excerpts,
    }
    params = {key: value for key, value in supplied.items() if key in job.param_defaults}
    spec = _make_spec(job, query, processor, **params)
    return _stream(services, job, spec)


__all__ = ["router"]
