"""Response schemas for research endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class JobCatalogueEntry(BaseModel):
    name: str
    summary: str
    processors: List[str]
    default_processor: str
    mode: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class JobCatalogueResponse(BaseModel):
    jobs: List[JobCatalogueEntry]


class RunResultResponse(BaseModel):
    """Outcome of a blocking run; ``success`` is false on any failure."""

    success: bool
    run_id: Optional[str] = None
    output: Any = None
    message: Optional[str] = None
    error: Optional[str] = None


class LogCleanupResponse(BaseModel):
    removed: int
    older_than_days: int


__all__ = [
    "JobCatalogueEntry",
    "JobCatalogueResponse",
    "LogCleanupResponse",
    "RunResultResponse",
]
