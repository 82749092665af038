"""Request schemas for research and FindAll endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ResearchRunRequest(BaseModel):
    """Body for the blocking research/search endpoints.

    Only the fields a job kind understands are forwarded to it; the rest are
    ignored.
    """

    query: str = Field(..., description="Free-form research question or search query")
    processor: Optional[str] = Field(None, description="Processing tier; defaults per job")
    include_analysis: Optional[bool] = Field(None, description="Ask for analysis on top of facts")
    max_results: Optional[int] = Field(None, gt=0, le=100, description="Web search only")
    include_excerpts: Optional[bool] = Field(None, description="Web search only")

    def job_params(self, accepted: List[str]) -> Dict[str, Any]:
        values = self.model_dump(exclude={"query", "processor"}, exclude_none=True)
        return {key: value for key, value in values.items() if key in accepted}


class MatchCondition(BaseModel):
    name: str
    description: str


class FindAllRunRequest(BaseModel):
    """Body for creating a FindAll run."""

    objective: str = Field(..., description="Natural language description of the entities to find")
    generator: Optional[str] = Field(None, description="Generator tier (base, core or pro)")
    match_limit: int = Field(10, ge=1, le=1000)
    entity_type: Optional[str] = None
    match_conditions: Optional[List[MatchCondition]] = None
    enrichments: Optional[List[str]] = None
    max_wait_seconds: Optional[int] = Field(None, ge=1, le=3600)

    def job_params(self) -> Dict[str, Any]:
        params = self.model_dump(exclude={"objective", "generator"}, exclude_none=True)
        if self.match_conditions:
            params["match_conditions"] = [condition.model_dump() for condition in self.match_conditions]
        return params


__all__ = ["FindAllRunRequest", "MatchCondition", "ResearchRunRequest"]
