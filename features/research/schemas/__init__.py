from .requests import FindAllRunRequest, MatchCondition, ResearchRunRequest
from .responses import JobCatalogueEntry, JobCatalogueResponse, LogCleanupResponse, RunResultResponse

__all__ = [
    "FindAllRunRequest",
    "JobCatalogueEntry",
    "JobCatalogueResponse",
    "LogCleanupResponse",
    "MatchCondition",
    "ResearchRunRequest",
    "RunResultResponse",
]
