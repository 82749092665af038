"""Research feature: bridges remote Parallel task runs to HTTP clients."""

from features.research.dependencies import ResearchServices, build_research_services
from features.research.routes import router

__all__ = ["ResearchServices", "build_research_services", "router"]
