"""Catalogue of job kinds the bridge can run.

Each job kind is data: the tiers it accepts, the messages sent to clients and
the function turning a :class:`JobSpec` into remote task input. The
orchestrator is shared by all of them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from config.parallel import FINDALL_MAX_WAIT_SECONDS
from core.exceptions import ValidationError
from features.research.types import JobSpec

RELAY_MODE = "relay"
POLL_MODE = "poll"


def _analysis_line(spec: JobSpec, detailed: str, plain: str) -> str:
    return detailed if spec.params.get("include_analysis", True) else plain


def build_deep_research_input(spec: JobSpec) -> str:
    return (
        f"Conduct comprehensive research on: {spec.query}\n\n"
        "Cover the topic from multiple angles and cite authoritative sources.\n"
        "- Start with an executive summary of the key findings\n"
        "- Organise the body into clearly titled sections\n"
        f"- {_analysis_line(spec, 'Include in-depth analysis, trends, implications and future outlook', 'Provide comprehensive factual information')}\n"
        "- Close with a list of the sources consulted"
    )


def build_quick_deep_research_input(spec: JobSpec) -> str:
    return (
        f"Research the following topic efficiently: {spec.query}\n\n"
        "Focus on the most important facts and recent developments.\n"
        "- Keep the summary short and well structured\n"
        f"- {_analysis_line(spec, 'Include analysis of trends and implications', 'Provide factual information')}\n"
        "- List the key sources"
    )


def build_ultra_deep_research_input(spec: JobSpec) -> str:
    return (
        f"Produce an exhaustive, expert-level research report on: {spec.query}\n\n"
        "Use primary sources where they exist and cross-check conflicting claims.\n"
        "- Provide historical context and the current state of the field\n"
        "- Compare competing viewpoints and quantify findings where possible\n"
        f"- {_analysis_line(spec, 'Include strategic analysis, risks, opportunities and future scenarios', 'Provide exhaustive factual coverage')}\n"
        "- Finish with a complete bibliography"
    )


def build_web_search_input(spec: JobSpec) -> str:
    max_results = spec.params.get("max_results", 10)
    detail = "detailed excerpts" if spec.params.get("include_excerpts", True) else "brief summaries"
    return (
        f"Find relevant, accurate and up-to-date information about: {spec.query}. "
        f"Return up to {max_results} results with {detail}. For each result give:\n"
        "1. Title\n"
        "2. Content or excerpt\n"
        "3. Source URL\n"
        "4. Relevance score (if available)\n"
        "5. Published date (if available)"
    )


def build_findall_input(spec: JobSpec) -> str:
    return spec.query


@dataclass(frozen=True)
class JobDescriptor:
    name: str
    summary: str
    tiers: Tuple[str, ...]
    default_tier: str
    input_builder: Callable[[JobSpec], str]
    connected_message: str
    completion_message: str
    service_name: str
    mode: str = RELAY_MODE
    param_defaults: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.default_tier not in self.tiers:
            raise ValueError(f"Default tier {self.default_tier!r} not offered by {self.name}")
        object.__setattr__(self, "param_defaults", MappingProxyType(dict(self.param_defaults)))

    @property
    def uses_polling(self) -> bool:
        return self.mode == POLL_MODE

    def build_input(self, spec: JobSpec) -> str:
        return self.input_builder(spec)

    def resolve_tier(self, tier: Optional[str]) -> str:
        if tier is None or tier == "":
            return self.default_tier
        if tier not in self.tiers:
            raise ValidationError(
                f"Invalid processor '{tier}' for {self.name}; expected one of: {', '.join(self.tiers)}",
                field="processor",
            )
        return tier

    def make_spec(self, query: str, tier: Optional[str] = None, **params: Any) -> JobSpec:
        """Validate caller input and fill in per-job defaults."""

        if not isinstance(query, str) or not query.strip():
            raise ValidationError("Query is required", field="query")
        merged: Dict[str, Any] = dict(self.param_defaults)
        merged.update({key: value for key, value in params.items() if value is not None})
        return JobSpec(query=query.strip(), tier=self.resolve_tier(tier), params=merged)

    def as_catalogue_entry(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "summary": self.summary,
            "processors": list(self.tiers),
            "default_processor": self.default_tier,
            "mode": self.mode,
            "parameters": dict(self.param_defaults),
        }


DEEP_RESEARCH = JobDescriptor(
    name="deep_research",
    summary="Comprehensive multi-source research report",
    tiers=("core", "pro"),
    default_tier="core",
    input_builder=build_deep_research_input,
    connected_message="Connected, starting deep research...",
    completion_message="Deep research completed successfully",
    service_name="DeepResearch",
    param_defaults={"include_analysis": True},
)

QUICK_DEEP_RESEARCH = JobDescriptor(
    name="quick_deep_research",
    summary="Faster, lighter research report",
    tiers=("base", "core"),
    default_tier="base",
    input_builder=build_quick_deep_research_input,
    connected_message="Connected, starting quick deep research...",
    completion_message="Quick deep research completed successfully",
    service_name="QuickDeepResearch",
    param_defaults={"include_analysis": True},
)

ULTRA_DEEP_RESEARCH = JobDescriptor(
    name="ultra_deep_research",
    summary="Exhaustive research on the highest processing tiers",
    tiers=("pro", "ultra", "ultra2x", "ultra4x", "ultra8x"),
    default_tier="pro",
    input_builder=build_ultra_deep_research_input,
    connected_message="Connected, starting ultra deep research...",
    completion_message="Ultra deep research completed successfully",
    service_name="UltraDeepResearch",
    param_defaults={"include_analysis": True},
)

WEB_SEARCH = JobDescriptor(
    name="web_search",
    summary="Structured web search results with sources",
    tiers=("lite", "base"),
    default_tier="lite",
    input_builder=build_web_search_input,
    connected_message="Connected, starting web search...",
    completion_message="Web search completed successfully",
    service_name="WebSearch",
    param_defaults={"max_results": 10, "include_excerpts": True},
)

FINDALL = JobDescriptor(
    name="findall",
    summary="Entity discovery matched against conditions (polled)",
    tiers=("base", "core", "pro"),
    default_tier="core",
    input_builder=build_findall_input,
    connected_message="Connected, streaming FindAll run status...",
    completion_message="FindAll run completed successfully",
    service_name="FindAll",
    mode=POLL_MODE,
    param_defaults={"match_limit": 10, "max_wait_seconds": FINDALL_MAX_WAIT_SECONDS},
)

JOBS: Mapping[str, JobDescriptor] = MappingProxyType(
    {job.name: job for job in (DEEP_RESEARCH, QUICK_DEEP_RESEARCH, ULTRA_DEEP_RESEARCH, WEB_SEARCH, FINDALL)}
)


def get_job(name: str) -> JobDescriptor:
    try:
        return JOBS[name]
    except KeyError:
        raise ValidationError(f"Unknown job '{name}'", field="job") from None


__all__ = [
    "DEEP_RESEARCH",
    "FINDALL",
    "JOBS",
    "JobDescriptor",
    "POLL_MODE",
    "QUICK_DEEP_RESEARCH",
    "RELAY_MODE",
    "ULTRA_DEEP_RESEARCH",
    "WEB_SEARCH",
    "get_job",
]
