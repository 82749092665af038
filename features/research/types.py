"""Value objects shared by the research bridge services."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union


@dataclass(frozen=True)
class RunHandle:
    """Opaque identifier of one remote run; ``str(handle)`` is the id."""

    run_id: str

    def __post_init__(self) -> None:
        if not isinstance(self.run_id, str) or not self.run_id.strip():
            raise ValueError("RunHandle requires a non-empty run id")

    def __str__(self) -> str:
        return self.run_id


@dataclass(frozen=True)
class JobSpec:
    """Caller-owned input bundle for one orchestrated run."""

    query: str
    tier: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def as_payload(self) -> Dict[str, Any]:
        return {"query": self.query, "processor": self.tier, **self.params}


@dataclass(frozen=True)
class Completed:
    output: Any
    run: Optional[Mapping[str, Any]] = None


@dataclass(frozen=True)
class Failed:
    reason: str
    run: Optional[Mapping[str, Any]] = None


@dataclass(frozen=True)
class BudgetExhausted:
    """Polling gave up; ``last_status`` is the last document observed, if any."""

    last_status: Optional[Mapping[str, Any]] = None


TerminalResult = Union[Completed, Failed]
PollOutcome = Union[Completed, Failed, BudgetExhausted]


__all__ = [
    "BudgetExhausted",
    "Completed",
    "Failed",
    "JobSpec",
    "PollOutcome",
    "RunHandle",
    "TerminalResult",
]
