"""Streaming-related types shared by the relay, tracker and sinks."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class StreamEventType(str, Enum):
    """Event types produced by the orchestrator itself.

    Events relayed from the remote feed keep whatever type the remote service
    used (``task_run.state``, ``task_run.progress_msg.*``, ...).
    """

    CONNECTED = "connected"
    STATUS_UPDATE = "status_update"
    TIMEOUT = "timeout"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class RelayEvent:
    """One typed event observed on a remote feed or produced by polling."""

    type: str
    data: Any

    def as_message(self) -> Dict[str, Any]:
        return {"type": self.type, "data": self.data}


__all__ = ["RelayEvent", "StreamEventType"]
