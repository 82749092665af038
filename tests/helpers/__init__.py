"""Shared fakes for research bridge tests."""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx


class RecordingSink:
    """Sink that records every call, including ones after termination."""

    def __init__(self) -> None:
        self.calls: List[tuple[str, Any]] = []

    async def next(self, event: Dict[str, Any]) -> None:
        self.calls.append(("next", event))

    async def error(self, exc: BaseException) -> None:
        self.calls.append(("error", exc))

    async def complete(self) -> None:
        self.calls.append(("complete", None))

    @property
    def events(self) -> List[Dict[str, Any]]:
        return [payload for kind, payload in self.calls if kind == "next"]

    @property
    def event_types(self) -> List[str]:
        return [event["type"] for event in self.events]

    @property
    def terminal_calls(self) -> List[str]:
        return [kind for kind, _ in self.calls if kind in {"error", "complete"}]

    @property
    def failure(self) -> Optional[BaseException]:
        for kind, payload in self.calls:
            if kind == "error":
                return payload
        return None


class RecordingRunLogger:
    """In-memory stand-in for the durable run logger."""

    def __init__(self) -> None:
        self.entries: List[tuple[str, str, Any]] = []
        self.opened: List[tuple[str, Dict[str, Any], Dict[str, Any]]] = []

    def emit(self, handle, event_type: str, payload: Any = None) -> None:
        self.entries.append((str(handle), event_type, payload))

    def emit_open(self, handle, metadata: Dict[str, Any], created: Dict[str, Any]) -> None:
        self.opened.append((str(handle), dict(metadata), dict(created)))

    def types(self) -> List[str]:
        return [event_type for _, event_type, _ in self.entries]

    def payloads(self, event_type: str) -> List[Any]:
        return [payload for _, kind, payload in self.entries if kind == event_type]


def sse_frame(event_type: str, data: Any) -> str:
    return f"event: {event_type}\ndata: {json.dumps(data)}\n\n"


def sse_body(frames: Iterable[tuple[str, Any]]) -> bytes:
    return "".join(sse_frame(event_type, data) for event_type, data in frames).encode("utf-8")


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered in caller-controlled chunks."""

    def __init__(self, chunks: Iterable[bytes]) -> None:
        self._chunks = list(chunks)

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk


def mock_http_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


__all__ = [
    "ChunkedStream",
    "RecordingRunLogger",
    "RecordingSink",
    "mock_http_client",
    "sse_body",
    "sse_frame",
]
