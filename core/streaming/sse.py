"""Server-Sent Events framing for outbound streams."""

from __future__ import annotations

from typing import Any, Dict

from core.utils.json_serialization import dumps_compact

SSE_HEADERS: Dict[str, str] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(event: Any) -> str:
    """Frame ``event`` as a single ``data:`` message."""

    return f"data: {dumps_compact(event)}\n\n"


__all__ = ["SSE_HEADERS", "format_sse"]
