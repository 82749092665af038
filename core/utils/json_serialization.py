"""JSON serialization helpers for relayed events and audit log entries."""

from __future__ import annotations

import base64
import json
import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping
from uuid import UUID

logger = logging.getLogger(__name__)

# Maximum recursion depth for sanitization (prevents stack overflow)
_MAX_DEPTH = 20


def _sanitize_mapping(mapping: Mapping[Any, Any], visited: set[int], depth: int) -> dict[str, Any]:
    return {
        str(key): _sanitize_with_context(value, visited, depth + 1)
        for key, value in mapping.items()
    }


def _sanitize_iterable(items: Iterable[Any], visited: set[int], depth: int) -> list[Any]:
    return [_sanitize_with_context(item, visited, depth + 1) for item in items]


def _sanitize_with_context(obj: Any, visited: set[int], depth: int) -> Any:
    """Internal sanitizer with circular reference detection and depth limiting."""

    if depth > _MAX_DEPTH:
        logger.warning("Max sanitization depth exceeded, converting to string")
        return f"<max_depth_exceeded: {type(obj).__name__}>"

    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()

    if isinstance(obj, timedelta):
        return obj.total_seconds()

    if isinstance(obj, UUID):
        return str(obj)

    if isinstance(obj, Decimal):
        return float(obj)

    if isinstance(obj, Enum):
        return _sanitize_with_context(obj.value, visited, depth + 1)

    if isinstance(obj, bytes):
        return base64.b64encode(obj).decode("utf-8")

    if isinstance(obj, BaseException):
        return {"error": type(obj).__name__, "message": str(obj)}

    obj_id = id(obj)
    if obj_id in visited:
        return f"<circular_ref: {type(obj).__name__}>"

    if isinstance(obj, (Mapping, list, tuple, set)) or hasattr(obj, "__dict__"):
        visited.add(obj_id)

    try:
        if isinstance(obj, Mapping):
            return _sanitize_mapping(obj, visited, depth)

        if isinstance(obj, (list, tuple, set)):
            return _sanitize_iterable(obj, visited, depth)

        if hasattr(obj, "__dict__"):
            return _sanitize_with_context(vars(obj), visited, depth + 1)

        logger.warning(
            "Sanitizing unknown type %s to string representation",
            type(obj).__name__,
        )
        return str(obj)
    finally:
        # Allows the same object to appear in different branches
        visited.discard(obj_id)


def sanitize_for_json(obj: Any) -> Any:
    """Recursively convert objects to JSON-serializable representations.

    Handles circular references and limits recursion depth to prevent stack overflow.
    """

    return _sanitize_with_context(obj, visited=set(), depth=0)


def dumps_compact(obj: Any) -> str:
    """Serialize ``obj`` on a single line, suitable for an SSE ``data:`` field."""

    return json.dumps(sanitize_for_json(obj), ensure_ascii=False, separators=(",", ":"))


def dumps_pretty(obj: Any) -> str:
    """Serialize ``obj`` with two-space indentation for human-read audit logs."""

    if isinstance(obj, str):
        return obj
    return json.dumps(sanitize_for_json(obj), ensure_ascii=False, indent=2)


__all__ = ["dumps_compact", "dumps_pretty", "sanitize_for_json"]
