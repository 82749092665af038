"""Inbound HTTP request logging with credential redaction."""
from __future__ import annotations

import json
import logging
import urllib.parse
from typing import Any, Mapping

from fastapi import FastAPI, Request

_PAYLOAD_PREVIEW_LIMIT = 2048
# Polled by load balancers; logging them only adds noise.
_QUIET_PATHS = frozenset({"/health"})
_SENSITIVE_KEYS = frozenset(
    {"api_key", "apikey", "x-api-key", "authorization", "password", "secret", "token"}
)


def _redact(value: Any, *, depth: int = 6) -> Any:
    if depth <= 0:
        return "<max depth reached>"
    if isinstance(value, Mapping):
        return {
            key: "***" if str(key).lower() in _SENSITIVE_KEYS else _redact(item, depth=depth - 1)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_redact(item, depth=depth - 1) for item in value]
    return value


def _truncate(text: str, size: int) -> str:
    text = " ".join(text.split())
    if size > _PAYLOAD_PREVIEW_LIMIT:
        return f"{text[:_PAYLOAD_PREVIEW_LIMIT]}... ({size} bytes)"
    return text


def render_payload_preview(body: bytes) -> str:
    """Return a redacted, length-limited preview of a request body."""

    if not body:
        return "<empty>"
    try:
        decoded = json.loads(body)
    except (UnicodeDecodeError, ValueError):
        try:
            return _truncate(body[:_PAYLOAD_PREVIEW_LIMIT].decode("utf-8"), len(body))
        except UnicodeDecodeError:
            return f"<binary {len(body)} bytes>"
    serialized = json.dumps(_redact(decoded), ensure_ascii=False, separators=(",", ":"))
    return _truncate(serialized, len(serialized))


def render_query(query: str) -> str:
    if not query:
        return "<none>"
    params = urllib.parse.parse_qsl(query, keep_blank_values=True)
    return urllib.parse.urlencode(
        [(key, "***" if key.lower() in _SENSITIVE_KEYS else value) for key, value in params]
    )


def register_http_request_logging(app: FastAPI, *, logger_name: str = "core.http") -> None:
    """Attach middleware that logs every HTTP request."""

    if getattr(app.state, "_http_request_logging_installed", False):  # pragma: no cover - idempotence
        return

    logger = logging.getLogger(logger_name)

    @app.middleware("http")
    async def _log_request(request: Request, call_next):  # type: ignore[override]
        path = request.url.path
        if path not in _QUIET_PATHS:
            client = request.client
            client_addr = f"{client.host}:{client.port}" if client else "unknown"
            logger.info("HTTP %s %s from %s", request.method, path, client_addr)

            details = [f"query={render_query(request.url.query)}"]
            if request.method in {"POST", "PUT", "PATCH"}:
                body = await request.body()
                details.append(f"body={render_payload_preview(body)}")
            logger.debug("HTTP %s %s payload %s", request.method, path, "; ".join(details))

        return await call_next(request)

    app.state._http_request_logging_installed = True


__all__ = ["register_http_request_logging", "render_payload_preview", "render_query"]
