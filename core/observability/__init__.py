"""Observability helpers for inbound traffic."""

from .request_logging import register_http_request_logging, render_payload_preview, render_query

__all__ = ["register_http_request_logging", "render_payload_preview", "render_query"]
