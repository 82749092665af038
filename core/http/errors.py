"""Structured error payloads for the HTTP layer.

Every formatter returns ``{"error": <code>, "message": <text>, "context": {...}}``
with ``context`` omitted when empty. :func:`format_exception` picks the most
specific formatter for an arbitrary exception.
"""

from __future__ import annotations

from typing import Any, Dict

from core.exceptions import (
    ConfigurationError,
    ProviderError,
    RelayError,
    RemoteTaskFailure,
    ServiceError,
    StreamingError,
    TaskCreationError,
    ValidationError,
)


def _build_error_payload(
    *,
    error: str,
    message: str,
    context: Dict[str, Any] | None = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"error": error, "message": message}
    if context:
        payload["context"] = context
    return payload


def _compact(values: Dict[str, Any]) -> Dict[str, Any] | None:
    compacted = {key: value for key, value in values.items() if value is not None}
    return compacted or None


def format_validation_error(exc: ValidationError) -> Dict[str, Any]:
    """Return a standard payload for :class:`ValidationError`."""

    return _build_error_payload(
        error="validation_error",
        message=str(exc),
        context=_compact({"field": exc.field}),
    )


def format_configuration_error(exc: ConfigurationError) -> Dict[str, Any]:
    """Return a standard payload for :class:`ConfigurationError`."""

    return _build_error_payload(
        error="configuration_error",
        message=str(exc),
        context=_compact({"key": exc.key}),
    )


def format_task_creation_error(exc: TaskCreationError) -> Dict[str, Any]:
    return _build_error_payload(
        error="task_creation_error",
        message=str(exc),
        context=_compact({"provider": exc.provider, "status_code": exc.status_code}),
    )


def format_remote_task_failure(exc: RemoteTaskFailure) -> Dict[str, Any]:
    return _build_error_payload(
        error="remote_task_failed",
        message=str(exc),
        context=_compact({"provider": exc.provider, "run_id": exc.run_id}),
    )


def format_provider_error(exc: ProviderError) -> Dict[str, Any]:
    """Return a standard payload for :class:`ProviderError`."""

    return _build_error_payload(
        error="provider_error",
        message=str(exc),
        context=_compact(
            {
                "provider": exc.provider,
                "original_error": str(exc.original_error) if exc.original_error else None,
            }
        ),
    )


def format_relay_error(exc: RelayError) -> Dict[str, Any]:
    """Return a payload for relay failures; ``reason`` is kept for diagnostics."""

    return _build_error_payload(
        error="relay_error",
        message=str(exc),
        context=_compact({"reason": exc.reason, "status_code": exc.status_code}),
    )


def format_streaming_error(exc: StreamingError) -> Dict[str, Any]:
    return _build_error_payload(
        error="streaming_error",
        message=str(exc),
        context=_compact({"stage": exc.stage}),
    )


def format_service_error(exc: ServiceError) -> Dict[str, Any]:
    """Return a standard payload for generic service errors."""

    return _build_error_payload(
        error="service_error",
        message=str(exc),
    )


def format_exception(exc: BaseException) -> Dict[str, Any]:
    """Dispatch ``exc`` to the most specific formatter available."""

    if isinstance(exc, ValidationError):
        return format_validation_error(exc)
    if isinstance(exc, ConfigurationError):
        return format_configuration_error(exc)
    if isinstance(exc, TaskCreationError):
        return format_task_creation_error(exc)
    if isinstance(exc, RemoteTaskFailure):
        return format_remote_task_failure(exc)
    if isinstance(exc, ProviderError):
        return format_provider_error(exc)
    if isinstance(exc, RelayError):
        return format_relay_error(exc)
    if isinstance(exc, StreamingError):
        return format_streaming_error(exc)
    if isinstance(exc, ServiceError):
        return format_service_error(exc)
    return _build_error_payload(error="internal_error", message=str(exc) or type(exc).__name__)


__all__ = [
    "format_configuration_error",
    "format_exception",
    "format_provider_error",
    "format_relay_error",
    "format_remote_task_failure",
    "format_service_error",
    "format_streaming_error",
    "format_task_creation_error",
    "format_validation_error",
]
