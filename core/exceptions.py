"""Custom Exception Hierarchy for the task bridge backend
This module defines a typed exception hierarchy that enables precise error
handling and structured error responses across the application.

Exception Handling Flow:
    1. Clients, relay and tracker raise typed exceptions
    2. The streaming orchestrator catches them at its boundary
    3. The orchestrator terminates the sink with exactly one ``error`` call
    4. The HTTP layer turns that into an SSE ``error`` event or a
       ``{"success": false, "error": ...}`` body
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base exception for all service layer errors."""


class ValidationError(ServiceError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: str | None = None):
        self.message = message
        self.field = field
        super().__init__(self.message)


class ProviderError(ServiceError):
    """Raised when an external provider (remote task API) fails."""

    def __init__(self, message: str, provider: str | None = None, original_error: Exception | None = None):
        self.message = message
        self.provider = provider
        self.original_error = original_error
        super().__init__(self.message)


class ConfigurationError(ServiceError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, key: str | None = None):
        self.message = message
        self.key = key
        super().__init__(self.message)


class TaskCreationError(ProviderError):
    """Raised when the remote service refuses or garbles a run creation."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message, provider="parallel", original_error=original_error)
        self.status_code = status_code


class RemoteTaskFailure(ProviderError):
    """Raised when the remote task itself reports a failed status."""

    def __init__(self, reason: str, run_id: str | None = None):
        super().__init__(reason, provider="parallel")
        self.reason = reason
        self.run_id = run_id


class StreamingError(ServiceError):
    """Raised when a streaming operation fails."""

    def __init__(self, message: str, stage: str | None = None):
        self.message = message
        self.stage = stage
        super().__init__(self.message)


class RelayError(StreamingError):
    """Raised when the event feed relay cannot deliver a terminal result.

    ``reason`` distinguishes the failure for logs (``http_error``,
    ``fetch_error``, ``timeout``, ``stream_ended_without_result``,
    ``stream_processing_error``, ``already_subscribed``); callers treat all of
    them the same way.
    """

    def __init__(
        self,
        message: str,
        reason: str,
        *,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message, stage="relay")
        self.reason = reason
        self.status_code = status_code
        self.original_error = original_error


class LoggingError(ServiceError):
    """Raised (and immediately downgraded) when the durable run log fails."""

    def __init__(self, message: str, run_id: str | None = None):
        self.message = message
        self.run_id = run_id
        super().__init__(self.message)
