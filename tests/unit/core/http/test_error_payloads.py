"""Tests for structured HTTP error payloads."""

import pytest

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
from core.http.errors import format_exception, format_validation_error


def test_validation_payload_includes_field():
    payload = format_validation_error(ValidationError("Query is required", field="query"))

    assert payload == {
        "error": "validation_error",
        "message": "Query is required",
        "context": {"field": "query"},
    }


def test_context_is_omitted_when_empty():
    payload = format_exception(ValidationError("bad input"))

    assert "context" not in payload


@pytest.mark.parametrize(
    ("exc", "code", "context"),
    [
        (ConfigurationError("missing", key="PARALLEL_API_KEY"), "configuration_error", {"key": "PARALLEL_API_KEY"}),
        (
            TaskCreationError("Failed to create task: 422", status_code=422),
            "task_creation_error",
            {"provider": "parallel", "status_code": 422},
        ),
        (
            RemoteTaskFailure("boom", run_id="trun_1"),
            "remote_task_failed",
            {"provider": "parallel", "run_id": "trun_1"},
        ),
        (ProviderError("FindAll API request failed", provider="parallel"), "provider_error", {"provider": "parallel"}),
        (
            RelayError("Stream timeout after 10 minutes", reason="timeout"),
            "relay_error",
            {"reason": "timeout"},
        ),
        (StreamingError("Run cancelled by client", stage="cancelled"), "streaming_error", {"stage": "cancelled"}),
    ],
)
def test_format_exception_picks_most_specific(exc, code, context):
    payload = format_exception(exc)

    assert payload["error"] == code
    assert payload["message"] == str(exc)
    assert payload["context"] == context


def test_unknown_exceptions_are_internal_errors():
    assert format_exception(ServiceError("generic"))["error"] == "service_error"
    assert format_exception(KeyError("x")) == {"error": "internal_error", "message": "'x'"}
    assert format_exception(RuntimeError()) == {"error": "internal_error", "message": "RuntimeError"}
