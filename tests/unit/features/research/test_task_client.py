"""Tests for remote task run creation."""

from __future__ import annotations

import json

import httpx
import pytest

from core.exceptions import ConfigurationError, TaskCreationError
from features.research.services.task_client import RemoteTaskClient
from features.research.types import RunHandle
from infrastructure.run_logs import DurableRunLogger
from tests.helpers import mock_http_client


@pytest.mark.anyio
async def test_create_without_credential_sends_nothing(no_api_key) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"run_id": "run_1"})

    async with mock_http_client(handler) as http:
        client = RemoteTaskClient(http)
        with pytest.raises(ConfigurationError) as exc_info:
            await client.create("input", "core")

    assert exc_info.value.key == "PARALLEL_API_KEY"
    assert len(calls) == 0


@pytest.mark.anyio
async def test_create_posts_events_enabled_request(api_key, tmp_path) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"run_id": "trun_123", "status": "queued"})

    run_logger = DurableRunLogger(tmp_path)
    async with mock_http_client(handler) as http:
        client = RemoteTaskClient(http, base_url="https://parallel.test", run_logger=run_logger)
        handle = await client.create("Research X", "pro", {"query": "X", "serviceName": "DeepResearch"})
        await run_logger.drain()

    assert handle == RunHandle("trun_123")
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://parallel.test/v1/tasks/runs"
    assert request.headers["x-api-key"] == api_key
    assert request.headers["parallel-beta"] == "events-sse-2025-07-24"
    assert json.loads(request.content) == {"input": "Research X", "processor": "pro", "enable_events": True}

    log_files = list(tmp_path.glob("*.log"))
    assert len(log_files) == 1
    content = log_files[0].read_text(encoding="utf-8")
    assert "[RUN_START]" in content
    assert "[TASK_CREATED]" in content
    assert content.index("[RUN_START]") < content.index("[TASK_CREATED]")
    assert '"serviceName": "DeepResearch"' in content


@pytest.mark.anyio
async def test_non_success_status_carries_code_and_body(api_key) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, text="processor not allowed")

    async with mock_http_client(handler) as http:
        with pytest.raises(TaskCreationError) as exc_info:
            await RemoteTaskClient(http).create("input", "ultra8x")

    assert exc_info.value.status_code == 422
    assert "processor not allowed" in str(exc_info.value)
    assert str(exc_info.value).startswith("Failed to create task: 422")


@pytest.mark.anyio
@pytest.mark.parametrize("payload", [{}, {"run_id": ""}, {"run_id": None}, ["run_1"]])
async def test_missing_run_id_is_a_creation_error(api_key, payload) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payload)

    async with mock_http_client(handler) as http:
        with pytest.raises(TaskCreationError) as exc_info:
            await RemoteTaskClient(http).create("input", "core")

    assert exc_info.value.status_code is None
    assert "No run ID returned" in str(exc_info.value)


@pytest.mark.anyio
async def test_transport_failure_is_wrapped(api_key) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with mock_http_client(handler) as http:
        with pytest.raises(TaskCreationError) as exc_info:
            await RemoteTaskClient(http).create("input", "core")

    assert isinstance(exc_info.value.original_error, httpx.ConnectError)


@pytest.mark.anyio
async def test_logging_failure_never_reaches_caller(api_key, tmp_path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied", encoding="utf-8")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"run_id": "run_ok"})

    run_logger = DurableRunLogger(blocker / "logs")
    async with mock_http_client(handler) as http:
        handle = await RemoteTaskClient(http, run_logger=run_logger).create("input", "core")
        await run_logger.drain()

    assert str(handle) == "run_ok"
