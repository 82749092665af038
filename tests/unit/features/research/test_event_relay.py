"""Tests for the event feed relay."""

from __future__ import annotations

import asyncio
from typing import List

import httpx
import pytest

from core.exceptions import ConfigurationError, RelayError, RemoteTaskFailure
from core.streaming.types import RelayEvent
from features.research.services.event_relay import EventFeedRelay, inspect_state_event
from features.research.types import Completed, RunHandle
from tests.helpers import ChunkedStream, RecordingRunLogger, mock_http_client, sse_body, sse_frame

HANDLE = RunHandle("trun_abc")


class HangingStream(httpx.AsyncByteStream):
    """Yields ``chunks`` and then never finishes."""

    def __init__(self, chunks: List[bytes] | None = None) -> None:
        self._chunks = chunks or []

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk
        await asyncio.Event().wait()
        yield b""  # pragma: no cover


class SlowCloseStream(ChunkedStream):
    """Delivers its chunks promptly but takes far too long to close."""

    async def aclose(self) -> None:
        await asyncio.sleep(30)


def _feed_client(stream: httpx.AsyncByteStream, seen: list | None = None) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=stream)

    return mock_http_client(handler)


@pytest.mark.anyio
async def test_completed_state_resolves_with_output(api_key) -> None:
    body = b'event: task_run.state\ndata: {"run":{"status":"completed","output":"X"}}\n\n'
    seen: list[httpx.Request] = []
    received: List[RelayEvent] = []

    async with _feed_client(ChunkedStream([body]), seen) as http:
        relay = EventFeedRelay(http, base_url="https://parallel.test")
        result = await relay.subscribe(HANDLE, received.append)

    assert result.output == "X"
    assert result.run == {"status": "completed", "output": "X"}
    assert [event.type for event in received] == ["task_run.state"]
    request = seen[0]
    assert str(request.url) == "https://parallel.test/v1beta/tasks/runs/trun_abc/events"
    assert request.headers["accept"] == "text/event-stream"
    assert request.headers["parallel-beta"] == "events-sse-2025-07-24"
    assert relay.active_runs == frozenset()


@pytest.mark.anyio
async def test_failed_state_rejects_with_remote_reason(api_key) -> None:
    body = b'event: task_run.state\ndata: {"run":{"status":"failed","error":"boom"}}\n\n'
    run_logger = RecordingRunLogger()

    async with _feed_client(ChunkedStream([body])) as http:
        relay = EventFeedRelay(http, run_logger=run_logger)
        with pytest.raises(RemoteTaskFailure) as exc_info:
            await relay.subscribe(HANDLE, lambda event: None)

    assert "boom" in str(exc_info.value)
    assert exc_info.value.run_id == "trun_abc"
    error_entries = [payload for _, kind, payload in run_logger.entries if kind == "ERROR"]
    assert error_entries and error_entries[0]["type"] == "task_failed"


@pytest.mark.anyio
async def test_failed_state_without_error_uses_default_reason(api_key) -> None:
    body = sse_body([("task_run.state", {"run": {"status": "failed"}})])

    async with _feed_client(ChunkedStream([body])) as http:
        with pytest.raises(RemoteTaskFailure, match="Task failed"):
            await EventFeedRelay(http).subscribe(HANDLE, lambda event: None)


@pytest.mark.anyio
async def test_stream_ending_without_events_is_relay_error(api_key) -> None:
    run_logger = RecordingRunLogger()

    async with _feed_client(ChunkedStream([])) as http:
        with pytest.raises(RelayError) as exc_info:
            await EventFeedRelay(http, run_logger=run_logger).subscribe(HANDLE, lambda event: None)

    assert exc_info.value.reason == "stream_ended_without_result"
    assert "Stream ended without result" in str(exc_info.value)
    assert run_logger.types()[0] == "SSE_STREAM_START"
    assert run_logger.types()[-1] == "ERROR"


@pytest.mark.anyio
async def test_events_are_forwarded_in_wire_order(api_key) -> None:
    frames = [("task_run.progress_msg", {"n": index}) for index in range(5)]
    frames.append(("task_run.state", {"run": {"status": "completed"}, "output": {"content": "done"}}))
    body = sse_body(frames)
    chunks = [body[index:index + 7] for index in range(0, len(body), 7)]
    received: List[RelayEvent] = []

    async def on_event(event: RelayEvent) -> None:
        await asyncio.sleep(0)
        received.append(event)

    async with _feed_client(ChunkedStream(chunks)) as http:
        result = await EventFeedRelay(http).subscribe(HANDLE, on_event)

    assert [event.data.get("n") for event in received[:-1]] == [0, 1, 2, 3, 4]
    assert received[-1].type == "task_run.state"
    assert result.output == {"content": "done"}


@pytest.mark.anyio
async def test_malformed_line_does_not_abort_stream(api_key) -> None:
    body = (
        b"event: task_run.progress_msg\ndata: {not json}\n\n"
        + sse_frame("task_run.state", {"run": {"status": "completed", "output": "ok"}}).encode()
    )
    received: List[RelayEvent] = []

    async with _feed_client(ChunkedStream([body])) as http:
        result = await EventFeedRelay(http).subscribe(HANDLE, received.append)

    assert result.output == "ok"
    assert len(received) == 1


@pytest.mark.anyio
async def test_explicit_null_output_is_not_terminal(api_key) -> None:
    body = sse_body(
        [
            ("task_run.state", {"run": {"status": "completed"}, "output": None}),
            ("task_run.state", {"run": {"status": "completed"}, "output": "final"}),
        ]
    )
    received: List[RelayEvent] = []

    async with _feed_client(ChunkedStream([body])) as http:
        result = await EventFeedRelay(http).subscribe(HANDLE, received.append)

    assert result.output == "final"
    assert len(received) == 2


@pytest.mark.anyio
async def test_timeout_rejects_when_no_terminal_state(api_key) -> None:
    run_logger = RecordingRunLogger()
    progress = sse_frame("task_run.progress_msg", {"message": "working"}).encode()

    async with _feed_client(HangingStream([progress])) as http:
        relay = EventFeedRelay(http, run_logger=run_logger, timeout_seconds=0.05)
        with pytest.raises(RelayError) as exc_info:
            await relay.subscribe(HANDLE, lambda event: None)

    assert exc_info.value.reason == "timeout"
    assert "Stream timeout" in str(exc_info.value)
    error_entries = [payload for _, kind, payload in run_logger.entries if kind == "ERROR"]
    assert [entry["type"] for entry in error_entries] == ["timeout"]
    assert relay.active_runs == frozenset()


@pytest.mark.anyio
async def test_terminal_event_wins_when_timer_fires_during_close(api_key) -> None:
    body = sse_body([("task_run.state", {"run": {"status": "completed", "output": "won"}})])
    run_logger = RecordingRunLogger()

    async with _feed_client(SlowCloseStream([body])) as http:
        relay = EventFeedRelay(http, run_logger=run_logger, timeout_seconds=0.05)
        result = await relay.subscribe(HANDLE, lambda event: None)

    assert isinstance(result, Completed)
    assert result.output == "won"
    assert run_logger.types().count("RUN_COMPLETE") == 1
    assert "ERROR" not in run_logger.types()


@pytest.mark.anyio
async def test_callback_exception_becomes_processing_error(api_key) -> None:
    body = sse_body([("task_run.progress_msg", {"n": 1})])

    def explode(event: RelayEvent) -> None:
        raise RuntimeError("sink is gone")

    async with _feed_client(ChunkedStream([body])) as http:
        with pytest.raises(RelayError) as exc_info:
            await EventFeedRelay(http).subscribe(HANDLE, explode)

    assert exc_info.value.reason == "stream_processing_error"
    assert isinstance(exc_info.value.original_error, RuntimeError)


@pytest.mark.anyio
async def test_http_error_status_fails_without_retry(api_key) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503, text="unavailable")

    async with mock_http_client(handler) as http:
        with pytest.raises(RelayError) as exc_info:
            await EventFeedRelay(http).subscribe(HANDLE, lambda event: None)

    assert exc_info.value.reason == "http_error"
    assert exc_info.value.status_code == 503
    assert len(calls) == 1


@pytest.mark.anyio
async def test_connection_failure_is_fetch_error(api_key) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("dns failure", request=request)

    async with mock_http_client(handler) as http:
        with pytest.raises(RelayError) as exc_info:
            await EventFeedRelay(http).subscribe(HANDLE, lambda event: None)

    assert exc_info.value.reason == "fetch_error"


@pytest.mark.anyio
async def test_second_subscription_for_same_run_is_rejected(api_key) -> None:
    async with _feed_client(HangingStream()) as http:
        relay = EventFeedRelay(http, timeout_seconds=5)
        first = asyncio.create_task(relay.subscribe(HANDLE, lambda event: None))
        await asyncio.sleep(0.01)
        try:
            with pytest.raises(RelayError) as exc_info:
                await relay.subscribe(HANDLE, lambda event: None)
            assert exc_info.value.reason == "already_subscribed"
        finally:
            first.cancel()
            with pytest.raises(asyncio.CancelledError):
                await first

    assert relay.active_runs == frozenset()


@pytest.mark.anyio
async def test_subscribe_requires_credential(no_api_key) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    async with mock_http_client(handler) as http:
        with pytest.raises(ConfigurationError):
            await EventFeedRelay(http).subscribe(HANDLE, lambda event: None)

    assert calls == []


def test_inspect_state_event_reads_run_output_fallback() -> None:
    event = RelayEvent("task_run.state", {"run": {"status": "completed", "output": {"basis": []}}})

    outcome = inspect_state_event(event)

    assert isinstance(outcome, Completed)
    assert outcome.output == {"basis": []}


def test_inspect_state_event_ignores_other_types() -> None:
    assert inspect_state_event(RelayEvent("task_run.progress_msg", {"run": {"status": "completed"}})) is None
    assert inspect_state_event(RelayEvent("task_run.state", {"run": {"status": "running"}})) is None
