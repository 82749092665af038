"""Tests for relay event types and SSE framing."""

from core.streaming.sse import SSE_HEADERS, format_sse
from core.streaming.types import RelayEvent, StreamEventType


def test_relay_event_message_shape():
    event = RelayEvent("task_run.progress_msg", {"message": "Reading sources"})

    assert event.as_message() == {"type": "task_run.progress_msg", "data": {"message": "Reading sources"}}


def test_stream_event_types_are_plain_strings():
    assert StreamEventType.CONNECTED == "connected"
    assert StreamEventType.STATUS_UPDATE.value == "status_update"
    assert {member.value for member in StreamEventType} == {
        "connected",
        "status_update",
        "timeout",
        "complete",
        "error",
    }


def test_format_sse_frames_single_data_line():
    frame = format_sse({"type": "complete", "data": {"output": "line one\nline two"}})

    assert frame == 'data: {"type":"complete","data":{"output":"line one\\nline two"}}\n\n'


def test_sse_headers_disable_buffering():
    assert SSE_HEADERS["Cache-Control"] == "no-cache"
    assert SSE_HEADERS["X-Accel-Buffering"] == "no"
