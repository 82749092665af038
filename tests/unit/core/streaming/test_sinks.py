"""Tests for the client-facing sinks."""

import pytest

from core.exceptions import RemoteTaskFailure
from core.streaming.sinks import BufferedSink, GuardedSink, QueueSink, Sink
from tests.helpers import RecordingSink


@pytest.mark.anyio
async def test_guarded_sink_terminates_once():
    inner = RecordingSink()
    guarded = GuardedSink(inner, run_label="trun_1")

    await guarded.next({"type": "connected", "data": {}})
    await guarded.complete()
    await guarded.error(RuntimeError("late"))
    await guarded.complete()
    await guarded.next({"type": "late", "data": {}})

    assert inner.terminal_calls == ["complete"]
    assert inner.event_types == ["connected"]
    assert guarded.terminated is True
    assert guarded.outcome == "complete"


@pytest.mark.anyio
async def test_guarded_sink_reraises_event_failures_but_not_terminal_ones():
    class BrokenSink(RecordingSink):
        async def next(self, event):
            raise RuntimeError("socket closed")

        async def error(self, exc):
            raise RuntimeError("socket closed")

    guarded = GuardedSink(BrokenSink())

    with pytest.raises(RuntimeError, match="socket closed"):
        await guarded.next({"type": "connected", "data": {}})
    await guarded.error(ValueError("boom"))
    await guarded.next({"type": "late", "data": {}})

    assert guarded.outcome == "error"


def test_concrete_sinks_satisfy_protocol():
    assert isinstance(QueueSink(), Sink)
    assert isinstance(BufferedSink(), Sink)
    assert isinstance(RecordingSink(), Sink)


@pytest.mark.anyio
async def test_queue_sink_yields_until_terminated():
    sink = QueueSink()
    await sink.next({"type": "connected", "data": {"run_id": "trun_1"}})
    await sink.next({"type": "complete", "data": {"output": "done"}})
    await sink.complete()
    await sink.complete()

    events = [event async for event in sink.events()]

    assert [event["type"] for event in events] == ["connected", "complete"]
    assert sink.closed is True
    assert sink.failure is None
    assert sink.queue.empty()


@pytest.mark.anyio
async def test_queue_sink_records_failure():
    sink = QueueSink()
    failure = RemoteTaskFailure("boom")
    await sink.error(failure)

    assert [event async for event in sink.events()] == []
    assert sink.failure is failure


@pytest.mark.anyio
async def test_buffered_sink_success_result():
    sink = BufferedSink()
    await sink.next({"type": "connected", "data": {"run_id": "trun_7"}})
    await sink.next({"type": "task_run.progress_msg", "data": {}})
    await sink.next(
        {"type": "complete", "data": {"run_id": "trun_7", "output": {"content": "x"}, "message": "done"}}
    )
    await sink.complete()

    assert sink.as_result() == {
        "success": True,
        "run_id": "trun_7",
        "output": {"content": "x"},
        "message": "done",
    }
    assert len(sink.events) == 3


@pytest.mark.anyio
async def test_buffered_sink_failure_result():
    sink = BufferedSink()
    await sink.next({"type": "connected", "data": {"run_id": "trun_7"}})
    await sink.error(RemoteTaskFailure("boom"))

    assert sink.as_result() == {"success": False, "error": "boom"}


def test_buffered_sink_without_completion():
    assert BufferedSink().as_result() == {"success": False, "error": "Run finished without a result"}
