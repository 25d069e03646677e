"""Event sinks and dispatch."""

from __future__ import annotations

import logging

import pytest

from castor.events import (
    EventDispatcher,
    EventSink,
    LoggingSink,
    RecordingSink,
    RequestSent,
    ResponseReceived,
    default_sinks,
)

pytestmark = pytest.mark.unit


def _sent(step: int = 1) -> RequestSent:
    return RequestSent(
        provider="openai",
        mode="text",
        step=step,
        path="responses",
        payload={"input": [{"role": "user"}]},
    )


def _received(step: int = 1) -> ResponseReceived:
    return ResponseReceived(
        provider="openai",
        mode="text",
        step=step,
        status_code=200,
        body={},
        duration_s=0.01,
    )


def test_recording_sink_keeps_order_and_filters_by_type():
    sink = RecordingSink()
    dispatcher = EventDispatcher([sink])

    dispatcher.emit(_sent(1))
    dispatcher.emit(_received(1))
    dispatcher.emit(_sent(2))

    assert [e.step for e in sink.events] == [1, 1, 2]
    assert len(sink.of_type(RequestSent)) == 2
    assert isinstance(sink, EventSink)


def test_dispatcher_isolates_failing_sinks(caplog):
    class _Broken:
        def emit(self, event):
            raise RuntimeError("sink down")

    recorder = RecordingSink()
    dispatcher = EventDispatcher([_Broken(), recorder])

    dispatcher.emit(_sent())

    assert len(recorder.events) == 1
    assert "_Broken" in caplog.text


def test_logging_sink_summarizes_events(caplog):
    caplog.set_level(logging.DEBUG, logger="castor.events")
    sink = LoggingSink()

    sink.emit(_sent())
    sink.emit(_received())

    assert "1 input item(s)" in caplog.text
    assert "status=200" in caplog.text


def test_default_sinks_follow_env_toggle(monkeypatch):
    assert default_sinks() == ()

    monkeypatch.setenv("CASTOR_EVENTS_LOG", "1")
    (sink,) = default_sinks()
    assert isinstance(sink, LoggingSink)
