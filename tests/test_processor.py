"""Tests for _processor module."""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence

import pytest

from spanscope._buffer import RingBuffer
from spanscope._exporter import InMemorySpanExporter
from spanscope._processor import BackgroundProcessor
from spanscope._types import ExportResult, SpanData, SpanKind, SpanStatus


def _make_span(name: str = "test") -> SpanData:
    return SpanData(
        span_id="s1",
        trace_id="t1",
        name=name,
        kind=SpanKind.INTERNAL,
        status=SpanStatus.OK,
        start_time_ns=0,
        end_time_ns=1000,
        duration_ms=0.001,
        service_name="svc",
    )


class _RaisingExporter(InMemorySpanExporter):
    def export(self, spans: Sequence[SpanData]) -> ExportResult:
        raise RuntimeError("exporter exploded")

    def flush(self) -> ExportResult:
        raise RuntimeError("flush exploded")


def test_start_and_stop() -> None:
    buf = RingBuffer(maxsize=100)
    proc = BackgroundProcessor(buf, InMemorySpanExporter(), flush_interval_ms=50)
    proc.start()
    assert proc.is_running
    proc.stop()
    assert not proc.is_running


def test_exporter_receives_spans_periodically() -> None:
    buf = RingBuffer(maxsize=100)
    exporter = InMemorySpanExporter()
    proc = BackgroundProcessor(buf, exporter, flush_interval_ms=50)

    buf.enqueue(_make_span("a"))
    buf.enqueue(_make_span("b"))

    proc.start()
    deadline = time.monotonic() + 2.0
    while len(exporter.get_finished_spans()) < 2 and time.monotonic() < deadline:
        time.sleep(0.01)
    proc.stop()

    names = [s.name for s in exporter.get_finished_spans()]
    assert names == ["a", "b"]


def test_final_drain_on_stop() -> None:
    buf = RingBuffer(maxsize=100)
    exporter = InMemorySpanExporter()
    proc = BackgroundProcessor(buf, exporter, flush_interval_ms=10000)  # Long interval
    proc.start()

    buf.enqueue(_make_span("late"))
    proc.stop()

    assert [s.name for s in exporter.get_finished_spans()] == ["late"]


def test_force_flush_drains_in_batches() -> None:
    buf = RingBuffer(maxsize=100)
    exporter = InMemorySpanExporter()
    proc = BackgroundProcessor(buf, exporter, batch_size=3, flush_interval_ms=10000)
    for i in range(10):
        buf.enqueue(_make_span(f"s{i}"))

    assert proc.force_flush() is ExportResult.SUCCESS
    assert len(exporter.get_finished_spans()) == 10
    assert len(buf) == 0


def test_force_flush_after_exporter_shutdown() -> None:
    buf = RingBuffer(maxsize=100)
    exporter = InMemorySpanExporter()
    exporter.shutdown()
    proc = BackgroundProcessor(buf, exporter)
    buf.enqueue(_make_span())
    assert proc.force_flush() is ExportResult.FAILURE
    assert len(buf) == 0


def test_exporter_exception_does_not_crash() -> None:
    buf = RingBuffer(maxsize=100)
    proc = BackgroundProcessor(buf, _RaisingExporter(), flush_interval_ms=50)
    buf.enqueue(_make_span())
    proc.start()
    time.sleep(0.15)
    proc.stop()
    assert proc.force_flush() is ExportResult.FAILURE  # Should not raise


def test_failed_export_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    buf = RingBuffer(maxsize=100)
    exporter = InMemorySpanExporter()
    exporter.shutdown()
    proc = BackgroundProcessor(buf, exporter)
    buf.enqueue(_make_span())

    with caplog.at_level(logging.DEBUG, logger="spanscope.processor"):
        proc.force_flush()

    assert any("failure_not_retryable" in r.getMessage() for r in caplog.records)


def test_thread_is_daemon() -> None:
    buf = RingBuffer(maxsize=100)
    proc = BackgroundProcessor(buf, InMemorySpanExporter(), flush_interval_ms=50)
    proc.start()
    assert proc._thread is not None
    assert proc._thread.daemon is True
    proc.stop()


def test_double_start_is_idempotent() -> None:
    buf = RingBuffer(maxsize=100)
    proc = BackgroundProcessor(buf, InMemorySpanExporter(), flush_interval_ms=50)
    proc.start()
    thread1 = proc._thread
    proc.start()  # Should not create a second thread
    assert proc._thread is thread1
    proc.stop()
