"""Background processor that drains the ring buffer into an exporter."""

from __future__ import annotations

import logging
import threading

from spanscope._buffer import RingBuffer
from spanscope._exporter import SpanExporter
from spanscope._types import ExportResult

logger = logging.getLogger("spanscope.processor")


class BackgroundProcessor:
    """Daemon thread that periodically hands buffered spans to the exporter."""

    def __init__(
        self,
        buffer: RingBuffer,
        exporter: SpanExporter,
        *,
        batch_size: int = 512,
        flush_interval_ms: int = 5000,
    ) -> None:
        self._buffer = buffer
        self._exporter = exporter
        self._batch_size = batch_size
        self._flush_interval_s = flush_interval_ms / 1000.0
        self._stop_event = threading.Event()
        self._export_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def exporter(self) -> SpanExporter:
        return self._exporter

    def start(self) -> None:
        """Start the background drain loop."""
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="spanscope-processor", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Signal stop and perform a final drain."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None
        self._drain_all()

    def force_flush(self) -> ExportResult:
        """Export everything buffered now, then flush the exporter."""
        self._drain_all()
        try:
            return self._exporter.flush()
        except Exception:  # noqa: BLE001
            logger.debug("Exporter flush raised", exc_info=True)
            return ExportResult.FAILURE

    def _run(self) -> None:
        while not self._stop_event.wait(timeout=self._flush_interval_s):
            self._export_batch()

    def _drain_all(self) -> None:
        while self._export_batch():
            pass

    def _export_batch(self) -> bool:
        with self._export_lock:
            spans = self._buffer.drain(self._batch_size)
            if not spans:
                return False
            try:
                result = self._exporter.export(spans)
            except Exception:  # noqa: BLE001
                logger.debug("Exporter raised on %d spans", len(spans), exc_info=True)
                return True
        if result is not ExportResult.SUCCESS:
            logger.debug("Export of %d spans returned %s", len(spans), result.value)
        return True

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
