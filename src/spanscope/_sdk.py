"""SDK singleton: orchestrates config, buffer, tracer, processor and exporter."""

from __future__ import annotations

import atexit
import logging

from spanscope._buffer import RingBuffer
from spanscope._config import SpanScopeConfig
from spanscope._exporter import OtlpJsonSpanExporter, SpanExporter
from spanscope._processor import BackgroundProcessor
from spanscope._tracer import Tracer
from spanscope._types import ExportResult

logger = logging.getLogger("spanscope")

_sdk_instance: _SpanScopeSDK | None = None
_atexit_registered = False


class _SpanScopeSDK:
    """Internal SDK singleton. Not part of the public API."""

    def __init__(self, config: SpanScopeConfig, exporter: SpanExporter | None = None) -> None:
        self.config = config
        self._buffer: RingBuffer | None = RingBuffer(config.buffer_size)
        self._exporter: SpanExporter = exporter if exporter is not None else OtlpJsonSpanExporter()
        self.tracer = Tracer(
            self._buffer,
            service_name=config.service_name,
            environment=config.environment,
        )
        self._processor: BackgroundProcessor | None = None

    @property
    def exporter(self) -> SpanExporter:
        return self._exporter

    def start(self) -> None:
        """Start the background processor."""
        if self._buffer is None or self._processor is not None:
            return
        self._processor = BackgroundProcessor(
            self._buffer,
            self._exporter,
            batch_size=self.config.batch_size,
            flush_interval_ms=self.config.flush_interval_ms,
        )
        self._processor.start()

    def force_flush(self) -> ExportResult:
        if self._processor is None:
            return ExportResult.FAILURE
        return self._processor.force_flush()

    def shutdown(self) -> None:
        """Stop the processor, drain what is left and shut the exporter down."""
        if self._processor is not None:
            self._processor.stop()
            self._processor = None
        try:
            self._exporter.shutdown()
        except Exception:  # noqa: BLE001
            logger.debug("Exporter shutdown raised", exc_info=True)
        self._buffer = None
        self.tracer.buffer = None


class _NoopSDK:
    """Fallback used when SDK is not initialized.

    Spans still become active and restore their parent on end, so context
    propagation behaves the same; they are just never exported.
    """

    def __init__(self) -> None:
        self.tracer = Tracer(None)

    def force_flush(self) -> ExportResult:
        return ExportResult.SUCCESS


_noop = _NoopSDK()


def _get_sdk() -> _SpanScopeSDK | _NoopSDK:
    """Return the active SDK or a noop fallback."""
    if _sdk_instance is not None:
        return _sdk_instance
    return _noop


def init(
    *,
    service_name: str,
    environment: str = "development",
    batch_size: int = 512,
    flush_interval_ms: int = 5000,
    buffer_size: int = 8192,
    exporter: SpanExporter | None = None,
) -> None:
    """Initialize the SpanScope SDK.

    Spans created before this call propagate context but are not exported.
    """
    global _sdk_instance, _atexit_registered  # noqa: PLW0603

    if _sdk_instance is not None:
        _sdk_instance.shutdown()

    config = SpanScopeConfig(
        service_name=service_name,
        environment=environment,
        batch_size=batch_size,
        flush_interval_ms=flush_interval_ms,
        buffer_size=buffer_size,
    )
    _sdk_instance = _SpanScopeSDK(config, exporter)
    _sdk_instance.start()
    if not _atexit_registered:
        atexit.register(shutdown)
        _atexit_registered = True
    logger.debug("SpanScope initialized for service %r", service_name)


def shutdown() -> None:
    """Shut down the SDK, flushing any remaining spans."""
    global _sdk_instance  # noqa: PLW0603
    if _sdk_instance is not None:
        _sdk_instance.shutdown()
        _sdk_instance = None


def force_flush() -> ExportResult:
    """Export every buffered span now."""
    return _get_sdk().force_flush()


def get_tracer() -> Tracer:
    return _get_sdk().tracer


def get_exporter() -> SpanExporter | None:
    """The active SDK's exporter, or None before ``init``."""
    if _sdk_instance is None:
        return None
    return _sdk_instance.exporter
