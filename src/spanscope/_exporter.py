"""Buffering span exporters and the OTLP conversion they share."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from google.protobuf import json_format
from opentelemetry.proto.collector.trace.v1.trace_service_pb2 import (
    ExportTraceServiceRequest,
)
from opentelemetry.proto.common.v1.common_pb2 import (
    AnyValue,
    InstrumentationScope,
    KeyValue,
)
from opentelemetry.proto.resource.v1.resource_pb2 import Resource
from opentelemetry.proto.trace.v1.trace_pb2 import (
    ResourceSpans,
    ScopeSpans,
)
from opentelemetry.proto.trace.v1.trace_pb2 import (
    Span as OtlpSpan,
)
from opentelemetry.proto.trace.v1.trace_pb2 import (
    Status as OtlpStatus,
)

from spanscope._types import ExportResult, SpanKind, SpanStatus

if TYPE_CHECKING:
    from collections.abc import Sequence

    from spanscope._types import SpanData

logger = logging.getLogger("spanscope.exporter")

SDK_NAME = "spanscope"
SDK_VERSION = "0.1.0"

_KIND_MAP: dict[SpanKind, int] = {
    SpanKind.INTERNAL: OtlpSpan.SPAN_KIND_INTERNAL,
    SpanKind.SERVER: OtlpSpan.SPAN_KIND_SERVER,
    SpanKind.CLIENT: OtlpSpan.SPAN_KIND_CLIENT,
    SpanKind.PRODUCER: OtlpSpan.SPAN_KIND_PRODUCER,
    SpanKind.CONSUMER: OtlpSpan.SPAN_KIND_CONSUMER,
}

_STATUS_MAP: dict[SpanStatus, int] = {
    SpanStatus.UNSET: OtlpStatus.STATUS_CODE_UNSET,
    SpanStatus.OK: OtlpStatus.STATUS_CODE_OK,
    SpanStatus.ERROR: OtlpStatus.STATUS_CODE_ERROR,
}


@runtime_checkable
class SpanExporter(Protocol):
    """What the processor hands ended spans to. Implementations never raise."""

    def export(self, spans: Sequence[SpanData]) -> ExportResult: ...

    def flush(self) -> ExportResult: ...

    def shutdown(self) -> None: ...

    def reset(self) -> None: ...


def _make_attribute(key: str, value: str | int | float | bool) -> KeyValue:
    """Convert a Python key-value pair to an OTLP KeyValue protobuf."""
    if isinstance(value, bool):
        av = AnyValue(bool_value=value)
    elif isinstance(value, int):
        av = AnyValue(int_value=value)
    elif isinstance(value, float):
        av = AnyValue(double_value=value)
    else:
        av = AnyValue(string_value=str(value))
    return KeyValue(key=key, value=av)


def _span_data_to_otlp(sd: SpanData) -> OtlpSpan:
    """Convert a single SpanData to an OTLP Span protobuf."""
    attrs = [_make_attribute(k, v) for k, v in sd.attributes.items()]
    attrs.append(_make_attribute("spanscope.duration_ms", sd.duration_ms))

    status = OtlpStatus(code=_STATUS_MAP[sd.status])  # type: ignore[arg-type]
    if sd.status == SpanStatus.ERROR and sd.error_message:
        status.message = sd.error_message

    parent = bytes.fromhex(sd.parent_span_id) if sd.parent_span_id else b""

    return OtlpSpan(
        trace_id=bytes.fromhex(sd.trace_id),
        span_id=bytes.fromhex(sd.span_id),
        parent_span_id=parent,
        name=sd.name,
        kind=_KIND_MAP.get(sd.kind, OtlpSpan.SPAN_KIND_INTERNAL),  # type: ignore[arg-type]
        start_time_unix_nano=sd.start_time_ns,
        end_time_unix_nano=sd.end_time_ns,
        attributes=attrs,
        status=status,
    )


def _build_export_request(spans: Sequence[SpanData]) -> ExportTraceServiceRequest:
    """Group spans by (service, environment) into one ExportTraceServiceRequest."""
    scope = InstrumentationScope(name=SDK_NAME, version=SDK_VERSION)
    grouped: dict[tuple[str, str], list[OtlpSpan]] = {}
    for sd in spans:
        grouped.setdefault((sd.service_name, sd.environment), []).append(
            _span_data_to_otlp(sd)
        )

    resource_spans = []
    for (service_name, environment), otlp_spans in grouped.items():
        resource = Resource(attributes=[
            _make_attribute("service.name", service_name),
            _make_attribute("deployment.environment", environment),
            _make_attribute("telemetry.sdk.name", SDK_NAME),
            _make_attribute("telemetry.sdk.version", SDK_VERSION),
        ])
        resource_spans.append(ResourceSpans(
            resource=resource,
            scope_spans=[ScopeSpans(scope=scope, spans=otlp_spans)],
        ))

    return ExportTraceServiceRequest(resource_spans=resource_spans)


class InMemorySpanExporter:
    """Accumulates exported spans until reset or shutdown.

    After ``shutdown()`` the exporter refuses work: ``export`` reports
    FAILURE_NOT_RETRYABLE and ``flush`` reports FAILURE.
    """

    def __init__(self) -> None:
        self._spans: list[SpanData] = []
        self._lock = threading.Lock()
        self._running = True

    @property
    def is_running(self) -> bool:
        return self._running

    def export(self, spans: Sequence[SpanData]) -> ExportResult:
        with self._lock:
            if not self._running:
                return ExportResult.FAILURE_NOT_RETRYABLE
            self._spans.extend(spans)
        return ExportResult.SUCCESS

    def flush(self) -> ExportResult:
        if not self._running:
            return ExportResult.FAILURE
        return ExportResult.SUCCESS

    def reset(self) -> None:
        """Discard buffered spans. Running state is unchanged."""
        with self._lock:
            self._spans.clear()

    def shutdown(self) -> None:
        with self._lock:
            self._spans.clear()
            self._running = False
        logger.debug("%s shut down", type(self).__name__)

    def get_finished_spans(self) -> list[SpanData]:
        with self._lock:
            return list(self._spans)


class OtlpJsonSpanExporter(InMemorySpanExporter):
    """In-memory exporter that renders its buffer as an OTLP JSON payload."""

    def get_export_request(self) -> ExportTraceServiceRequest:
        return _build_export_request(self.get_finished_spans())

    def to_json(self, *, indent: int | None = None) -> str:
        return json_format.MessageToJson(self.get_export_request(), indent=indent)
