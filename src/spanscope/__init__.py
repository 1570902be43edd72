"""SpanScope: active-span propagation across threads, pools and asyncio tasks."""

from __future__ import annotations

from spanscope._bridge import (
    DETACHED,
    INHERIT,
    bind_unit,
    create_task,
    spawn,
    spawn_thread,
    submit,
    to_thread,
    wrap,
)
from spanscope._context import (
    SPAN_KEY,
    ContextKey,
    ContextToken,
    get_current_span,
    get_value,
    pop_value,
    push_value,
    set_violation_handler,
    violation_count,
)
from spanscope._exporter import InMemorySpanExporter, OtlpJsonSpanExporter, SpanExporter
from spanscope._sdk import (
    _get_sdk,
    force_flush,
    get_exporter,
    get_tracer,
    init,
    shutdown,
)
from spanscope._span import Span
from spanscope._trace import trace
from spanscope._tracer import SpanBuilder, Tracer
from spanscope._types import (
    ContractViolation,
    ExportResult,
    InheritancePolicy,
    SpanData,
    SpanKind,
    SpanState,
    SpanStatus,
    ViolationKind,
)
from spanscope._units import ExecutionUnit, current_unit, live_units

__version__ = "0.1.0"

__all__ = [
    "DETACHED",
    "INHERIT",
    "SPAN_KEY",
    "ContextKey",
    "ContextToken",
    "ContractViolation",
    "ExecutionUnit",
    "ExportResult",
    "InMemorySpanExporter",
    "InheritancePolicy",
    "OtlpJsonSpanExporter",
    "Span",
    "SpanBuilder",
    "SpanData",
    "SpanExporter",
    "SpanKind",
    "SpanState",
    "SpanStatus",
    "Tracer",
    "ViolationKind",
    "__version__",
    "bind_unit",
    "create_task",
    "current_unit",
    "force_flush",
    "get_current_span",
    "get_exporter",
    "get_tracer",
    "get_value",
    "init",
    "live_units",
    "pop_value",
    "push_value",
    "set_violation_handler",
    "shutdown",
    "span",
    "spawn",
    "spawn_thread",
    "start_span",
    "submit",
    "to_thread",
    "trace",
    "violation_count",
    "wrap",
]


def span(
    name: str,
    *,
    kind: SpanKind = SpanKind.INTERNAL,
) -> Span:
    """Create a span context manager.

    Usage::

        with spanscope.span("process-batch") as s:
            s.set_attribute("batch_size", 32)
    """
    return _get_sdk().tracer.span(name, kind=kind)


def start_span(
    name: str,
    *,
    kind: SpanKind = SpanKind.INTERNAL,
) -> Span:
    """Start a span under the active one; the caller must ``end()`` it.

    Usage::

        s = spanscope.start_span("queue-wait")
        try:
            ...
        finally:
            s.end()
    """
    return _get_sdk().tracer.start_span(name, kind=kind)
