"""Tracer and span builder: the entry points instrumentation code calls."""

from __future__ import annotations

from typing import TYPE_CHECKING

from spanscope._span import _NO_PARENT, Span
from spanscope._types import SpanKind

if TYPE_CHECKING:
    from spanscope._buffer import RingBuffer


class SpanBuilder:
    """Collects span options; ``start_span()`` returns an active span.

    Usage::

        span = tracer.span_builder("fetch").set_kind(SpanKind.CLIENT).start_span()
        try:
            ...
        finally:
            span.end()
    """

    def __init__(self, tracer: Tracer, name: str) -> None:
        self._tracer = tracer
        self._name = name
        self._kind = SpanKind.INTERNAL
        self._parent: Span | object | None = None
        self._attributes: dict[str, str | int | float | bool] = {}

    def set_kind(self, kind: SpanKind) -> SpanBuilder:
        self._kind = kind
        return self

    def set_parent(self, parent: Span) -> SpanBuilder:
        """Use ``parent`` instead of whatever span is active at start."""
        self._parent = parent
        return self

    def set_no_parent(self) -> SpanBuilder:
        """Start a new trace even if a span is active."""
        self._parent = _NO_PARENT
        return self

    def set_attribute(self, key: str, value: str | int | float | bool) -> SpanBuilder:
        self._attributes[key] = value
        return self

    def build(self) -> Span:
        """Return the configured span without starting it."""
        return Span(
            self._name,
            buffer=self._tracer.buffer,
            kind=self._kind,
            service_name=self._tracer.service_name,
            environment=self._tracer.environment,
            parent=self._parent,
            attributes=self._attributes,
        )

    def start_span(self) -> Span:
        return self.build().start()


class Tracer:
    """Creates spans wired to a buffer. ``buffer=None`` keeps context only."""

    def __init__(
        self,
        buffer: RingBuffer | None,
        *,
        service_name: str = "",
        environment: str = "development",
    ) -> None:
        self.buffer = buffer
        self.service_name = service_name
        self.environment = environment

    def span_builder(self, name: str) -> SpanBuilder:
        return SpanBuilder(self, name)

    def start_span(self, name: str, *, kind: SpanKind = SpanKind.INTERNAL) -> Span:
        """Start a span under the active one and make it active."""
        return self.span_builder(name).set_kind(kind).start_span()

    def span(self, name: str, *, kind: SpanKind = SpanKind.INTERNAL) -> Span:
        """Return an unstarted span for use in a ``with`` block."""
        return self.span_builder(name).set_kind(kind).build()
