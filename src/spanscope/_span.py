"""Span class: start pushes it as the active span, end restores the previous one."""

from __future__ import annotations

import threading
import time
import uuid
from types import TracebackType
from typing import TYPE_CHECKING

from spanscope._context import (
    SPAN_KEY,
    ContextToken,
    get_current_span,
    pop_value,
    push_value,
    report_violation,
)
from spanscope._types import (
    ContractViolation,
    SpanData,
    SpanKind,
    SpanState,
    SpanStatus,
    ViolationKind,
)
from spanscope._units import current_unit

if TYPE_CHECKING:
    from spanscope._buffer import RingBuffer

# Marker for spans that must be roots even when another span is active.
_NO_PARENT = object()


class Span:
    """A mutable span that becomes an immutable SpanData when it ends.

    Used as a context manager::

        with Span("my-operation", buffer=buf) as s:
            s.set_attribute("key", "value")

    or driven explicitly with ``start()`` and ``end()``. Either way the span
    must be ended on the execution unit that started it.
    """

    def __init__(
        self,
        name: str,
        *,
        buffer: RingBuffer | None,
        kind: SpanKind = SpanKind.INTERNAL,
        service_name: str = "",
        environment: str = "development",
        parent: Span | object | None = None,
        attributes: dict[str, str | int | float | bool] | None = None,
    ) -> None:
        self.name = name
        self.kind = kind
        self._service_name = service_name
        self._environment = environment
        self._buffer = buffer
        self._explicit_parent = parent

        self.span_id: str = uuid.uuid4().hex[:16]
        self.trace_id: str = ""
        self.parent_span_id: str | None = None
        self._status: SpanStatus = SpanStatus.UNSET
        self._error_message: str | None = None
        self._attributes: dict[str, str | int | float | bool] = dict(attributes or {})

        self._state = SpanState.CREATED
        self._lock = threading.Lock()
        self._start_time_ns: int = 0
        self._end_time_ns: int = 0
        self._token: ContextToken | None = None

    @property
    def state(self) -> SpanState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is SpanState.ACTIVE

    @property
    def status(self) -> SpanStatus:
        return self._status

    def start(self) -> Span:
        """Resolve the parent, record the start time and become the active span."""
        with self._lock:
            first = self._state is SpanState.CREATED
            if first:
                self._state = SpanState.ACTIVE
        if not first:
            self._report(ViolationKind.DOUBLE_START, "started")
            return self

        if self._explicit_parent is _NO_PARENT:
            parent = None
        elif isinstance(self._explicit_parent, Span):
            parent = self._explicit_parent
        else:
            parent = get_current_span()

        if parent is not None:
            self.trace_id = parent.trace_id
            self.parent_span_id = parent.span_id
        else:
            self.trace_id = uuid.uuid4().hex
            self.parent_span_id = None

        self._start_time_ns = time.time_ns()
        self._token = push_value(SPAN_KEY, self)
        return self

    def end(self) -> None:
        """End the span once; later calls are reported and ignored."""
        with self._lock:
            previous = self._state
            self._state = SpanState.ENDED
        if previous is SpanState.ENDED:
            self._report(ViolationKind.DOUBLE_END, "ended")
            return
        was_active = previous is SpanState.ACTIVE

        self._end_time_ns = time.time_ns()
        if not was_active:
            self._start_time_ns = self._end_time_ns
            self.trace_id = self.trace_id or uuid.uuid4().hex

        token, self._token = self._token, None
        pop_value(token)

        if self._buffer is not None:
            self._buffer.enqueue(self._to_span_data())

    def __enter__(self) -> Span:
        if self._state is SpanState.CREATED:
            self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            self._status = SpanStatus.ERROR
            self._error_message = str(exc_val) if exc_val else exc_type.__name__
        elif self._status == SpanStatus.UNSET:
            self._status = SpanStatus.OK
        self.end()

    def set_attribute(self, key: str, value: str | int | float | bool) -> None:
        """Attach a key-value attribute to this span."""
        self._attributes[key] = value

    def set_status(self, status: SpanStatus, message: str | None = None) -> None:
        """Explicitly set span status."""
        self._status = status
        self._error_message = message

    def _report(self, kind: ViolationKind, verb: str) -> None:
        report_violation(ContractViolation(
            kind=kind,
            message=f"span {self.name!r} was {verb} twice",
            key=SPAN_KEY.name,
            unit_id=current_unit().unit_id,
        ))

    def _to_span_data(self) -> SpanData:
        duration_ms = (self._end_time_ns - self._start_time_ns) / 1_000_000
        return SpanData(
            span_id=self.span_id,
            trace_id=self.trace_id,
            name=self.name,
            kind=self.kind,
            status=self._status,
            start_time_ns=self._start_time_ns,
            end_time_ns=self._end_time_ns,
            duration_ms=duration_ms,
            service_name=self._service_name,
            attributes=dict(self._attributes),
            parent_span_id=self.parent_span_id,
            error_message=self._error_message,
            environment=self._environment,
        )

    def __repr__(self) -> str:
        return f"Span(name={self.name!r}, span_id={self.span_id}, state={self._state.value})"
