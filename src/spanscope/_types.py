"""Core types: enums and span data structures."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class SpanKind(enum.Enum):
    """Type of span operation."""

    INTERNAL = "internal"
    CLIENT = "client"
    SERVER = "server"
    PRODUCER = "producer"
    CONSUMER = "consumer"


class SpanStatus(enum.Enum):
    """Status of a completed span."""

    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


class SpanState(enum.Enum):
    """Lifecycle state of a span. Transitions only move forward."""

    CREATED = "created"
    ACTIVE = "active"
    ENDED = "ended"


class InheritancePolicy(enum.Enum):
    """Whether a spawned execution unit starts from its spawner's context."""

    INHERIT = "inherit"
    DETACHED = "detached"


class ExportResult(enum.Enum):
    """Outcome of an exporter call. Callers decide on retries."""

    SUCCESS = "success"
    FAILURE = "failure"
    FAILURE_NOT_RETRYABLE = "failure_not_retryable"


class ViolationKind(enum.Enum):
    """Lifecycle contract violations tolerated by the context store."""

    OUT_OF_ORDER = "out_of_order"
    ALREADY_UNWOUND = "already_unwound"
    STALE_TOKEN = "stale_token"
    FOREIGN_UNIT = "foreign_unit"
    DOUBLE_START = "double_start"
    DOUBLE_END = "double_end"


@dataclass(frozen=True)
class ContractViolation:
    """A tolerated misuse of push/pop or start/end, reported to the handler."""

    kind: ViolationKind
    message: str
    key: str | None = None
    unit_id: int | None = None
    discarded: int = 0


@dataclass(frozen=True)
class SpanData:
    """Immutable snapshot of an ended span, handed to exporters."""

    span_id: str
    trace_id: str
    name: str
    kind: SpanKind
    status: SpanStatus
    start_time_ns: int
    end_time_ns: int
    duration_ms: float
    service_name: str
    attributes: dict[str, str | int | float | bool] = field(default_factory=dict)
    parent_span_id: str | None = None
    error_message: str | None = None
    environment: str = "development"
