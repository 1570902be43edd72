"""Tests for _types module."""

import dataclasses

import pytest

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


def test_span_kind_values() -> None:
    assert SpanKind.INTERNAL.value == "internal"
    assert SpanKind.CLIENT.value == "client"
    assert SpanKind.SERVER.value == "server"


def test_span_status_values() -> None:
    assert SpanStatus.UNSET.value == "unset"
    assert SpanStatus.OK.value == "ok"
    assert SpanStatus.ERROR.value == "error"


def test_span_state_values() -> None:
    assert [s.value for s in SpanState] == ["created", "active", "ended"]


def test_policies_and_results() -> None:
    assert InheritancePolicy.INHERIT.value == "inherit"
    assert InheritancePolicy.DETACHED.value == "detached"
    assert ExportResult.FAILURE_NOT_RETRYABLE.value == "failure_not_retryable"


def test_span_data_defaults() -> None:
    sd = SpanData(
        span_id="abc123",
        trace_id="trace456",
        name="test-span",
        kind=SpanKind.INTERNAL,
        status=SpanStatus.OK,
        start_time_ns=1000,
        end_time_ns=2000,
        duration_ms=0.001,
        service_name="test-svc",
    )
    assert sd.attributes == {}
    assert sd.parent_span_id is None
    assert sd.error_message is None
    assert sd.environment == "development"


def test_contract_violation_is_frozen() -> None:
    v = ContractViolation(kind=ViolationKind.STALE_TOKEN, message="m")
    assert v.discarded == 0
    with pytest.raises(dataclasses.FrozenInstanceError):
        v.message = "other"  # type: ignore[misc]
