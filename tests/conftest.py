"""Shared fixtures."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from spanscope._context import clear_chain, get_current_span, set_violation_handler
from spanscope._types import ContractViolation


@pytest.fixture
def violations() -> Iterator[list[ContractViolation]]:
    """Collect contract violations reported while the test runs."""
    seen: list[ContractViolation] = []
    previous = set_violation_handler(seen.append)
    try:
        yield seen
    finally:
        set_violation_handler(previous)


@pytest.fixture(autouse=True)
def _no_leaked_span() -> Iterator[None]:
    """Every test must leave the main thread with no active span."""
    yield
    leaked = get_current_span()
    clear_chain()
    assert leaked is None, f"test left {leaked!r} active"
