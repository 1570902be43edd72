"""Context propagation: a per-unit chain of immutable context frames.

The chain head lives in a ``ContextVar``, so every ``contextvars.Context``
(one per asyncio task, one per thread, one per bridge-spawned unit) sees its
own head. Frames are never mutated once linked, which makes handing a head
to a child unit a plain reference copy.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from spanscope._types import ContractViolation, ViolationKind
from spanscope._units import current_unit

if TYPE_CHECKING:
    from spanscope._span import Span

logger = logging.getLogger("spanscope.context")

ViolationHandler = Callable[[ContractViolation], None]


class ContextKey:
    """A slot of context. Keys compare by identity and live for the process."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"ContextKey({self.name!r})"


SPAN_KEY = ContextKey("span")


@dataclass(frozen=True, eq=False)
class ContextFrame:
    """One link of a chain. ``previous`` is whatever was at the head before."""

    key: ContextKey
    value: Any
    previous: ContextFrame | None
    owner: int


class ContextToken:
    """Opaque handle to the exact frame created by a push."""

    __slots__ = ("_frame", "_used")

    def __init__(self, frame: ContextFrame) -> None:
        self._frame = frame
        self._used = False

    @property
    def used(self) -> bool:
        return self._used

    def __repr__(self) -> str:
        return f"ContextToken(key={self._frame.key.name!r}, used={self._used})"


_head: ContextVar[ContextFrame | None] = ContextVar("_spanscope_head", default=None)


def _log_violation(violation: ContractViolation) -> None:
    logger.warning("%s: %s", violation.kind.value, violation.message)


_handler: ViolationHandler | None = _log_violation
_violations = 0
_violations_lock = threading.Lock()


def set_violation_handler(handler: ViolationHandler | None) -> ViolationHandler | None:
    """Install a handler for contract violations and return the previous one.

    ``None`` silences reporting; violations are still counted.
    """
    global _handler  # noqa: PLW0603
    previous = _handler
    _handler = handler
    return previous


def violation_count() -> int:
    """Number of contract violations reported since process start."""
    return _violations


def report_violation(violation: ContractViolation) -> None:
    """Count a violation and pass it to the handler. Never raises."""
    global _violations  # noqa: PLW0603
    with _violations_lock:
        _violations += 1
    handler = _handler
    if handler is None:
        return
    try:
        handler(violation)
    except Exception:  # noqa: BLE001
        logger.debug("Violation handler failed", exc_info=True)


def push_value(key: ContextKey, value: Any) -> ContextToken:
    """Make ``value`` the top of ``key`` for the calling unit."""
    frame = ContextFrame(
        key=key,
        value=value,
        previous=_head.get(),
        owner=current_unit().unit_id,
    )
    _head.set(frame)
    return ContextToken(frame)


def get_value(key: ContextKey) -> Any:
    """Return the innermost value pushed for ``key``, or None."""
    frame = _head.get()
    while frame is not None:
        if frame.key is key:
            return frame.value
        frame = frame.previous
    return None


def pop_value(token: ContextToken | None) -> None:
    """Unwind the calling unit's chain through the frame behind ``token``.

    Out-of-order pops are tolerated: any frames pushed above the token are
    discarded with it. Tokens that can no longer be honoured leave the chain
    untouched. Both cases are reported, never raised.
    """
    if token is None:
        return
    target = token._frame
    unit_id = current_unit().unit_id

    if token._used:
        report_violation(ContractViolation(
            kind=ViolationKind.STALE_TOKEN,
            message=f"token for {target.key.name!r} was already popped",
            key=target.key.name,
            unit_id=unit_id,
        ))
        return

    if target.owner != unit_id:
        report_violation(ContractViolation(
            kind=ViolationKind.FOREIGN_UNIT,
            message=(
                f"frame for {target.key.name!r} was pushed by unit {target.owner}, "
                f"pop attempted from unit {unit_id}"
            ),
            key=target.key.name,
            unit_id=unit_id,
        ))
        return

    discarded = 0
    frame = _head.get()
    while frame is not None and frame is not target:
        discarded += 1
        frame = frame.previous

    if frame is None:
        token._used = True
        report_violation(ContractViolation(
            kind=ViolationKind.ALREADY_UNWOUND,
            message=f"frame for {target.key.name!r} is no longer in the chain",
            key=target.key.name,
            unit_id=unit_id,
        ))
        return

    _head.set(target.previous)
    token._used = True
    if discarded:
        report_violation(ContractViolation(
            kind=ViolationKind.OUT_OF_ORDER,
            message=(
                f"popped {target.key.name!r} with {discarded} newer frame(s) "
                "still on top; discarded them"
            ),
            key=target.key.name,
            unit_id=unit_id,
            discarded=discarded,
        ))


def chain_depth() -> int:
    """Number of frames in the calling unit's chain."""
    depth = 0
    frame = _head.get()
    while frame is not None:
        depth += 1
        frame = frame.previous
    return depth


def clear_chain() -> None:
    """Start the calling unit over with an empty chain."""
    _head.set(None)


def get_current_span() -> Span | None:
    """Return the active span in the current context, or None."""
    return get_value(SPAN_KEY)  # type: ignore[no-any-return]
