"""Execution unit identity and the registry of live spawned units."""

from __future__ import annotations

import asyncio
import itertools
import threading
import weakref
from collections.abc import Callable
from contextvars import Context, ContextVar
from typing import Any, TypeVar

from spanscope._types import InheritancePolicy

T = TypeVar("T")

_ids = itertools.count(1)

# Owner marker for units that have not been looked up from any task yet.
_UNPINNED = object()


class ExecutionUnit:
    """Identity of a thread or logical task that owns a context chain.

    Units created by the bridge own a ``contextvars.Context`` snapshot and are
    registered until they complete. Implicit units (the main thread, threads
    started without the bridge, tasks created without the bridge) are bound
    lazily and never registered.

    A unit belongs to the asyncio task it was first seen in, or to no task
    when it was first seen outside a running loop.
    """

    __slots__ = ("unit_id", "name", "policy", "parent_id", "_context", "_closed", "_owner")

    def __init__(
        self,
        *,
        name: str | None = None,
        policy: InheritancePolicy | None = None,
        parent_id: int | None = None,
        context: Context | None = None,
    ) -> None:
        self.unit_id: int = next(_ids)
        self.name = name or f"unit-{self.unit_id}"
        self.policy = policy
        self.parent_id = parent_id
        self._context = context
        self._closed = False
        self._owner: Any = _UNPINNED

    @property
    def context(self) -> Context | None:
        """The context cell this unit runs in, or None once closed."""
        return self._context

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_implicit(self) -> bool:
        return self.policy is None

    def pin(self, task: asyncio.Task[Any] | None) -> None:
        """Tie the unit to ``task`` (None: code outside any running loop)."""
        self._owner = weakref.ref(task) if task is not None else None

    def owned_by(self, task: asyncio.Task[Any] | None) -> bool:
        """Whether ``task`` may act as this unit, pinning on first use."""
        if self._owner is _UNPINNED:
            self.pin(task)
            return True
        if self._owner is None:
            return task is None
        return task is not None and self._owner() is task

    def run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``fn`` inside this unit's context on the calling thread.

        The same unit may be run from different threads over its lifetime
        (one at a time); pushes made in one call are visible in the next.
        """
        if self._context is None:
            raise RuntimeError(f"execution unit {self.name} is closed")
        return self._context.run(fn, *args, **kwargs)

    def close(self) -> None:
        """Mark the unit complete and release its context."""
        if self._closed:
            return
        self._closed = True
        self._context = None
        _registry.discard(self)

    def __repr__(self) -> str:
        policy = self.policy.value if self.policy is not None else "implicit"
        return f"ExecutionUnit(id={self.unit_id}, name={self.name!r}, policy={policy})"
class UnitRegistry:
    """Process-wide map of live spawned units, safe to use from any thread."""

    def __init__(self) -> None:
        self._units: dict[int, ExecutionUnit] = {}
        self._lock = threading.Lock()

    def add(self, unit: ExecutionUnit) -> None:
        with self._lock:
            self._units[unit.unit_id] = unit

    def discard(self, unit: ExecutionUnit) -> None:
        with self._lock:
            self._units.pop(unit.unit_id, None)

    def snapshot(self) -> list[ExecutionUnit]:
        with self._lock:
            return list(self._units.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._units)


_registry = UnitRegistry()

_current_unit: ContextVar[ExecutionUnit | None] = ContextVar(
    "_spanscope_unit", default=None
)


def _running_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


def current_unit() -> ExecutionUnit:
    """Return the calling execution unit, binding an implicit one if needed.

    Tasks copy their creator's context, so a task that finds a unit owned by
    another task (or by the thread that started the loop) gets a fresh
    implicit unit of its own.
    """
    task = _running_task()
    unit = _current_unit.get()
    if unit is not None and unit.owned_by(task):
        return unit
    if task is not None:
        name = f"implicit-{task.get_name()}"
    else:
        name = f"implicit-{threading.current_thread().name}"
    unit = ExecutionUnit(name=name, parent_id=unit.unit_id if unit is not None else None)
    unit.pin(task)
    _current_unit.set(unit)
    return unit


def live_units() -> list[ExecutionUnit]:
    """Units spawned by the bridge that have not completed yet."""
    return _registry.snapshot()
