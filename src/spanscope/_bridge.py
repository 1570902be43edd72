"""Spawn helpers that carry (or deliberately drop) context across hops.

Every helper cuts a new execution unit from the caller's context at call
time. ``INHERIT`` units start with the caller's chain head; ``DETACHED``
units start with an empty chain. Later pushes by the caller are never seen
by units already spawned, and a unit's own pushes never leak back.
"""

from __future__ import annotations

import asyncio
import contextvars
import functools
import inspect
import logging
import threading
from collections.abc import Callable, Coroutine
from concurrent.futures import Executor, Future
from typing import Any, TypeVar

from spanscope._context import clear_chain
from spanscope._types import InheritancePolicy
from spanscope._units import ExecutionUnit, _current_unit, _registry, current_unit

logger = logging.getLogger("spanscope.bridge")

T = TypeVar("T")

INHERIT = InheritancePolicy.INHERIT
DETACHED = InheritancePolicy.DETACHED


def bind_unit(
    policy: InheritancePolicy = INHERIT,
    *,
    name: str | None = None,
) -> ExecutionUnit:
    """Snapshot the caller's context into a new registered execution unit.

    The returned unit can be ``run`` on any thread, one at a time, and must
    be closed by whoever owns its lifetime.
    """
    parent = current_unit()
    ctx = contextvars.copy_context()
    unit = ExecutionUnit(
        name=name,
        policy=policy,
        parent_id=parent.unit_id,
        context=ctx,
    )
    ctx.run(_current_unit.set, unit)
    if policy is DETACHED:
        ctx.run(clear_chain)
    _registry.add(unit)
    logger.debug("Spawned %r from unit %d", unit, parent.unit_id)
    return unit


def _close_on_done(unit: ExecutionUnit) -> Callable[[Any], None]:
    def _done(_: Any) -> None:
        unit.close()

    return _done


def spawn_thread(
    work: Callable[..., Any],
    *args: Any,
    policy: InheritancePolicy = INHERIT,
    name: str | None = None,
    daemon: bool | None = None,
    **kwargs: Any,
) -> threading.Thread:
    """Start a thread that runs ``work`` in a new execution unit."""
    unit = bind_unit(policy, name=name)

    def _target() -> None:
        try:
            unit.run(work, *args, **kwargs)
        finally:
            unit.close()

    thread = threading.Thread(target=_target, name=name, daemon=daemon)
    try:
        thread.start()
    except Exception:
        unit.close()
        raise
    return thread


def submit(
    executor: Executor,
    work: Callable[..., T],
    *args: Any,
    policy: InheritancePolicy = INHERIT,
    name: str | None = None,
    **kwargs: Any,
) -> Future[T]:
    """Submit ``work`` to a worker pool inside a new execution unit."""
    unit = bind_unit(policy, name=name)
    try:
        future = executor.submit(unit.run, work, *args, **kwargs)
    except Exception:
        unit.close()
        raise
    future.add_done_callback(_close_on_done(unit))
    return future


def create_task(
    coro: Coroutine[Any, Any, T],
    *,
    policy: InheritancePolicy = INHERIT,
    name: str | None = None,
) -> asyncio.Task[T]:
    """Schedule ``coro`` as an asyncio task running in a new execution unit.

    The unit's context follows the task across every suspension point.
    """
    unit = bind_unit(policy, name=name)
    context = unit.context
    try:
        task = asyncio.create_task(coro, name=name, context=context)
    except Exception:
        unit.close()
        raise
    unit.pin(task)
    task.add_done_callback(_close_on_done(unit))
    return task


async def to_thread(
    work: Callable[..., T],
    *args: Any,
    policy: InheritancePolicy = INHERIT,
    name: str | None = None,
    **kwargs: Any,
) -> T:
    """Run blocking ``work`` in the loop's default executor.

    The unit is closed by the worker when ``work`` returns, so cancelling the
    awaiting task leaves it registered until the thread is really done.
    """
    loop = asyncio.get_running_loop()
    unit = bind_unit(policy, name=name)
    lock = threading.Lock()
    claimed = False

    def _claim() -> bool:
        nonlocal claimed
        with lock:
            first, claimed = not claimed, True
        return first

    def _run() -> T | None:
        if not _claim():
            return None
        try:
            return unit.run(work, *args, **kwargs)
        finally:
            unit.close()

    try:
        return await loop.run_in_executor(None, _run)  # type: ignore[return-value]
    finally:
        # Never reached the worker (cancelled while queued, or not scheduled).
        if _claim():
            unit.close()


def wrap(
    work: Callable[..., T],
    *,
    policy: InheritancePolicy = INHERIT,
) -> Callable[..., T]:
    """Capture the caller's context now for a callback that runs later.

    Each invocation of the returned callable runs in its own unit cut from
    the captured snapshot, so concurrent invocations stay isolated.
    """
    snapshot = contextvars.copy_context()
    if policy is DETACHED:
        snapshot.run(clear_chain)
    spawner = current_unit().unit_id

    @functools.wraps(work)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        unit = _fork(snapshot, policy, spawner, work.__qualname__)
        try:
            return unit.run(work, *args, **kwargs)
        finally:
            unit.close()

    return wrapper


def _fork(
    snapshot: contextvars.Context,
    policy: InheritancePolicy,
    parent_id: int,
    name: str,
) -> ExecutionUnit:
    ctx = snapshot.copy()
    unit = ExecutionUnit(name=name, policy=policy, parent_id=parent_id, context=ctx)
    ctx.run(_current_unit.set, unit)
    _registry.add(unit)
    return unit


def spawn(
    policy: InheritancePolicy,
    work: Callable[..., Any] | Coroutine[Any, Any, Any],
    *args: Any,
    executor: Executor | None = None,
    **kwargs: Any,
) -> threading.Thread | Future[Any] | asyncio.Task[Any]:
    """Run ``work`` in a new execution unit chosen by its shape.

    Coroutines and coroutine functions become asyncio tasks, plain callables
    go to ``executor`` when one is given and to a new thread otherwise.
    """
    if inspect.iscoroutinefunction(work):
        work = work(*args, **kwargs)
    if inspect.iscoroutine(work):
        return create_task(work, policy=policy)
    if executor is not None:
        return submit(executor, work, *args, policy=policy, **kwargs)
    return spawn_thread(work, *args, policy=policy, **kwargs)
