"""@trace decorator for wrapping functions in spans."""

from __future__ import annotations

import functools
import inspect
from collections.abc import Callable
from typing import Any, TypeVar, overload

from spanscope._types import SpanKind

F = TypeVar("F", bound=Callable[..., Any])


@overload
def trace(func: F) -> F: ...


@overload
def trace(
    *,
    name: str | None = None,
    kind: SpanKind = SpanKind.INTERNAL,
) -> Callable[[F], F]: ...


def trace(
    func: F | None = None,
    *,
    name: str | None = None,
    kind: SpanKind = SpanKind.INTERNAL,
) -> F | Callable[[F], F]:
    """Decorator that wraps a function call in a span.

    Works on plain and ``async def`` functions, with or without arguments::

        @trace
        def handle_request(): ...

        @trace(name="custom", kind=SpanKind.CLIENT)
        async def call_service(): ...
    """

    def decorator(fn: F) -> F:
        span_name = name or fn.__qualname__

        if inspect.iscoroutinefunction(fn):

            @functools.wraps(fn)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                from spanscope._sdk import get_tracer

                with get_tracer().span(span_name, kind=kind):
                    return await fn(*args, **kwargs)

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            from spanscope._sdk import get_tracer

            with get_tracer().span(span_name, kind=kind):
                return fn(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    if func is not None:
        return decorator(func)
    return decorator
