"""Bounded buffer holding ended spans until the processor drains them."""

from __future__ import annotations

import threading
from collections import deque

from spanscope._types import SpanData


class RingBuffer:
    """Drop-oldest ring buffer shared by every thread that ends spans.

    Spans end on arbitrary worker threads while the processor drains from its
    own thread, so both sides take the lock.
    """

    def __init__(self, maxsize: int) -> None:
        self._buffer: deque[SpanData] = deque(maxlen=maxsize)
        self._lock = threading.Lock()
        self._drop_count: int = 0
        self._maxsize = maxsize

    def enqueue(self, span: SpanData) -> None:
        """Add an ended span. The oldest one is dropped when full."""
        with self._lock:
            if len(self._buffer) == self._maxsize:
                self._drop_count += 1
            self._buffer.append(span)

    def drain(self, max_items: int) -> list[SpanData]:
        """Remove and return up to max_items spans, oldest first."""
        with self._lock:
            count = min(max_items, len(self._buffer))
            return [self._buffer.popleft() for _ in range(count)]

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    @property
    def maxsize(self) -> int:
        return self._maxsize

    @property
    def drop_count(self) -> int:
        """Number of spans dropped due to buffer overflow."""
        return self._drop_count

    def __len__(self) -> int:
        return len(self._buffer)
