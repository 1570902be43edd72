#!/usr/bin/env python3
"""Hot-path overhead benchmark.

Measures the cost of:
  1. push_value / pop_value on the context chain
  2. span start -> end (context push/pop + buffer enqueue)
  3. spawning a unit that inherits the active span

Usage:
    python benchmarks/bench_overhead.py
"""

from __future__ import annotations

import time

from spanscope._bridge import bind_unit
from spanscope._buffer import RingBuffer
from spanscope._context import SPAN_KEY, pop_value, push_value
from spanscope._span import Span
from spanscope._types import SpanKind


def bench_push_pop(iterations: int = 500_000) -> float:
    """Benchmark: one frame pushed and popped at depth 1."""
    for _ in range(5000):
        pop_value(push_value(SPAN_KEY, None))

    start = time.perf_counter_ns()
    for _ in range(iterations):
        pop_value(push_value(SPAN_KEY, None))
    elapsed = time.perf_counter_ns() - start

    return elapsed / iterations


def bench_span_lifecycle(iterations: int = 200_000) -> float:
    """Benchmark: full span enter -> exit with buffer enqueue."""
    buf = RingBuffer(maxsize=iterations + 1000)

    for _ in range(1000):
        with Span("bench", buffer=buf, kind=SpanKind.INTERNAL):
            pass
    buf.drain(buf.maxsize)

    start = time.perf_counter_ns()
    for _ in range(iterations):
        with Span("bench", buffer=buf, kind=SpanKind.INTERNAL):
            pass
    elapsed = time.perf_counter_ns() - start

    return elapsed / iterations


def bench_inherit_spawn(iterations: int = 100_000) -> float:
    """Benchmark: snapshot the caller into a unit and close it again."""
    with Span("parent", buffer=None):
        for _ in range(1000):
            bind_unit().close()

        start = time.perf_counter_ns()
        for _ in range(iterations):
            bind_unit().close()
        elapsed = time.perf_counter_ns() - start

    return elapsed / iterations


def main() -> None:
    print("=" * 60)
    print("SpanScope Propagation Overhead Benchmark")
    print("=" * 60)

    results: list[tuple[str, float, str]] = []

    ns = bench_push_pop()
    status = "PASS" if ns < 1000 else "WARN" if ns < 3000 else "FAIL"
    results.append(("Context push + pop", ns, f"{status} (target < 1μs)"))

    ns = bench_span_lifecycle()
    status = "PASS" if ns < 5000 else "WARN" if ns < 10000 else "FAIL"
    results.append(("Span lifecycle", ns, f"{status} (target < 5μs)"))

    ns = bench_inherit_spawn()
    status = "PASS" if ns < 5000 else "WARN" if ns < 10000 else "FAIL"
    results.append(("Inherit snapshot + close", ns, f"{status} (target < 5μs)"))

    print()
    for name, ns_val, note in results:
        if ns_val >= 1000:
            display = f"{ns_val / 1000:.2f}μs"
        else:
            display = f"{ns_val:.0f}ns"
        print(f"  {name:40s}  {display:>10s}   {note}")

    print()
    if all("FAIL" not in r[2] for r in results):
        print("All benchmarks within acceptable range.")
    else:
        print("WARNING: Some benchmarks exceeded target. Review above.")


if __name__ == "__main__":
    main()
