"""Integration tests: full SDK lifecycle with spans crossing units."""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import spanscope
import spanscope._sdk as sdk_mod
from spanscope import DETACHED, InMemorySpanExporter, SpanData, SpanKind, SpanStatus
from spanscope._types import ContractViolation


def setup_function() -> None:
    sdk_mod._sdk_instance = None


def teardown_function() -> None:
    spanscope.shutdown()


def _collect(exporter: InMemorySpanExporter) -> dict[str, SpanData]:
    spanscope.force_flush()
    return {s.name: s for s in exporter.get_finished_spans()}


def test_root_inherited_and_detached_children(
    violations: list[ContractViolation],
) -> None:
    """Root R -> inherited C1 (span S1) -> detached C2 (span S2) -> R ends."""
    exporter = InMemorySpanExporter()
    spanscope.init(service_name="scenario", exporter=exporter)
    observed: dict[str, object] = {}

    root = spanscope.start_span("R")
    assert spanscope.get_current_span() is root

    def c1() -> None:
        observed["c1_start"] = spanscope.get_current_span()
        s1 = spanscope.start_span("S1")
        observed["c1_during"] = spanscope.get_current_span() is s1
        s1.end()
        observed["c1_after"] = spanscope.get_current_span()

    spanscope.spawn_thread(c1).join()

    def c2() -> None:
        observed["c2_start"] = spanscope.get_current_span()
        with spanscope.span("S2"):
            pass

    spanscope.spawn_thread(c2, policy=DETACHED).join()

    root.end()
    assert spanscope.get_current_span() is None

    assert observed["c1_start"] is root
    assert observed["c1_during"] is True
    assert observed["c1_after"] is root
    assert observed["c2_start"] is None

    spans = _collect(exporter)
    assert spans["S1"].parent_span_id == spans["R"].span_id
    assert spans["S1"].trace_id == spans["R"].trace_id
    assert spans["S2"].parent_span_id is None
    assert spans["S2"].trace_id != spans["R"].trace_id
    assert violations == []


def test_full_lifecycle() -> None:
    """init -> trace -> nested spans -> exporter has all spans."""
    exporter = InMemorySpanExporter()
    spanscope.init(service_name="integration-test", exporter=exporter)

    @spanscope.trace(name="handle-request", kind=SpanKind.SERVER)
    def handle_request() -> str:
        with spanscope.span("validate-input") as s:
            s.set_attribute("input_length", 100)

        with spanscope.span("run-inference"):
            with spanscope.span("tokenize"):
                pass
            with spanscope.span("forward-pass") as inner:
                inner.set_attribute("model", "llama-3-8b")

        return "done"

    assert handle_request() == "done"

    by_name = _collect(exporter)
    assert len(by_name) == 5
    root = by_name["handle-request"]
    assert root.parent_span_id is None
    assert root.kind == SpanKind.SERVER
    assert by_name["validate-input"].parent_span_id == root.span_id
    assert by_name["run-inference"].parent_span_id == root.span_id
    assert by_name["tokenize"].parent_span_id == by_name["run-inference"].span_id
    assert by_name["forward-pass"].parent_span_id == by_name["run-inference"].span_id
    assert by_name["forward-pass"].attributes["model"] == "llama-3-8b"
    assert {s.trace_id for s in by_name.values()} == {root.trace_id}


def test_deep_nesting() -> None:
    spanscope.init(service_name="deep-test")
    assert sdk_mod._sdk_instance is not None
    buf = sdk_mod._sdk_instance._buffer
    assert buf is not None

    depth = 10

    def nest(level: int) -> None:
        if level == 0:
            return
        with spanscope.span(f"level-{level}"):
            nest(level - 1)

    nest(depth)

    by_name = {s.name: s for s in buf.drain(100)}
    assert len(by_name) == depth
    for i in range(1, depth):
        assert by_name[f"level-{i}"].parent_span_id == by_name[f"level-{i + 1}"].span_id


def test_concurrent_traces() -> None:
    """Raw threads start from an empty chain, so each builds its own trace."""
    exporter = InMemorySpanExporter()
    spanscope.init(service_name="concurrent-test", exporter=exporter)

    def worker(worker_id: int) -> None:
        with spanscope.span(f"worker-{worker_id}") as s:
            s.set_attribute("worker_id", worker_id)
            with spanscope.span(f"task-{worker_id}"):
                pass

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    spans = _collect(exporter)
    assert len(spans) == 10
    assert len({s.trace_id for s in spans.values()}) == 5


def test_pool_fan_out_under_request_span() -> None:
    exporter = InMemorySpanExporter()
    spanscope.init(service_name="fan-out", exporter=exporter)

    def shard(i: int) -> None:
        with spanscope.span(f"shard-{i}"):
            pass

    with spanscope.span("request") as request, ThreadPoolExecutor(max_workers=4) as pool:
        futures = [spanscope.submit(pool, shard, i) for i in range(8)]
        for f in futures:
            f.result()

    spans = _collect(exporter)
    for i in range(8):
        assert spans[f"shard-{i}"].parent_span_id == request.span_id


def test_async_fan_out() -> None:
    exporter = InMemorySpanExporter()
    spanscope.init(service_name="async-test", exporter=exporter)

    async def fetch(i: int) -> None:
        with spanscope.span(f"fetch-{i}", kind=SpanKind.CLIENT):
            await asyncio.sleep(0)

    def blocking() -> None:
        with spanscope.span("blocking"):
            pass

    async def main() -> str:
        with spanscope.span("gather") as parent:
            await asyncio.gather(*(spanscope.create_task(fetch(i)) for i in range(3)))
            await spanscope.to_thread(blocking)
        return parent.span_id

    parent_id = asyncio.run(main())
    spans = _collect(exporter)
    for i in range(3):
        assert spans[f"fetch-{i}"].parent_span_id == parent_id
    assert spans["blocking"].parent_span_id == parent_id


def test_error_in_nested_span() -> None:
    spanscope.init(service_name="error-test")
    assert sdk_mod._sdk_instance is not None
    buf = sdk_mod._sdk_instance._buffer
    assert buf is not None

    try:
        with spanscope.span("outer"), spanscope.span("inner"):
            raise ValueError("boom")
    except ValueError:
        pass

    by_name = {s.name: s for s in buf.drain(10)}
    assert by_name["inner"].status == SpanStatus.ERROR
    assert by_name["inner"].error_message == "boom"
    assert by_name["outer"].status == SpanStatus.ERROR
    assert spanscope.get_current_span() is None


def test_otlp_json_default_exporter() -> None:
    spanscope.init(service_name="json-test")
    with spanscope.span("exported"):
        pass
    spanscope.force_flush()
    exporter = spanscope.get_exporter()
    assert isinstance(exporter, spanscope.OtlpJsonSpanExporter)
    assert '"exported"' in exporter.to_json()
