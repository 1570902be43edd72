"""SpanScope Quick Start: spans that follow work onto threads and tasks."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import spanscope

# 1. Initialize the SDK
spanscope.init(service_name="my-service", environment="development")


def resize(image_id: int) -> None:
    # Runs on a pool thread, still parented to "handle-upload"
    with spanscope.span("resize") as s:
        s.set_attribute("image_id", image_id)


async def notify(user: str) -> None:
    with spanscope.span("notify", kind=spanscope.SpanKind.CLIENT) as s:
        s.set_attribute("user", user)
        await asyncio.sleep(0)


async def handle_upload() -> None:
    with spanscope.span("handle-upload", kind=spanscope.SpanKind.SERVER):
        # 2. Inherit the active span on a worker pool
        with ThreadPoolExecutor(max_workers=2) as pool:
            for f in [spanscope.submit(pool, resize, i) for i in range(3)]:
                f.result()

        # 3. ...and on asyncio tasks
        await spanscope.create_task(notify("ada"))

        # 4. Background housekeeping that must not join this trace
        await spanscope.create_task(notify("audit"), policy=spanscope.DETACHED)


asyncio.run(handle_upload())

# 5. Flush and print the OTLP JSON payload
spanscope.force_flush()
exporter = spanscope.get_exporter()
if isinstance(exporter, spanscope.OtlpJsonSpanExporter):
    print(exporter.to_json(indent=2))

spanscope.shutdown()
