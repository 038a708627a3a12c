# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "restmux[otel]",
#     "httpx>=0.28.1,<0.29.0",
#     "opentelemetry-sdk>=1.39.1,<2.0.0",
# ]
#
# [tool.uv.sources]
# restmux = { path = "../", editable = true }
# ///
"""OpenTelemetry middleware demo.

Serves the router in-process through httpx's ASGI transport and prints one
line per span: route, status, classified error kind and the error chain's
traces. Also shows that CORS preflights are answered before any middleware
runs, so they produce no span.
"""

import asyncio
import logging

import httpx
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from restmux import Request, Response, Router, wrap
from restmux.errors import bad_request, forbidden
from restmux.middleware.otel import otel
from restmux.responses import json_response

ORDERS = {"17": {"id": "17", "total": 42}}


async def get_order(request: Request) -> Response:
    order_id = request.variables["id"]
    if not order_id.isdigit():
        raise bad_request("order id must be numeric").with_fields("id")
    try:
        return json_response(200, ORDERS[order_id])
    except KeyError as e:
        raise wrap(e, "looking up order %s", order_id) from e


async def delete_order(request: Request) -> Response:
    if request.headers.get("x-role") != "admin":
        err = forbidden("only admins may delete orders").with_uuid()
        raise wrap(err, "deleting order %s", request.variables["id"])
    ORDERS.pop(request.variables["id"], None)
    return json_response(204, None)


def build_router(provider: TracerProvider) -> Router:
    router = Router(cors_enabled=True, origins=("https://shop.example",))
    router.use(otel(tracer_provider=provider))
    router.get("/orders/{id}", get_order).expose_headers("ETag")
    router.delete("/orders/{id}", delete_order).require_headers("X-Role")
    return router


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    router = build_router(provider)

    transport = httpx.ASGITransport(app=router)
    async with httpx.AsyncClient(transport=transport, base_url="http://shop") as c:
        preflight = await c.options("/orders/17")
        print("preflight", preflight.status_code, dict(preflight.headers))
        for method, path, headers in (
            ("GET", "/orders/17", {}),
            ("GET", "/orders/abc", {}),
            ("GET", "/orders/99", {}),
            ("DELETE", "/orders/17", {}),
            ("DELETE", "/orders/17", {"X-Role": "admin"}),
        ):
            response = await c.request(method, path, headers=headers)
            print(method, path, response.status_code, response.text)

    for span in exporter.get_finished_spans():
        attrs = span.attributes or {}
        print(
            f"{span.name:<22} status={attrs.get('http.response.status_code')} "
            f"error={attrs.get('error.type', '-')}"
        )
        for event in span.events:
            if event.name == "restmux.error.trace":
                ev = event.attributes or {}
                print(f"    #{ev['depth']} {ev['code.function']} {ev['observation']}")
    provider.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
