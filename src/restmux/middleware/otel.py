"""OpenTelemetry tracing and metrics middleware.

Creates HTTP server spans and metrics with semantic conventions for each
dispatched request, and records error chains raised by handlers.

Install with: uv add "restmux[otel]"
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

    from restmux.responses import Response
    from restmux.router import Handler, Request

try:
    from opentelemetry import metrics, trace
    from opentelemetry.propagate import extract
    from opentelemetry.trace import (
        SpanKind,
        StatusCode,
        TracerProvider,
    )
except ImportError as e:
    msg = (
        "OpenTelemetry middleware requires the 'otel' extra. "
        "Install with: uv add 'restmux[otel]'"
    )
    raise ImportError(msg) from e

from restmux.errors import ChainError, classify, status_of, traces

_DURATION_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.075,
    0.1,
    0.25,
    0.5,
    0.75,
    1.0,
    2.5,
    5.0,
    7.5,
    10.0,
)


def otel(
    *,
    tracer_provider: TracerProvider | None = None,
    meter_provider: metrics.MeterProvider | None = None,
) -> Callable[[Handler], Handler]:
    """Create OpenTelemetry tracing and metrics middleware.

    Creates a server span per request named ``METHOD /route``. When the
    handler raises a ``ChainError`` the span gets the classified status,
    ``error.type``, the error uuid and one ``restmux.error.trace`` event per
    node of the chain, newest first. The error is re-raised so the router
    still answers it.

    Extracts trace context from incoming request headers (e.g. ``traceparent``)
    for distributed tracing. Only depends on ``opentelemetry-api``; users bring
    their own SDK and exporters.

    Metrics emitted:
        - ``http.server.request.duration`` (histogram, seconds)
        - ``http.server.active_requests`` (up-down counter)

    Args:
        tracer_provider: Optional TracerProvider. If None, uses the global provider.
        meter_provider: Optional MeterProvider. If None, uses the global provider.

    Returns:
        Middleware function that wraps handlers with tracing and metrics.

    Example:
        router.use(otel())
    """
    tracer = trace.get_tracer(
        "restmux",
        tracer_provider=tracer_provider,
    )
    meter = metrics.get_meter(
        "restmux",
        meter_provider=meter_provider,
    )
    duration_histogram = meter.create_histogram(
        "http.server.request.duration",
        unit="s",
        description="Duration of HTTP server requests.",
        explicit_bucket_boundaries_advisory=_DURATION_BUCKETS,
    )
    active_requests_counter = meter.create_up_down_counter(
        "http.server.active_requests",
        unit="{request}",
        description="Number of active HTTP server requests.",
    )

    def middleware(handler: Handler) -> Handler:
        async def traced_handler(request: Request) -> Response:
            # Extract propagated context from request headers
            ctx = extract(dict(request.headers))

            method = request.method
            route = request.route
            span_name = f"{method} {route}" if route else method

            # Span attributes (stable HTTP semantic conventions)
            attributes: dict[str, str | int] = {
                "http.request.method": method,
                "url.path": request.path,
            }
            if route:
                attributes["http.route"] = route
            if request.query_string:
                attributes["url.query"] = request.query_string
            user_agent = request.headers.get("user-agent")
            if user_agent is not None:
                attributes["user_agent.original"] = user_agent
            # below isn't part of semantic conventions but having path params is useful
            for key, value in request.variables.items():
                attributes[f"http.route.param.{key}"] = value

            active_attrs: dict[str, str | int] = {"http.request.method": method}
            if route:
                active_attrs["http.route"] = route

            active_requests_counter.add(1, active_attrs)
            start = time.perf_counter()

            with tracer.start_as_current_span(
                span_name,
                context=ctx,
                kind=SpanKind.SERVER,
                attributes=attributes,
                record_exception=True,
                set_status_on_exception=False,
            ) as span:
                status: int | None = None
                try:
                    response = await handler(request)
                    status = response.status
                    return response
                except ChainError as e:
                    status = status_of(e)
                    node = classify(e)
                    span.set_attribute(
                        "error.type", node.kind.name if node is not None else "unknown"
                    )
                    if e.uuid:
                        span.set_attribute("restmux.error.uuid", e.uuid)
                    for depth, t in enumerate(traces(e)):
                        span.add_event(
                            "restmux.error.trace",
                            {
                                "depth": depth,
                                "code.namespace": t.package,
                                "code.function": t.function,
                                "code.lineno": t.line,
                                "observation": t.observation,
                            },
                        )
                    raise
                except Exception:
                    status = 500
                    raise
                finally:
                    duration = time.perf_counter() - start
                    active_requests_counter.add(-1, active_attrs)
                    duration_attrs = dict(active_attrs)
                    if status is not None:
                        span.set_attribute("http.response.status_code", status)
                        duration_attrs["http.response.status_code"] = status
                        if status >= 500:
                            span.set_status(StatusCode.ERROR)
                    duration_histogram.record(duration, duration_attrs)

        return traced_handler

    return middleware
