"""OpenTelemetry spans for HTTP requests, searches and indexing runs."""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.trace import SpanKind, Status, StatusCode

from lemma_search.observability.context import (
    generate_span_id,
    get_trace_context,
    set_trace_context,
    trace_context,
    update_trace_context,
)


if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.trace import Span, Tracer
    from starlette.requests import Request
    from starlette.responses import Response

logger = logging.getLogger(__name__)

_tracer_holder: dict[str, Tracer | None] = {"tracer": None}


def init_tracing(service_name: str = "lemma-search") -> TracerProvider:
    """Install an SDK tracer provider; exporters are attached by the caller."""
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    trace.set_tracer_provider(provider)
    _tracer_holder["tracer"] = trace.get_tracer(__name__)
    logger.info("Tracing initialized for service: %s", service_name)
    return provider


def get_tracer() -> Tracer:
    """Get the configured tracer."""
    if _tracer_holder["tracer"] is None:
        init_tracing()
    return _tracer_holder["tracer"]  # type: ignore[return-value]


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Start a span as a child of the current one.

    The log trace context carries the span id while the span is open, and the
    span carries the log trace id as ``lemma_search.trace_id``.
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(name, kind=kind) as span:
        span.set_attribute("lemma_search.trace_id", get_trace_context()["trace_id"])
        for key, value in (attributes or {}).items():
            span.set_attribute(key, value)

        previous = trace_context.get()
        update_trace_context(span_id=format(span.get_span_context().span_id, "016x"))
        try:
            yield span
        except Exception as exc:
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            span.record_exception(exc)
            raise
        finally:
            trace_context.set(previous)


class TraceContextMiddleware:
    """ASGI middleware: adopt ``x-trace-id`` or start a fresh trace per request."""

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        trace_id = headers.get(b"x-trace-id", b"").decode() or None
        if not trace_id:
            trace_id = get_trace_context()["trace_id"]
        set_trace_context(trace_id, span_id=generate_span_id())

        await self.app(scope, receive, send)


async def trace_request(request: Request, call_next: Any) -> Response:
    """``BaseHTTPMiddleware`` dispatch wrapping each request in a server span."""
    attributes = {
        "http.method": request.method,
        "http.url": str(request.url),
        "http.route": request.url.path,
    }
    site = request.query_params.get("site")
    if site:
        attributes["search.site"] = site

    with create_span("http.request", kind=SpanKind.SERVER, attributes=attributes) as span:
        response: Response = await call_next(request)
        span.set_attribute("http.status_code", response.status_code)
        if response.status_code >= 400:
            span.set_status(Status(StatusCode.ERROR, f"HTTP {response.status_code}"))
        return response
