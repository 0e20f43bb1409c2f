"""Observability module: structured logging, Prometheus metrics and OpenTelemetry spans."""

from lemma_search.observability.context import (
    get_trace_context,
    set_trace_context,
    trace_context,
    update_trace_context,
)
from lemma_search.observability.logging import JsonFormatter, configure_logging
from lemma_search.observability.metrics import (
    LEMMA_LOCK_WAIT,
    PAGES_INDEXED,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
    get_metrics,
    get_metrics_content_type,
    track_latency,
)
from lemma_search.observability.tracing import (
    TraceContextMiddleware,
    create_span,
    get_tracer,
    init_tracing,
    trace_request,
)


__all__ = [
    "LEMMA_LOCK_WAIT",
    "PAGES_INDEXED",
    "SEARCH_LATENCY",
    "SEARCH_REQUESTS",
    "JsonFormatter",
    "TraceContextMiddleware",
    "configure_logging",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_tracing",
    "set_trace_context",
    "trace_context",
    "trace_request",
    "track_latency",
    "update_trace_context",
]
