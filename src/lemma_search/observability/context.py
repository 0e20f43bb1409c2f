"""Context propagation for log correlation across threads and requests."""

from __future__ import annotations

from contextvars import ContextVar
from uuid import uuid4


trace_context: ContextVar[dict | None] = ContextVar("trace_context", default=None)


def generate_trace_id() -> str:
    """Generate a 32-char hex trace ID."""
    return uuid4().hex


def generate_span_id() -> str:
    """Generate a 16-char hex span ID."""
    return uuid4().hex[:16]


def get_trace_context() -> dict:
    """Get current trace context, starting a new trace when none is set."""
    ctx = trace_context.get()
    if ctx is None or not ctx.get("trace_id"):
        ctx = {"trace_id": generate_trace_id()}
        trace_context.set(ctx)
    return ctx


def set_trace_context(trace_id: str, **extra: object) -> None:
    """Set trace context for the current context (request, worker task)."""
    trace_context.set({"trace_id": trace_id, **extra})


def update_trace_context(**values: object) -> None:
    """Add or replace keys (``span_id``, ``site``...) while preserving trace_id."""
    trace_context.set({**get_trace_context(), **values})
