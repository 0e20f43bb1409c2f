"""Prometheus metrics for the search and indexing paths."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Generator


SEARCH_REQUESTS = Counter(
    "lemma_search_requests_total",
    "Search calls by outcome",
    ["outcome"],
)

SEARCH_LATENCY = Histogram(
    "lemma_search_latency_seconds",
    "Search latency",
    ["scope"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

PAGES_INDEXED = Counter(
    "lemma_search_pages_indexed_total",
    "Pages folded into the lemma index by outcome",
    ["outcome"],
)

LEMMA_LOCK_WAIT = Histogram(
    "lemma_search_site_lock_wait_seconds",
    "Time spent waiting for a per-site lemma lock",
    buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
)


@contextmanager
def track_latency(histogram: Histogram, **labels: str) -> Generator[None, None, None]:
    """Observe the duration of the block on ``histogram``."""
    start = time.perf_counter()
    try:
        yield
    finally:
        target = histogram.labels(**labels) if labels else histogram
        target.observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
