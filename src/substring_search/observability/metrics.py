"""Prometheus metrics for rebuild and query golden signals."""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
import time

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from prometheus_client.metrics import MetricWrapperBase


SEARCH_LATENCY = Histogram(
    "substring_search_query_latency_seconds",
    "Search query latency",
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25),
)

SEARCH_REQUESTS = Counter(
    "substring_search_queries_total",
    "Total search queries",
    ["outcome"],
)

UNKNOWN_FIELD_LOOKUPS = Counter(
    "substring_search_unknown_field_lookups_total",
    "Lookups against fields missing from the served index",
)

REBUILD_LATENCY = Histogram(
    "substring_search_rebuild_latency_seconds",
    "Full index rebuild latency",
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0),
)

REBUILD_COUNT = Counter(
    "substring_search_rebuilds_total",
    "Full index rebuilds by status",
    ["status"],
)

SKIPPED_FIELDS = Counter(
    "substring_search_skipped_field_values_total",
    "Field values skipped during rebuild because they were missing or not text",
)

INDEX_DOC_COUNT = Gauge(
    "substring_search_index_document_count",
    "Documents in the served index",
)

INDEX_TERM_COUNT = Gauge(
    "substring_search_index_term_count",
    "Distinct (field, term) keys in the served index",
)


@contextmanager
def track_latency(histogram: MetricWrapperBase, **labels: str) -> Generator[None, None, None]:
    """Context manager to track operation latency."""
    target = histogram.labels(**labels) if labels else histogram
    start = time.perf_counter()
    try:
        yield
    finally:
        target.observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
