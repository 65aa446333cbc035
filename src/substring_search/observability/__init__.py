"""Observability module: structured logging, OpenTelemetry tracing, Prometheus metrics."""

from substring_search.observability.context import bound_fields, current_log_fields
from substring_search.observability.logging import JsonFormatter, configure_logging
from substring_search.observability.metrics import (
    INDEX_DOC_COUNT,
    INDEX_TERM_COUNT,
    REBUILD_COUNT,
    REBUILD_LATENCY,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
    SKIPPED_FIELDS,
    UNKNOWN_FIELD_LOOKUPS,
    get_metrics,
    get_metrics_content_type,
    track_latency,
)
from substring_search.observability.tracing import create_span, get_tracer, init_tracing, use_tracer


__all__ = [
    "INDEX_DOC_COUNT",
    "INDEX_TERM_COUNT",
    "REBUILD_COUNT",
    "REBUILD_LATENCY",
    "SEARCH_LATENCY",
    "SEARCH_REQUESTS",
    "SKIPPED_FIELDS",
    "UNKNOWN_FIELD_LOOKUPS",
    "JsonFormatter",
    "bound_fields",
    "configure_logging",
    "create_span",
    "current_log_fields",
    "get_metrics",
    "get_metrics_content_type",
    "get_tracer",
    "init_tracing",
    "track_latency",
    "use_tracer",
]
