"""OpenTelemetry spans around index rebuilds and queries."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
import logging
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, Tracer

from substring_search.observability.context import bound_fields


logger = logging.getLogger(__name__)

_TRACER_NAME = "substring_search"

# Set by init_tracing/use_tracer; resolved lazily on first span.
_tracer_holder: dict[str, Tracer | None] = {"tracer": None}


def init_tracing(
    service_name: str = "substring-search",
    resource_attributes: Mapping[str, str] | None = None,
    *,
    span_processor: SpanProcessor | None = None,
) -> TracerProvider:
    """Reuse the host's SDK provider or install one, optionally adding a processor."""
    provider = trace.get_tracer_provider()
    if not isinstance(provider, TracerProvider):
        provider = TracerProvider(
            resource=Resource.create({"service.name": service_name, **dict(resource_attributes or {})})
        )
        trace.set_tracer_provider(provider)
        logger.debug("Installed tracer provider for %s", service_name)
    if span_processor is not None:
        provider.add_span_processor(span_processor)
    _tracer_holder["tracer"] = provider.get_tracer(_TRACER_NAME)
    return provider


def use_tracer(tracer: Tracer | None) -> None:
    """Send spans to ``tracer``; ``None`` reverts to the global provider."""
    _tracer_holder["tracer"] = tracer


def get_tracer() -> Tracer:
    tracer = _tracer_holder["tracer"]
    if tracer is None:
        init_tracing()
        tracer = _tracer_holder["tracer"]
    return tracer  # type: ignore[return-value]


@contextmanager
def create_span(
    name: str,
    *,
    attributes: Mapping[str, Any] | None = None,
    kind: SpanKind = SpanKind.INTERNAL,
) -> Iterator[Span]:
    """Open a span and bind its ids to log records until it ends.

    An exception escaping the block marks the span as failed and is re-raised.
    """
    with get_tracer().start_as_current_span(
        name,
        kind=kind,
        attributes=dict(attributes) if attributes else None,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        span_context = span.get_span_context()
        with bound_fields(
            trace_id=format(span_context.trace_id, "032x"),
            span_id=format(span_context.span_id, "016x"),
        ):
            try:
                yield span
            except Exception as exc:
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, f"{type(exc).__name__}: {exc}"))
                raise
