"""Log correlation fields for the rebuild or query currently running.

Each thread carries its own field dict. ``JsonFormatter`` stamps it onto
every record, so all lines written during one rebuild share a trace id and
an ``operation`` value.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
import secrets


_log_fields: ContextVar[dict[str, str] | None] = ContextVar("substring_search_log_fields", default=None)


def new_trace_id() -> str:
    return secrets.token_hex(16)


def new_span_id() -> str:
    return secrets.token_hex(8)


def current_log_fields() -> dict[str, str]:
    """Fields for the running operation, seeding fresh ids on first use."""
    fields = _log_fields.get()
    if not fields or "trace_id" not in fields:
        fields = {"trace_id": new_trace_id(), "span_id": new_span_id(), **(fields or {})}
        _log_fields.set(fields)
    return fields


@contextmanager
def bound_fields(**fields: object) -> Iterator[dict[str, str]]:
    """Add ``fields`` to every record logged inside the block, then restore the outer set."""
    merged = {**current_log_fields(), **{key: str(value) for key, value in fields.items()}}
    token = _log_fields.set(merged)
    try:
        yield merged
    finally:
        _log_fields.reset(token)
