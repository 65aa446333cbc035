"""JSON log lines carrying the running operation's correlation fields."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
import logging
from pathlib import Path
import sys
from typing import Any, TextIO

import orjson

from substring_search.observability.context import current_log_fields


DEFAULT_REDACT_KEYS = frozenset({"password", "token", "api_key", "secret", "authorization"})

_PACKAGE_PREFIX = "substring_search."
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _json_fallback(value: Any) -> Any:
    """Serialize values orjson has no native encoding for."""
    if isinstance(value, (set, frozenset)):
        try:
            return sorted(value)
        except TypeError:
            return [str(item) for item in value]
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (Path, BaseException)):
        return str(value)
    return repr(value)


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Keys: timestamp, level, logger, component (the module path below the
    package), message, the correlation fields bound for the current
    operation, and any ``extra=`` values. Keys listed in ``redact_keys`` are
    masked; long strings are clipped.
    """

    def __init__(
        self,
        *,
        max_message_len: int = 2000,
        max_extra_len: int = 500,
        redact_keys: Iterable[str] = DEFAULT_REDACT_KEYS,
    ) -> None:
        super().__init__()
        self.max_message_len = max_message_len
        self.max_extra_len = max_extra_len
        self.redact_keys = frozenset(key.lower() for key in redact_keys)

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        if record.name.startswith(_PACKAGE_PREFIX):
            entry["component"] = record.name[len(_PACKAGE_PREFIX) :]
        entry["message"] = _clip(record.getMessage(), self.max_message_len)
        entry.update(current_log_fields())

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in vars(record).items():
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            entry[key] = self._scrub(key, value)

        return orjson.dumps(entry, default=_json_fallback).decode("utf-8")

    def _scrub(self, key: str, value: Any) -> Any:
        if key.lower() in self.redact_keys:
            return "[REDACTED]"
        if isinstance(value, str):
            return _clip(value, self.max_extra_len)
        return value


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    *,
    logger_levels: Mapping[str, str] | None = None,
    stream: TextIO | None = None,
) -> logging.Handler:
    """Replace the root handlers with a single stream handler.

    Logs go to stderr by default so command output on stdout stays parseable.

    Args:
        level: Root level name; unknown names fall back to INFO.
        json_output: Use ``JsonFormatter`` when True, a plain text line otherwise.
        logger_levels: Per-logger level overrides (logger name -> level name).
        stream: Destination stream.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s"))
    root.addHandler(handler)

    for name, name_level in (logger_levels or {}).items():
        logging.getLogger(name).setLevel(getattr(logging, name_level.upper(), logging.INFO))
    return handler
