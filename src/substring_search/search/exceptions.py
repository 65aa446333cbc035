"""Exception hierarchy for the substring search stack."""

from __future__ import annotations


class SubstringSearchError(Exception):
    """Base class for every error raised by the search core."""


class InvalidConfigurationError(SubstringSearchError, ValueError):
    """Raised when the n-gram window or field roles are unusable."""


class StorageError(SubstringSearchError, ValueError):
    """Raised when invalid index operations or snapshots are encountered."""


class RebuildError(SubstringSearchError, RuntimeError):
    """Raised when a full rebuild fails; the served index is left untouched."""


class RebuildCancelledError(RebuildError):
    """Raised when a rebuild observes its cancellation event."""
