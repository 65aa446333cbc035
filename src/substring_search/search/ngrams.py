"""Bounded n-gram expansion used by the indexing pipeline.

Every contiguous substring whose length falls inside the configured window is
generated, so a query term matches a field exactly when it is one of these
substrings. ``max_len`` is inclusive; anything longer is never generated and
therefore can never match.
"""

from __future__ import annotations

from collections.abc import Iterator

from substring_search.search.exceptions import InvalidConfigurationError


DEFAULT_MIN_GRAM_SIZE = 3
DEFAULT_MAX_GRAM_SIZE = 40


def validate_window(min_len: int, max_len: int) -> None:
    """Raise ``InvalidConfigurationError`` unless ``0 < min_len <= max_len``."""

    if isinstance(min_len, bool) or not isinstance(min_len, int):
        raise InvalidConfigurationError(f"min_gram_size must be an integer, got {min_len!r}")
    if isinstance(max_len, bool) or not isinstance(max_len, int):
        raise InvalidConfigurationError(f"max_gram_size must be an integer, got {max_len!r}")
    if min_len <= 0 or max_len <= 0:
        raise InvalidConfigurationError(
            f"Gram sizes must be positive (min_gram_size={min_len}, max_gram_size={max_len})"
        )
    if min_len > max_len:
        raise InvalidConfigurationError(
            f"min_gram_size ({min_len}) cannot exceed max_gram_size ({max_len})"
        )


def iter_ngram_spans(length: int, min_len: int, max_len: int) -> Iterator[tuple[int, int]]:
    """Yield ``(start, end)`` offsets of every n-gram of a token of ``length``.

    Ordered by start offset, then by length. A token shorter than ``min_len``
    yields a single span covering the whole token.
    """

    if length <= 0:
        return
    if length < min_len:
        yield 0, length
        return
    for start in range(length):
        longest = min(max_len, length - start)
        for size in range(min_len, longest + 1):
            yield start, start + size


def iter_ngrams(token: str, min_len: int, max_len: int) -> Iterator[str]:
    """Yield substrings of ``token``; duplicates are not filtered here."""

    for start, end in iter_ngram_spans(len(token), min_len, max_len):
        yield token[start:end]


def expand(token: str, min_len: int = DEFAULT_MIN_GRAM_SIZE, max_len: int = DEFAULT_MAX_GRAM_SIZE) -> set[str]:
    """Return the deduplicated n-gram set for ``token``.

    Tokens shorter than ``min_len`` come back whole so that short field values
    stay searchable by exact value.
    """

    validate_window(min_len, max_len)
    return set(iter_ngrams(token, min_len, max_len))
