"""Analyzer utilities for the substring search stack.

This module follows Whoosh's composable tokenizer/filter design. Two
pipelines are built from the same primitives:

* the indexing pipeline (whole value -> lowercase -> n-gram expansion)
* the query pipeline (whole value -> lowercase)

The asymmetry is what turns an exact term lookup into a substring match: a
query term hits a field exactly when it is one of the n-grams generated from
that field at build time.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Protocol

from substring_search.search.ngrams import (
    DEFAULT_MAX_GRAM_SIZE,
    DEFAULT_MIN_GRAM_SIZE,
    iter_ngram_spans,
    validate_window,
)
from substring_search.search.schema import FieldRole


@dataclass
class Token:
    """Text span flowing through a pipeline; offsets index the original value."""

    text: str
    position: int
    start_char: int
    end_char: int

    def copy_with(self, **updates: Any) -> Token:
        return replace(self, **updates)


class AnalysisMode(str, Enum):
    """Caller intent that selects a pipeline."""

    INDEXING = "indexing"
    QUERY = "query"


class Tokenizer(Protocol):
    """Splits a raw field value into tokens."""

    def __call__(self, text: str) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    """Transforms a token stream."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class WholeValueTokenizer:
    """Tokenizer that treats the entire input as a single token.

    No splitting on whitespace or punctuation and no trimming, so queries can
    cross word boundaries and trailing spaces stay significant.
    """

    def __call__(self, text: str) -> Iterator[Token]:
        if not text:
            return
        yield Token(text=text, position=0, start_char=0, end_char=len(text))


class LowercaseFilter:
    """Unicode lowercasing via ``str.lower``; no locale rules."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            lowered = token.text.lower()
            yield token if lowered == token.text else token.copy_with(text=lowered)


class NGramFilter:
    """Expands each token into its distinct n-grams.

    Tokens shorter than ``min_size`` pass through unchanged.
    """

    def __init__(self, min_size: int = DEFAULT_MIN_GRAM_SIZE, max_size: int = DEFAULT_MAX_GRAM_SIZE) -> None:
        validate_window(min_size, max_size)
        self.min_size = min_size
        self.max_size = max_size

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        seen: set[str] = set()
        for token in tokens:
            for start, end in iter_ngram_spans(len(token.text), self.min_size, self.max_size):
                gram = token.text[start:end]
                if gram in seen:
                    continue
                seen.add(gram)
                yield Token(
                    text=gram,
                    position=token.position,
                    start_char=token.start_char + start,
                    end_char=token.start_char + end,
                )


class AnalyzerPipeline:
    """Tokenizer followed by filters, applied in order to one field value."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer
        self.filters = list(filters or [])

    def __call__(self, text: str) -> list[Token]:
        stream: Iterable[Token] = self.tokenizer(text)
        for token_filter in self.filters:
            stream = token_filter(stream)
        tokens = list(stream)
        for idx, token in enumerate(tokens):
            token.position = idx
        return tokens

    def terms(self, text: str) -> list[str]:
        return [token.text for token in self(text)]


def build_indexing_pipeline(min_gram_size: int, max_gram_size: int) -> AnalyzerPipeline:
    return AnalyzerPipeline(WholeValueTokenizer(), [LowercaseFilter(), NGramFilter(min_gram_size, max_gram_size)])


def build_query_pipeline() -> AnalyzerPipeline:
    return AnalyzerPipeline(WholeValueTokenizer(), [LowercaseFilter()])


_ROLE_FACTORIES: dict[FieldRole, Callable[[int, int], AnalyzerPipeline]] = {
    FieldRole.SUBSTRING: build_indexing_pipeline,
    FieldRole.EXACT: lambda _min, _max: build_query_pipeline(),
}


@dataclass(frozen=True)
class AnalyzerConfig:
    """Immutable pair of indexing and query pipelines sharing one gram window.

    Raises:
        InvalidConfigurationError: when either size is not positive or
            ``min_gram_size > max_gram_size``.
    """

    min_gram_size: int = DEFAULT_MIN_GRAM_SIZE
    max_gram_size: int = DEFAULT_MAX_GRAM_SIZE
    indexing: AnalyzerPipeline = field(init=False, repr=False, compare=False)
    query: AnalyzerPipeline = field(init=False, repr=False, compare=False)
    _role_pipelines: dict[FieldRole, AnalyzerPipeline] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        validate_window(self.min_gram_size, self.max_gram_size)
        role_pipelines = {
            role: factory(self.min_gram_size, self.max_gram_size) for role, factory in _ROLE_FACTORIES.items()
        }
        object.__setattr__(self, "_role_pipelines", role_pipelines)
        object.__setattr__(self, "indexing", role_pipelines[FieldRole.SUBSTRING])
        object.__setattr__(self, "query", build_query_pipeline())

    def pipeline_for(self, mode: AnalysisMode) -> AnalyzerPipeline:
        if AnalysisMode(mode) is AnalysisMode.INDEXING:
            return self.indexing
        return self.query

    def pipeline_for_role(self, role: FieldRole) -> AnalyzerPipeline:
        """Indexing-side pipeline for a field role."""
        try:
            return self._role_pipelines[FieldRole(role)]
        except (KeyError, ValueError):
            msg = f"Unknown field role '{role}'. Available: {sorted(r.value for r in self._role_pipelines)}"
            raise ValueError(msg) from None

    def analyze(self, text: str, mode: AnalysisMode) -> list[str]:
        """Return the terms ``text`` produces under ``mode``.

        Empty text yields no terms. Query mode yields at most one term.
        """

        if not isinstance(text, str):
            raise TypeError(f"text must be a string, got {type(text).__name__}")
        return self.pipeline_for(mode).terms(text)

    def to_dict(self) -> dict[str, Any]:
        return {"min_gram_size": self.min_gram_size, "max_gram_size": self.max_gram_size}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalyzerConfig:
        return cls(
            min_gram_size=int(data.get("min_gram_size", DEFAULT_MIN_GRAM_SIZE)),
            max_gram_size=int(data.get("max_gram_size", DEFAULT_MAX_GRAM_SIZE)),
        )
