"""
Substring search package.

This package provides an n-gram backed substring matcher:
- ngrams: bounded n-gram expansion
- analyzers: whole-value tokenizer, lowercase and n-gram filters, pipelines
- schema: field to analyzer-role table
- storage: inverted index, atomic served-index holder, JSON snapshots
- indexer: full rebuilds into a fresh index
- query: keyword lookup across fields
- engine: the aggregate exposing rebuild_index and search
"""

from substring_search.search.analyzers import AnalysisMode, AnalyzerConfig
from substring_search.search.engine import SubstringSearchEngine
from substring_search.search.exceptions import (
    InvalidConfigurationError,
    RebuildCancelledError,
    RebuildError,
    StorageError,
    SubstringSearchError,
)
from substring_search.search.indexer import IndexBuildResult, Indexer
from substring_search.search.query import QueryEngine
from substring_search.search.schema import FieldRole, IndexedField, SearchSchema, create_default_schema
from substring_search.search.storage import IndexStore, InvertedIndex, JsonIndexStore


__all__ = [
    "AnalysisMode",
    "AnalyzerConfig",
    "FieldRole",
    "IndexBuildResult",
    "IndexStore",
    "IndexedField",
    "Indexer",
    "InvalidConfigurationError",
    "InvertedIndex",
    "JsonIndexStore",
    "QueryEngine",
    "RebuildCancelledError",
    "RebuildError",
    "SearchSchema",
    "StorageError",
    "SubstringSearchEngine",
    "SubstringSearchError",
    "create_default_schema",
]
