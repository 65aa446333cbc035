"""Substring search engine - deep module over analyzers, indexer and store.

One owned aggregate holds the served index plus both analyzer pipelines and
hands them to the indexer and the query engine. Callers see two operations:
``rebuild_index`` and ``search``.
"""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
import logging
import threading
from typing import TYPE_CHECKING, Any

from substring_search.domain.model import DocId, Document
from substring_search.observability.metrics import (
    INDEX_DOC_COUNT,
    INDEX_TERM_COUNT,
    REBUILD_COUNT,
    REBUILD_LATENCY,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
    track_latency,
)
from substring_search.observability.context import bound_fields
from substring_search.observability.tracing import create_span
from substring_search.search.analyzers import AnalyzerConfig
from substring_search.search.exceptions import RebuildCancelledError, RebuildError, StorageError
from substring_search.search.indexer import IndexBuildResult, Indexer
from substring_search.search.query import QueryEngine
from substring_search.search.schema import SearchSchema, create_default_schema
from substring_search.search.storage import IndexStore, InvertedIndex, JsonIndexStore, doc_sort_key


if TYPE_CHECKING:
    from substring_search.config import Settings


logger = logging.getLogger(__name__)


class SubstringSearchEngine:
    """Case-insensitive substring search over a fully rebuilt n-gram index.

    Rebuilds are serialized and all-or-nothing: the previous index serves
    queries until the new one is complete (and persisted, when a snapshot
    store is configured), then a single reference swap publishes it.
    """

    def __init__(
        self,
        analyzers: AnalyzerConfig | None = None,
        schema: SearchSchema | None = None,
        *,
        snapshot_store: JsonIndexStore | None = None,
        max_workers: int = 1,
    ) -> None:
        self.analyzers = analyzers if analyzers is not None else AnalyzerConfig()
        self.schema = schema if schema is not None else create_default_schema()
        self.snapshot_store = snapshot_store
        self.store = IndexStore()
        self.indexer = Indexer(self.analyzers, self.schema, max_workers=max_workers)
        self.query_engine = QueryEngine(self.analyzers, self.store)
        self._rebuild_lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> SubstringSearchEngine:
        from substring_search.config import Settings

        settings = settings if settings is not None else Settings()
        snapshot_store = None
        if settings.index_dir is not None:
            snapshot_store = JsonIndexStore(settings.index_dir, max_snapshots=settings.max_snapshots)
        return cls(
            settings.analyzer_config(),
            settings.build_schema(),
            snapshot_store=snapshot_store,
            max_workers=settings.rebuild_workers,
        )

    def __enter__(self) -> SubstringSearchEngine:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def current_index(self) -> InvertedIndex:
        return self.store.current

    def rebuild_index(
        self,
        documents: Iterable[Document],
        fields: Iterable[str] | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> IndexBuildResult:
        """Rebuild the whole index and publish it. Blocks until done.

        Raises:
            RebuildError: the previous index stays served.
        """

        with (
            self._rebuild_lock,
            bound_fields(operation="rebuild"),
            create_span("substring_search.rebuild") as span,
            track_latency(REBUILD_LATENCY),
        ):
            previous_id = self.store.current.index_id
            try:
                result = self.indexer.rebuild_all(documents, fields, cancel_event=cancel_event)
                self._persist(result.index)
            except RebuildCancelledError:
                REBUILD_COUNT.labels(status="cancelled").inc()
                logger.info("Rebuild cancelled; still serving index %s", previous_id[:12])
                raise
            except RebuildError:
                REBUILD_COUNT.labels(status="failed").inc()
                logger.warning("Rebuild failed; still serving index %s", previous_id[:12])
                raise

            self.store.rebuild(result.index)
            REBUILD_COUNT.labels(status="success").inc()
            self._update_gauges(result.index)
            span.set_attribute("substring_search.index_id", result.index_id)
            span.set_attribute("substring_search.documents_indexed", result.documents_indexed)
            span.set_attribute("substring_search.fields_skipped", result.fields_skipped)
            return result

    def rebuild_index_async(
        self,
        documents: Iterable[Document],
        fields: Iterable[str] | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> Future[IndexBuildResult]:
        """Non-blocking variant of :meth:`rebuild_index`; rebuilds still run one at a time."""
        documents = list(documents)
        fields = list(fields) if fields is not None else None
        return self._get_executor().submit(self.rebuild_index, documents, fields, cancel_event=cancel_event)

    def search(self, keyword: str, fields: Iterable[str]) -> list[DocId]:
        """Ids of documents whose requested fields contain ``keyword``.

        Matching is case-insensitive and OR-ed across ``fields``. The order is
        deterministic but carries no relevance meaning.
        """

        with bound_fields(operation="search"), create_span("substring_search.search"), track_latency(SEARCH_LATENCY):
            matches = self.query_engine.search(keyword, fields)
        SEARCH_REQUESTS.labels(outcome="hit" if matches else "miss").inc()
        return sorted(matches, key=doc_sort_key)

    def restore(self) -> bool:
        """Serve the latest persisted snapshot if it was built with the current window."""
        if self.snapshot_store is None:
            return False
        snapshot = self.snapshot_store.latest()
        if snapshot is None:
            return False
        if snapshot.metadata.get("analyzer") != self.analyzers.to_dict():
            logger.warning(
                "Ignoring snapshot %s built with %s; current analyzer is %s",
                snapshot.index_id[:12],
                snapshot.metadata.get("analyzer"),
                self.analyzers.to_dict(),
            )
            return False
        with self._rebuild_lock:
            self.store.rebuild(snapshot)
        self._update_gauges(snapshot)
        logger.info("Restored index %s with %d documents", snapshot.index_id[:12], snapshot.doc_count)
        return True

    def stats(self) -> dict[str, Any]:
        index = self.store.current
        return {
            "index_id": index.index_id,
            "documents": index.doc_count,
            "terms": index.term_count,
            "fields": list(index.fields),
            "min_gram_size": self.analyzers.min_gram_size,
            "max_gram_size": self.analyzers.max_gram_size,
        }

    def close(self) -> None:
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="substring-rebuild")
            return self._executor

    def _persist(self, index: InvertedIndex) -> None:
        if self.snapshot_store is None:
            return
        try:
            path = self.snapshot_store.save(index)
        except (OSError, StorageError) as exc:
            raise RebuildError(f"Failed to persist index {index.index_id[:12]}: {exc}") from exc
        logger.debug("Persisted index %s to %s", index.index_id[:12], path)

    @staticmethod
    def _update_gauges(index: InvertedIndex) -> None:
        INDEX_DOC_COUNT.set(index.doc_count)
        INDEX_TERM_COUNT.set(index.term_count)
