"""Full-rebuild indexer.

Every rebuild scans the complete document set into a brand-new
``InvertedIndex``; the served index is never written to. Documents may be
analyzed on worker threads, but only the calling thread writes postings, and
the result is frozen before it is handed back for publication.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
import hashlib
import logging
import threading
import time
from typing import Any

import orjson

from substring_search.domain.model import DocId, Document
from substring_search.observability.metrics import SKIPPED_FIELDS
from substring_search.search.analyzers import AnalyzerConfig
from substring_search.search.exceptions import RebuildCancelledError, RebuildError, StorageError
from substring_search.search.schema import IndexedField, SearchSchema, create_default_schema
from substring_search.search.storage import InvertedIndex


logger = logging.getLogger(__name__)

_INDEX_FORMAT_VERSION = "v1-ngram-postings"


def _encodes_as_utf8(text: str) -> bool:
    # Lone surrogates survive str operations but fail hashing and snapshot writes.
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


@dataclass(frozen=True)
class IndexBuildResult:
    """Outcome of a full rebuild."""

    index: InvertedIndex
    documents_indexed: int
    fields_skipped: int
    errors: tuple[str, ...] = ()
    duration_s: float = 0.0

    @property
    def index_id(self) -> str:
        return self.index.index_id


@dataclass
class _AnalyzedDocument:
    doc_id: DocId
    terms: dict[str, list[str]] = field(default_factory=dict)
    values: dict[str, str] = field(default_factory=dict)
    skipped: int = 0


class _IndexFingerprintBuilder:
    """Deterministically hash analyzer config, field roles and indexed values."""

    def __init__(self, config: AnalyzerConfig, fields: Sequence[IndexedField]) -> None:
        header = orjson.dumps(
            {
                "format": _INDEX_FORMAT_VERSION,
                "analyzer": config.to_dict(),
                "fields": [f.to_dict() for f in fields],
            },
            option=orjson.OPT_SORT_KEYS,
        )
        self._header_digest = hashlib.sha256(header).hexdigest()
        self._doc_digests: list[tuple[str, str]] = []

    def add_document(self, doc_id: DocId, values: Mapping[str, str]) -> None:
        serialized = orjson.dumps(dict(values), option=orjson.OPT_SORT_KEYS)
        key = f"{type(doc_id).__name__}:{doc_id}"
        self._doc_digests.append((key, hashlib.sha256(serialized).hexdigest()))

    def digest(self) -> str:
        root = hashlib.sha256()
        root.update(self._header_digest.encode("ascii"))
        for key, digest in sorted(self._doc_digests):
            root.update(key.encode("utf-8"))
            root.update(digest.encode("ascii"))
        return root.hexdigest()


class Indexer:
    """Runs the indexing pipeline over a document set to build a fresh index."""

    def __init__(
        self,
        analyzers: AnalyzerConfig,
        schema: SearchSchema | None = None,
        *,
        max_workers: int = 1,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.analyzers = analyzers
        self.schema = schema if schema is not None else create_default_schema()
        self.max_workers = max_workers

    def rebuild_all(
        self,
        documents: Iterable[Document],
        fields: Iterable[str] | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> IndexBuildResult:
        """Build a new frozen index from the complete document set.

        Args:
            documents: Every document that should be searchable afterwards.
            fields: Field names to index; ``None`` means every schema field.
            cancel_event: When set mid-build, the build stops with
                ``RebuildCancelledError``.

        Raises:
            RebuildError: on allocation or storage failure; nothing is published.
        """

        start = time.perf_counter()
        targets = self.schema.resolve(fields)
        index = InvertedIndex(
            metadata={
                "analyzer": self.analyzers.to_dict(),
                "fields": [f.to_dict() for f in targets],
            }
        )
        fingerprinter = _IndexFingerprintBuilder(self.analyzers, targets)
        documents_indexed = 0
        fields_skipped = 0
        errors: list[str] = []
        seen_ids: set[DocId] = set()

        try:
            for target in targets:
                index.declare_field(target.name)

            for analyzed in self._analyze_all(documents, targets, cancel_event):
                if isinstance(analyzed, str):
                    errors.append(analyzed)
                    continue
                if analyzed.doc_id in seen_ids:
                    message = f"Duplicate document id {analyzed.doc_id!r}; keeping the first occurrence"
                    logger.warning(message)
                    errors.append(message)
                    continue

                seen_ids.add(analyzed.doc_id)
                index.register_document(analyzed.doc_id)
                for field_name, terms in analyzed.terms.items():
                    for term in terms:
                        index.put(field_name, term, analyzed.doc_id)
                fingerprinter.add_document(analyzed.doc_id, analyzed.values)
                fields_skipped += analyzed.skipped
                documents_indexed += 1
        except RebuildError:
            raise
        except (MemoryError, StorageError) as exc:
            logger.error("Rebuild aborted after %d documents: %s", documents_indexed, exc)
            raise RebuildError(f"Rebuild aborted after {documents_indexed} documents: {exc}") from exc

        index.index_id = fingerprinter.digest()
        index.freeze()

        if fields_skipped:
            SKIPPED_FIELDS.inc(fields_skipped)

        duration = time.perf_counter() - start
        logger.info(
            "Built index %s: %d documents, %d terms, %d skipped field values in %.3fs",
            index.index_id[:12],
            documents_indexed,
            index.term_count,
            fields_skipped,
            duration,
        )
        return IndexBuildResult(
            index=index,
            documents_indexed=documents_indexed,
            fields_skipped=fields_skipped,
            errors=tuple(errors),
            duration_s=duration,
        )

    # --- internal helpers -------------------------------------------------

    def _analyze_all(
        self,
        documents: Iterable[Document],
        targets: Sequence[IndexedField],
        cancel_event: threading.Event | None,
    ) -> Iterator[_AnalyzedDocument | str]:
        if self.max_workers == 1:
            for document in documents:
                self._check_cancelled(cancel_event)
                yield self._analyze_document(document, targets)
            self._check_cancelled(cancel_event)
            return

        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="substring-index")
        try:
            futures = [executor.submit(self._analyze_document, document, targets) for document in documents]
            for future in futures:
                self._check_cancelled(cancel_event)
                yield future.result()
            self._check_cancelled(cancel_event)
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

    def _analyze_document(self, document: Any, targets: Sequence[IndexedField]) -> _AnalyzedDocument | str:
        if not isinstance(document, Document):
            message = f"Skipping non-document record of type {type(document).__name__}"
            logger.warning(message)
            return message

        analyzed = _AnalyzedDocument(doc_id=document.doc_id)
        for target in targets:
            text = document.get_text(target.name)
            if text is None:
                logger.debug("Document %r has no text for field '%s'", document.doc_id, target.name)
                analyzed.skipped += 1
                continue
            if not _encodes_as_utf8(text):
                logger.debug("Document %r has undecodable text for field '%s'", document.doc_id, target.name)
                analyzed.skipped += 1
                continue
            pipeline = self.analyzers.pipeline_for_role(target.role)
            analyzed.terms[target.name] = pipeline.terms(text)
            analyzed.values[target.name] = text
        return analyzed

    @staticmethod
    def _check_cancelled(cancel_event: threading.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise RebuildCancelledError("Rebuild cancelled before completion")
