"""Postings storage for the substring search stack.

The module provides:

* ``InvertedIndex`` - postings keyed by (field, term). Writable while a
  rebuild fills it, then frozen and read-only for its whole served life.
* ``IndexStore`` - holds the currently served index and replaces it with a
  single reference assignment, so readers never see a half-built index.
* ``JsonIndexStore`` - persists frozen indexes as minified JSON snapshots with
  a manifest pointing at the latest one.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
import logging
from pathlib import Path
import threading
from typing import Any
from uuid import uuid4

import orjson

from substring_search.domain.model import DocId
from substring_search.search.exceptions import StorageError


logger = logging.getLogger(__name__)

_EMPTY_POSTING: frozenset = frozenset()


def doc_sort_key(doc_id: DocId) -> tuple[int, int, str]:
    """Stable ordering key for mixed identifiers: integers numerically, then the rest by text."""
    if isinstance(doc_id, int) and not isinstance(doc_id, bool):
        return (0, doc_id, "")
    return (1, 0, str(doc_id))


class InvertedIndex:
    """Mapping of (field, term) to the set of document ids containing it.

    Fields are independent: the same term in two fields has two postings.
    """

    def __init__(
        self,
        *,
        index_id: str | None = None,
        created_at: datetime | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        self.index_id = index_id or uuid4().hex
        self.created_at = created_at or datetime.now(timezone.utc)
        self.metadata: dict[str, Any] = dict(metadata or {})
        self._postings: dict[str, dict[str, set[DocId] | frozenset[DocId]]] = {}
        self._doc_ids: set[DocId] | frozenset[DocId] = set()
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(self._postings)

    @property
    def doc_ids(self) -> frozenset[DocId]:
        return frozenset(self._doc_ids)

    @property
    def doc_count(self) -> int:
        return len(self._doc_ids)

    @property
    def term_count(self) -> int:
        return sum(len(terms) for terms in self._postings.values())

    def has_field(self, field_name: str) -> bool:
        return field_name in self._postings

    def declare_field(self, field_name: str) -> None:
        """Register a field so lookups on it are answered even with no terms."""
        self._ensure_writable()
        self._postings.setdefault(field_name, {})

    def register_document(self, doc_id: DocId) -> None:
        self._ensure_writable()
        self._doc_ids.add(doc_id)

    def put(self, field_name: str, term: str, doc_id: DocId) -> None:
        """Add ``doc_id`` to the posting for (field, term). Idempotent."""
        self._ensure_writable()
        if not isinstance(term, str) or not term:
            raise StorageError(f"Term must be a non-empty string, got {term!r}")
        terms = self._postings.setdefault(field_name, {})
        posting = terms.get(term)
        if posting is None:
            terms[term] = {doc_id}
        else:
            posting.add(doc_id)
        self._doc_ids.add(doc_id)

    def lookup(self, field_name: str, term: str) -> frozenset[DocId]:
        """Posting for (field, term); empty when the term or field is unindexed."""
        terms = self._postings.get(field_name)
        if terms is None:
            return _EMPTY_POSTING
        posting = terms.get(term)
        if posting is None:
            return _EMPTY_POSTING
        if self._frozen:
            return posting  # already a frozenset
        return frozenset(posting)

    def freeze(self) -> InvertedIndex:
        """Convert postings to frozensets and refuse further writes."""
        if self._frozen:
            return self
        self._postings = {
            field_name: {term: frozenset(posting) for term, posting in terms.items()}
            for field_name, terms in self._postings.items()
        }
        self._doc_ids = frozenset(self._doc_ids)
        self._frozen = True
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize with short keys: i=id, c=created, m=metadata, d=docs, p=postings."""
        return {
            "i": self.index_id,
            "c": self.created_at.isoformat(),
            "m": self.metadata,
            "d": sorted(self._doc_ids, key=doc_sort_key),
            "p": {
                field_name: {term: sorted(posting, key=doc_sort_key) for term, posting in sorted(terms.items())}
                for field_name, terms in self._postings.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InvertedIndex:
        """Rebuild a frozen index from :meth:`to_dict` output."""
        try:
            created_raw = data.get("c")
            created = datetime.fromisoformat(created_raw) if isinstance(created_raw, str) else None
            index = cls(index_id=data.get("i"), created_at=created, metadata=data.get("m") or {})
            for field_name, terms in (data.get("p") or {}).items():
                index.declare_field(field_name)
                for term, doc_ids in terms.items():
                    for doc_id in doc_ids:
                        index.put(field_name, term, doc_id)
            for doc_id in data.get("d") or []:
                index.register_document(doc_id)
        except (AttributeError, TypeError, ValueError) as exc:
            raise StorageError(f"Malformed index snapshot: {exc}") from exc
        return index.freeze()

    def _ensure_writable(self) -> None:
        if self._frozen:
            raise StorageError(f"Index {self.index_id} is frozen and cannot be modified")


def empty_index() -> InvertedIndex:
    return InvertedIndex(index_id="empty").freeze()


class IndexStore:
    """Holds the currently served index.

    ``rebuild`` is the only mutation and is a single reference assignment.
    Readers grab ``current`` once per query and keep using that snapshot.
    """

    def __init__(self, initial: InvertedIndex | None = None) -> None:
        self._current = (initial or empty_index()).freeze()
        self._swap_lock = threading.Lock()

    @property
    def current(self) -> InvertedIndex:
        return self._current

    def lookup(self, field_name: str, term: str) -> frozenset[DocId]:
        return self._current.lookup(field_name, term)

    def rebuild(self, new_index: InvertedIndex) -> InvertedIndex:
        """Publish ``new_index`` and return the index it replaced."""
        if not isinstance(new_index, InvertedIndex):
            raise StorageError(f"Expected an InvertedIndex, got {type(new_index).__name__}")
        new_index.freeze()
        with self._swap_lock:
            previous = self._current
            self._current = new_index
        logger.debug("Swapped served index %s -> %s", previous.index_id, new_index.index_id)
        return previous


class JsonIndexStore:
    """Persist frozen indexes as minified JSON payloads with a lightweight manifest."""

    MANIFEST_FILENAME = "manifest.json"
    SNAPSHOT_SUFFIX = ".json"
    DEFAULT_MAX_SNAPSHOTS = 8

    def __init__(self, directory: str | Path, *, max_snapshots: int | None = None) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._manifest_path = self.directory / self.MANIFEST_FILENAME
        self.max_snapshots = max(1, max_snapshots) if max_snapshots else self.DEFAULT_MAX_SNAPSHOTS

    def save(self, index: InvertedIndex) -> Path:
        """Write the snapshot and point the manifest at it."""
        if not index.frozen:
            raise StorageError("Only frozen indexes can be persisted")

        manifest = self._load_manifest()
        snapshot_path = self._snapshot_path(index.index_id)
        if not snapshot_path.exists():
            self._atomic_write(snapshot_path, index.to_dict())

        entries = [entry for entry in manifest.get("snapshots", []) if entry.get("index_id") != index.index_id]
        entries.append({"index_id": index.index_id, "created_at": index.created_at.isoformat()})
        manifest["snapshots"] = entries
        manifest["latest_index_id"] = index.index_id
        self._prune_old_snapshots(manifest)
        manifest["updated_at"] = datetime.now(timezone.utc).isoformat()
        self._atomic_write(self._manifest_path, manifest)
        return snapshot_path

    def load(self, index_id: str) -> InvertedIndex | None:
        """Load a snapshot by id if it exists on disk."""
        snapshot_path = self._snapshot_path(index_id)
        if not snapshot_path.exists():
            return None
        return InvertedIndex.from_dict(self._read(snapshot_path))

    def latest(self) -> InvertedIndex | None:
        latest_id = self.latest_index_id()
        if not latest_id:
            return None
        return self.load(latest_id)

    def latest_index_id(self) -> str | None:
        latest_id = self._load_manifest().get("latest_index_id")
        if not latest_id:
            return None
        return str(latest_id)

    def list_snapshots(self) -> list[dict[str, Any]]:
        return list(self._load_manifest().get("snapshots", []))

    def _snapshot_path(self, index_id: str) -> Path:
        return self.directory / f"{index_id}{self.SNAPSHOT_SUFFIX}"

    def _load_manifest(self) -> dict[str, Any]:
        if not self._manifest_path.exists():
            return {"snapshots": []}
        return self._read(self._manifest_path)

    def _prune_old_snapshots(self, manifest: dict[str, Any]) -> None:
        snapshots: Sequence[dict[str, Any]] = manifest.get("snapshots", [])
        if len(snapshots) <= self.max_snapshots:
            return

        excess = snapshots[: -self.max_snapshots]
        manifest["snapshots"] = list(snapshots[-self.max_snapshots :])
        for entry in excess:
            path = self._snapshot_path(str(entry.get("index_id")))
            if not path.exists():
                continue
            try:
                path.unlink()
            except OSError:
                logger.warning("Failed to remove old snapshot %s", path)

    def _read(self, path: Path) -> dict[str, Any]:
        try:
            payload = orjson.loads(path.read_bytes())
        except orjson.JSONDecodeError as exc:
            raise StorageError(f"Corrupt JSON in {path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise StorageError(f"Expected a JSON object in {path}")
        return payload

    def _atomic_write(self, path: Path, payload: Any) -> None:
        try:
            serialized = orjson.dumps(payload)
        except orjson.JSONEncodeError as exc:
            raise StorageError(f"Cannot serialize {path.name}: {exc}") from exc
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            tmp_path.write_bytes(serialized)
            tmp_path.replace(path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
