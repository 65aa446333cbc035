"""Query engine: one normalized term, looked up per field, OR-unioned."""

from __future__ import annotations

from collections.abc import Iterable
import logging

from substring_search.domain.model import DocId
from substring_search.observability.metrics import UNKNOWN_FIELD_LOOKUPS
from substring_search.search.analyzers import AnalysisMode, AnalyzerConfig
from substring_search.search.storage import IndexStore


logger = logging.getLogger(__name__)


class QueryEngine:
    """Resolves a keyword against the currently served index.

    A document matches when the lowercased keyword is a contiguous substring
    of the lowercased value of *any* requested field. Keywords longer than
    ``max_gram_size`` were never generated as terms and so never match.
    """

    def __init__(self, analyzers: AnalyzerConfig, store: IndexStore) -> None:
        self.analyzers = analyzers
        self.store = store

    def search(self, keyword: str, fields: Iterable[str]) -> frozenset[DocId]:
        if keyword is None:
            raise TypeError("keyword must be a string, not None")
        if fields is None:
            raise TypeError("fields must be a collection of field names, not None")
        if isinstance(fields, str):
            fields = (fields,)

        terms = self.analyzers.analyze(keyword, AnalysisMode.QUERY)
        if not terms:
            return frozenset()
        term = terms[0]

        # One reference for the whole query so a concurrent swap is never straddled.
        index = self.store.current
        matches: set[DocId] = set()
        for field_name in fields:
            if not index.has_field(field_name):
                logger.debug("Field '%s' is not indexed; contributing no matches", field_name)
                UNKNOWN_FIELD_LOOKUPS.inc()
                continue
            matches.update(index.lookup(field_name, term))
        return frozenset(matches)
