"""Unit tests for keyword resolution against the served index."""

from prometheus_client import REGISTRY
import pytest

from substring_search.domain.model import Document
from substring_search.search.analyzers import AnalyzerConfig
from substring_search.search.indexer import Indexer
from substring_search.search.query import QueryEngine
from substring_search.search.storage import IndexStore


@pytest.fixture
def engine(library_documents):
    analyzers = AnalyzerConfig()
    store = IndexStore()
    store.rebuild(Indexer(analyzers).rebuild_all(library_documents).index)
    return QueryEngine(analyzers, store)


def _unknown_field_lookups() -> float:
    return REGISTRY.get_sample_value("substring_search_unknown_field_lookups_total") or 0.0


def test_search_is_case_insensitive(engine):
    assert engine.search("HELLO", ["title"]) == frozenset({1, 3})
    assert engine.search("hElLo", ["title"]) == frozenset({1, 3})


def test_search_unions_across_fields(engine):
    assert engine.search("python", ["title"]) == frozenset({2, 3})
    assert engine.search("python", ["content"]) == frozenset({2})
    assert engine.search("world", ["title", "content"]) == frozenset({1, 3})


def test_search_is_not_an_intersection(engine):
    assert engine.search("alice", ["author", "title"]) == frozenset({1, 3})


def test_search_matches_across_word_boundaries(engine):
    assert engine.search("lo wor", ["title"]) == frozenset({1})
    assert engine.search("hello world", ["title"]) == frozenset({1})


def test_non_contiguous_words_do_not_match(engine):
    assert engine.search("hello code", ["title", "content"]) == frozenset()


def test_empty_fields_return_empty_result(engine):
    assert engine.search("hello", []) == frozenset()


def test_empty_keyword_returns_empty_result(engine):
    assert engine.search("", ["title"]) == frozenset()


def test_keyword_shorter_than_min_gram_misses_longer_values(engine):
    assert engine.search("he", ["title"]) == frozenset()


def test_keyword_longer_than_max_gram_never_matches():
    analyzers = AnalyzerConfig(3, 5)
    store = IndexStore()
    store.rebuild(Indexer(analyzers).rebuild_all([Document(doc_id=1, fields={"title": "abcdefgh"})]).index)
    engine = QueryEngine(analyzers, store)

    assert engine.search("abcde", ["title"]) == frozenset({1})
    assert engine.search("abcdef", ["title"]) == frozenset()


def test_single_field_string_is_accepted(engine):
    assert engine.search("bob", "author") == frozenset({2})


def test_none_keyword_raises_type_error(engine):
    with pytest.raises(TypeError, match="keyword"):
        engine.search(None, ["title"])


def test_none_fields_raises_type_error(engine):
    with pytest.raises(TypeError, match="fields"):
        engine.search("hello", None)


def test_unknown_field_contributes_nothing_and_is_counted(engine, caplog):
    before = _unknown_field_lookups()

    with caplog.at_level("DEBUG", logger="substring_search.search.query"):
        result = engine.search("hello", ["title", "isbn"])

    assert result == frozenset({1, 3})
    assert _unknown_field_lookups() - before == 1
    assert "Field 'isbn' is not indexed" in caplog.text


def test_search_sees_swapped_index(engine):
    replacement = Indexer(engine.analyzers).rebuild_all([Document(doc_id=9, fields={"title": "Brand new"})]).index
    engine.store.rebuild(replacement)

    assert engine.search("hello", ["title"]) == frozenset()
    assert engine.search("new", ["title"]) == frozenset({9})
