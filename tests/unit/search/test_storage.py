"""Unit tests for the inverted index and the served-index holder."""

import threading

import pytest

from substring_search.search.exceptions import StorageError
from substring_search.search.storage import IndexStore, InvertedIndex, doc_sort_key, empty_index


@pytest.fixture
def small_index():
    index = InvertedIndex(index_id="small", metadata={"analyzer": {"min_gram_size": 3, "max_gram_size": 40}})
    index.declare_field("title")
    index.declare_field("author")
    index.put("title", "hel", 1)
    index.put("title", "hel", 3)
    index.put("title", "pyt", 2)
    index.put("author", "ali", 1)
    index.register_document(4)
    return index


def test_put_and_lookup(small_index):
    assert small_index.lookup("title", "hel") == frozenset({1, 3})
    assert small_index.lookup("author", "ali") == frozenset({1})


def test_put_is_idempotent(small_index):
    small_index.put("title", "hel", 1)
    assert small_index.lookup("title", "hel") == frozenset({1, 3})


def test_fields_are_independent(small_index):
    assert small_index.lookup("author", "hel") == frozenset()


def test_lookup_misses_are_empty(small_index):
    assert small_index.lookup("title", "zzz") == frozenset()
    assert small_index.lookup("content", "hel") == frozenset()


def test_declared_field_without_terms(small_index):
    small_index.declare_field("content")
    assert small_index.has_field("content")
    assert not small_index.has_field("isbn")


def test_counts(small_index):
    assert small_index.doc_count == 4
    assert small_index.doc_ids == frozenset({1, 2, 3, 4})
    assert small_index.term_count == 3
    assert small_index.fields == ("title", "author")


@pytest.mark.parametrize("term", ["", None, 5])
def test_put_rejects_invalid_terms(small_index, term):
    with pytest.raises(StorageError, match="non-empty string"):
        small_index.put("title", term, 1)


def test_lookup_returns_snapshot_while_writable(small_index):
    posting = small_index.lookup("title", "hel")
    small_index.put("title", "hel", 9)
    assert posting == frozenset({1, 3})


def test_frozen_index_refuses_writes(small_index):
    small_index.freeze()
    assert small_index.frozen
    for write in (
        lambda: small_index.put("title", "new", 5),
        lambda: small_index.declare_field("content"),
        lambda: small_index.register_document(5),
    ):
        with pytest.raises(StorageError, match="frozen"):
            write()


def test_freeze_returns_self_and_is_repeatable(small_index):
    assert small_index.freeze() is small_index
    assert small_index.freeze() is small_index
    assert isinstance(small_index.lookup("title", "hel"), frozenset)


def test_dict_roundtrip_produces_frozen_equal_index(small_index):
    restored = InvertedIndex.from_dict(small_index.freeze().to_dict())

    assert restored.frozen
    assert restored.index_id == "small"
    assert restored.created_at == small_index.created_at
    assert restored.metadata == small_index.metadata
    assert restored.doc_ids == small_index.doc_ids
    assert restored.lookup("title", "hel") == frozenset({1, 3})
    assert restored.fields == small_index.fields


def test_to_dict_is_sorted_for_mixed_ids():
    index = InvertedIndex(index_id="mixed")
    index.put("title", "abc", "b")
    index.put("title", "abc", 10)
    index.put("title", "abc", "a")
    index.put("title", "abc", 2)

    assert index.to_dict()["p"]["title"]["abc"] == [2, 10, "a", "b"]
    assert sorted([10, "a", 2], key=doc_sort_key) == [2, 10, "a"]


@pytest.mark.parametrize(
    "payload",
    [
        {"i": "x", "p": {"title": ["not", "a", "mapping"]}},
        {"i": "x", "p": {"title": {"abc": 5}}},
        {"i": "x", "c": "not-a-date"},
    ],
)
def test_from_dict_rejects_malformed_payloads(payload):
    with pytest.raises(StorageError, match="Malformed"):
        InvertedIndex.from_dict(payload)


def test_empty_index_is_frozen_and_empty():
    index = empty_index()
    assert index.frozen
    assert index.index_id == "empty"
    assert index.doc_count == 0


class TestIndexStore:
    def test_starts_with_empty_index(self):
        store = IndexStore()
        assert store.current.doc_count == 0
        assert store.lookup("title", "hel") == frozenset()

    def test_rebuild_swaps_and_returns_previous(self, small_index):
        store = IndexStore()
        original = store.current

        previous = store.rebuild(small_index)

        assert previous is original
        assert store.current is small_index
        assert store.lookup("title", "hel") == frozenset({1, 3})

    def test_rebuild_freezes_new_index(self, small_index):
        store = IndexStore()
        store.rebuild(small_index)
        assert small_index.frozen

    def test_rebuild_rejects_non_index(self):
        with pytest.raises(StorageError, match="Expected an InvertedIndex"):
            IndexStore().rebuild({"title": {}})

    def test_readers_see_whole_indexes_during_swaps(self):
        def build(generation):
            index = InvertedIndex(index_id=f"gen-{generation}")
            for doc_id in range(50):
                index.put("title", "abc", (generation, doc_id))
            return index.freeze()

        generations = [build(g) for g in range(20)]
        store = IndexStore(generations[0])
        stop = threading.Event()
        mixed: list[frozenset] = []

        def reader():
            while not stop.is_set():
                posting = store.lookup("title", "abc")
                if len({generation for generation, _ in posting}) != 1:
                    mixed.append(posting)

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()
        for index in generations[1:]:
            store.rebuild(index)
        stop.set()
        for thread in threads:
            thread.join()

        assert mixed == []
        assert store.current.index_id == "gen-19"
