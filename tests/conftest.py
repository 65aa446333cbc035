"""Shared test fixtures and configuration."""

import os

import pytest


# Complete test environment that overrides every setting read from SUBSTRING_SEARCH_*
TEST_ENV = {
    "SUBSTRING_SEARCH_MIN_GRAM_SIZE": "3",
    "SUBSTRING_SEARCH_MAX_GRAM_SIZE": "40",
    "SUBSTRING_SEARCH_INDEXED_FIELDS": "title,author,content",
    "SUBSTRING_SEARCH_EXACT_FIELDS": "",
    "SUBSTRING_SEARCH_REBUILD_WORKERS": "1",
    "SUBSTRING_SEARCH_MAX_SNAPSHOTS": "8",
    "SUBSTRING_SEARCH_LOG_LEVEL": "info",
    "SUBSTRING_SEARCH_LOG_JSON": "true",
}


# Set environment variables immediately when conftest.py is loaded
for key, value in TEST_ENV.items():
    os.environ[key] = value
os.environ.pop("SUBSTRING_SEARCH_INDEX_DIR", None)

from substring_search.domain.model import Document  # noqa: E402


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Pin test defaults and keep stray .env files out of Settings."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("SUBSTRING_SEARCH_INDEX_DIR", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def library_documents():
    """The three-record corpus used throughout the end-to-end scenarios."""
    return [
        Document(doc_id=1, fields={"title": "Hello World", "author": "Alice", "content": "Some content here"}),
        Document(doc_id=2, fields={"title": "Python Guide", "author": "Bob", "content": "Learn Python"}),
        Document(doc_id=3, fields={"title": "Hello Python", "author": "Alice Smith", "content": "World of code"}),
    ]
