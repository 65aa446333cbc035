"""Unit tests for the Document value object."""

from pydantic import ValidationError
import pytest

from substring_search.domain import Document


pytestmark = pytest.mark.unit


class TestDocument:
    """Test Document construction and field access."""

    def test_accepts_int_and_str_ids(self):
        assert Document(doc_id=5).doc_id == 5
        assert Document(doc_id="isbn-5").doc_id == "isbn-5"

    def test_rejects_unusable_ids(self):
        with pytest.raises(ValidationError):
            Document(doc_id=None)
        with pytest.raises(ValidationError):
            Document(doc_id=["a"])

    def test_fields_default_to_empty(self):
        assert Document(doc_id=1).fields == {}

    def test_get_text_returns_only_strings(self):
        doc = Document(doc_id=1, fields={"title": "Dune", "year": 1965, "author": None})

        assert doc.get_text("title") == "Dune"
        assert doc.get_text("year") is None
        assert doc.get_text("author") is None
        assert doc.get_text("missing") is None

    def test_get_text_keeps_raw_value(self):
        assert Document(doc_id=1, fields={"title": "  Spaced  "}).get_text("title") == "  Spaced  "

    def test_is_frozen(self):
        doc = Document(doc_id=1)
        with pytest.raises((AttributeError, TypeError, ValidationError)):
            doc.doc_id = 2


class TestDocumentFromRecord:
    """Test building documents from flat record mappings."""

    def test_splits_identifier_from_fields(self):
        doc = Document.from_record({"id": 3, "title": "Hello", "author": "Alice"})

        assert doc.doc_id == 3
        assert doc.fields == {"title": "Hello", "author": "Alice"}

    def test_custom_identifier_field(self):
        doc = Document.from_record({"isbn": "978-0", "title": "Dune"}, id_field="isbn")

        assert doc.doc_id == "978-0"
        assert "isbn" not in doc.fields

    @pytest.mark.parametrize("record", [{"title": "no id"}, {"id": None, "title": "null id"}])
    def test_missing_identifier_raises(self, record):
        with pytest.raises(ValueError, match="missing identifier field 'id'"):
            Document.from_record(record)
