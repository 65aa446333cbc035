"""Domain objects exchanged with the record store."""

from substring_search.domain.model import DocId, Document


__all__ = ["DocId", "Document"]
