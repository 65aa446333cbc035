"""Domain model - records handed to the search core.

The record store owns documents; the core only ever keeps a copy of the
identifier and the field text while a rebuild runs. Uses Pydantic dataclasses
so malformed identifiers are rejected at construction.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import Field
from pydantic.dataclasses import dataclass


DocId = str | int


@dataclass(frozen=True)
class Document:
    """Value object: opaque identifier plus raw field values.

    Field values are kept as given. Missing, ``None`` or non-string values are
    skipped per field at indexing time instead of failing construction.
    """

    doc_id: DocId
    fields: dict[str, Any] = Field(default_factory=dict)

    def get_text(self, name: str) -> str | None:
        """Raw text for ``name``, or None when absent or not a string."""
        value = self.fields.get(name)
        if isinstance(value, str):
            return value
        return None

    @classmethod
    def from_record(cls, record: Mapping[str, Any], *, id_field: str = "id") -> "Document":
        """Build a document from a flat record; every other key becomes a field."""
        if id_field not in record or record[id_field] is None:
            raise ValueError(f"Record missing identifier field '{id_field}'")
        fields = {key: value for key, value in record.items() if key != id_field}
        return cls(doc_id=record[id_field], fields=fields)
