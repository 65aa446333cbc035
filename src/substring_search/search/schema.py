"""
Field-to-pipeline role table for search indexing.

Each indexed field names the role its values play at build time:

- SUBSTRING: n-gram expansion, so any contiguous run of characters matches
- EXACT: the whole lowercased value is the only term, so only a
  case-insensitive full-value query matches

Queries always go through the query pipeline regardless of role. The table
is plain data supplied at engine construction; nothing is resolved from
annotations or globals.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from substring_search.search.exceptions import InvalidConfigurationError


DEFAULT_FIELDS: tuple[str, ...] = ("title", "author", "content")


class FieldRole(str, Enum):
    """How a field's values are analyzed at build time."""

    SUBSTRING = "substring"
    EXACT = "exact"


@dataclass(frozen=True)
class IndexedField:
    """
    A field that participates in indexing.

    Args:
        name: Field name as it appears in document records (e.g., "title")
        role: Analyzer role used when building the index (default: SUBSTRING)
    """

    name: str
    role: FieldRole = FieldRole.SUBSTRING

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise InvalidConfigurationError(f"Field name must be a non-empty string, got {self.name!r}")
        try:
            object.__setattr__(self, "role", FieldRole(self.role))
        except ValueError:
            raise InvalidConfigurationError(f"Unknown role {self.role!r} for field '{self.name}'") from None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "role": self.role.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexedField:
        return cls(name=data["name"], role=FieldRole(data.get("role", FieldRole.SUBSTRING.value)))


@dataclass
class SearchSchema:
    """
    Ordered set of indexed fields.

    Example:
        schema = SearchSchema(
            fields=[
                IndexedField("title"),
                IndexedField("author"),
                IndexedField("isbn", role=FieldRole.EXACT),
            ]
        )
    """

    fields: list[IndexedField] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._field_map: dict[str, IndexedField] = {}
        for indexed_field in self.fields:
            if indexed_field.name in self._field_map:
                msg = f"Duplicate field '{indexed_field.name}' in schema"
                raise InvalidConfigurationError(msg)
            self._field_map[indexed_field.name] = indexed_field

    def __getitem__(self, name: str) -> IndexedField:
        return self._field_map[name]

    def __contains__(self, name: object) -> bool:
        return name in self._field_map

    def __iter__(self) -> Iterator[IndexedField]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def role_for(self, name: str) -> FieldRole:
        """Role for ``name``; fields outside the table default to SUBSTRING."""
        indexed_field = self._field_map.get(name)
        if indexed_field is None:
            return FieldRole.SUBSTRING
        return indexed_field.role

    def resolve(self, names: Iterable[str] | None) -> list[IndexedField]:
        """Fields to index for a rebuild; ``None`` means every schema field."""
        if names is None:
            return list(self.fields)
        if isinstance(names, str):
            raise InvalidConfigurationError("fields must be a collection of names, not a single string")
        resolved: list[IndexedField] = []
        seen: set[str] = set()
        for name in names:
            if name in seen:
                continue
            seen.add(name)
            resolved.append(self._field_map.get(name) or IndexedField(name))
        return resolved

    def to_dict(self) -> dict[str, Any]:
        return {"fields": [f.to_dict() for f in self.fields]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchSchema:
        return cls(fields=[IndexedField.from_dict(f) for f in data.get("fields", [])])

    @classmethod
    def from_names(cls, names: Iterable[str], *, exact: Iterable[str] = ()) -> SearchSchema:
        exact_names = set(exact)
        return cls(
            fields=[
                IndexedField(name, FieldRole.EXACT if name in exact_names else FieldRole.SUBSTRING) for name in names
            ]
        )


def create_default_schema() -> SearchSchema:
    """Schema for the title/author/content record shape."""
    return SearchSchema.from_names(DEFAULT_FIELDS)
