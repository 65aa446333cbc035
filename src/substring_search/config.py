"""Centralized configuration for substring-search using Pydantic Settings."""

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from substring_search.search.analyzers import AnalyzerConfig
from substring_search.search.ngrams import DEFAULT_MAX_GRAM_SIZE, DEFAULT_MIN_GRAM_SIZE
from substring_search.search.schema import DEFAULT_FIELDS, SearchSchema


class Settings(BaseSettings):
    """Strictly typed configuration loaded from ``SUBSTRING_SEARCH_*`` environment variables.

    The record store and serving layers own their own configuration; this
    covers only what the search core consumes.
    """

    model_config = SettingsConfigDict(
        env_prefix="SUBSTRING_SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # N-gram window (both bounds inclusive)
    min_gram_size: int = Field(default=DEFAULT_MIN_GRAM_SIZE, ge=1, description="Shortest generated n-gram")
    max_gram_size: int = Field(default=DEFAULT_MAX_GRAM_SIZE, ge=1, description="Longest generated n-gram")

    # Field table
    indexed_fields: str = Field(
        default=",".join(DEFAULT_FIELDS), description="Comma-separated field names indexed on rebuild"
    )
    exact_fields: str = Field(
        default="", description="Comma-separated subset of indexed_fields matched by whole value only"
    )

    # Rebuild
    rebuild_workers: int = Field(default=1, ge=1, description="Threads used to analyze documents during rebuild")
    index_dir: Path | None = Field(default=None, description="Directory for persisted index snapshots")
    max_snapshots: int = Field(default=8, ge=1, description="Snapshots retained in index_dir")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    @model_validator(mode="after")
    def _check_gram_window(self) -> "Settings":
        if self.min_gram_size > self.max_gram_size:
            raise ValueError(
                f"SUBSTRING_SEARCH_MIN_GRAM_SIZE ({self.min_gram_size}) cannot exceed "
                f"SUBSTRING_SEARCH_MAX_GRAM_SIZE ({self.max_gram_size})"
            )
        unknown = set(self.get_exact_fields()) - set(self.get_indexed_fields())
        if unknown:
            raise ValueError(f"exact_fields not listed in indexed_fields: {', '.join(sorted(unknown))}")
        return self

    def get_indexed_fields(self) -> list[str]:
        return _split_csv(self.indexed_fields)

    def get_exact_fields(self) -> list[str]:
        return _split_csv(self.exact_fields)

    def analyzer_config(self) -> AnalyzerConfig:
        return AnalyzerConfig(min_gram_size=self.min_gram_size, max_gram_size=self.max_gram_size)

    def build_schema(self) -> SearchSchema:
        return SearchSchema.from_names(self.get_indexed_fields(), exact=self.get_exact_fields())


def _split_csv(value: str) -> list[str]:
    names: list[str] = []
    for part in value.split(","):
        name = part.strip()
        if name and name not in names:
            names.append(name)
    return names
