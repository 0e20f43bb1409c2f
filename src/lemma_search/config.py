"""Centralized configuration for lemma-search using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strictly typed configuration loaded from ``LEMMA_SEARCH_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LEMMA_SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Storage
    database_path: Path = Field(default=Path("data/lemma_search.db"), description="SQLite database file")

    # Pagination
    default_offset: int = Field(default=0, ge=0, description="Offset used when a request omits it")
    default_limit: int = Field(default=20, ge=1, description="Page size used when a request omits it")
    max_limit: int = Field(default=500, ge=1, description="Largest page size a request may ask for")

    # Result presentation
    title_max_length: int = Field(default=50, ge=1, description="Titles longer than this are cut with '...'")
    snippet_max_chars: int = Field(default=240, ge=40, description="Maximum snippet length before highlighting")
    snippet_context: int = Field(default=80, ge=0, description="Context kept around the matched words")
    snippet_style: Literal["html", "plain"] = Field(default="html", description="Highlight markup")

    # Matching
    analyzer: str = Field(default="default", description="Morphology analyzer profile")
    sort_lemmas_by_frequency: bool = Field(
        default=True,
        description="Intersect the rarest lemma first (optimization, results are identical)",
    )

    # Indexing
    index_workers: int = Field(default=4, ge=1, description="Worker threads per indexed site")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    # Server settings
    host: str = Field(default="127.0.0.1", description="HTTP host")
    port: int = Field(default=8080, ge=1, le=65535, description="HTTP port")

    @model_validator(mode="after")
    def _check_limits(self) -> "Settings":
        if self.default_limit > self.max_limit:
            raise ValueError(
                f"default_limit ({self.default_limit}) must not exceed max_limit ({self.max_limit})"
            )
        return self

    def clamp_limit(self, limit: int | None) -> int:
        """Resolve a requested page size against the defaults and the cap."""
        if limit is None:
            return self.default_limit
        return max(0, min(limit, self.max_limit))
