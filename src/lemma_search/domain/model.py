"""Domain model - entities of the lemma index.

Following Cosmic Python principles:
- Domain model has NO dependencies on infrastructure
- Entities have identity (a store-assigned ``id``) and can change over time
- Uses Pydantic dataclasses for validation at construction

``Site`` owns its ``Page`` and ``Lemma`` records. ``IndexEntry`` is the
inverted-index edge between a page and a lemma; it is inserted once and never
mutated, so its ``rank`` is the occurrence count observed at indexing time.
"""

from datetime import datetime, timezone
from enum import StrEnum

from pydantic import Field
from pydantic.dataclasses import dataclass


class SiteStatus(StrEnum):
    """Indexing lifecycle of a site. Only INDEXED sites are searchable."""

    INDEXING = "INDEXING"
    INDEXED = "INDEXED"
    FAILED = "FAILED"


@dataclass
class Site:
    """Aggregate root: a crawl target and the scope of every lemma."""

    url: str = Field(min_length=1)
    name: str = ""
    status: SiteStatus = SiteStatus.INDEXING
    status_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_error: str | None = None
    id: int | None = None

    def __eq__(self, other: object) -> bool:
        """Sites are equal if they have the same URL (identity)."""
        if not isinstance(other, Site):
            return False
        return self.url == other.url

    def __hash__(self) -> int:
        return hash(self.url)

    def is_searchable(self) -> bool:
        return self.status == SiteStatus.INDEXED

    def mark(self, status: SiteStatus, error: str | None = None) -> None:
        """Move the site to ``status`` and stamp the transition time."""
        object.__setattr__(self, "status", status)
        object.__setattr__(self, "status_time", datetime.now(timezone.utc))
        object.__setattr__(self, "last_error", error)


@dataclass
class Page:
    """One fetched document of a site, as stored by the crawler."""

    site_id: int
    path: str = Field(min_length=1)
    code: int = 200
    content: str = ""
    id: int | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Page):
            return False
        if self.id is not None and other.id is not None:
            return self.id == other.id
        return (self.site_id, self.path) == (other.site_id, other.path)

    def __hash__(self) -> int:
        return hash((self.site_id, self.path))


@dataclass
class Lemma:
    """A normalized word root of one site.

    ``frequency`` counts pages, not occurrences: every page that contains the
    lemma at least once adds exactly one.
    """

    site_id: int
    lemma: str = Field(min_length=1)
    frequency: int = Field(default=0, ge=0)
    id: int | None = None

    def record_page(self) -> None:
        object.__setattr__(self, "frequency", self.frequency + 1)


@dataclass(frozen=True)
class IndexEntry:
    """Inverted-index edge ``(page, lemma, rank)``. Immutable once built."""

    page_id: int
    lemma_id: int
    rank: float = Field(ge=0)
    id: int | None = None


@dataclass(frozen=True)
class MatchedEntry:
    """An index row joined with the page and lemma text it points at.

    This is the shape the intersection engine hands to the ranker.
    """

    page: Page
    lemma: str
    rank: float
