"""Domain layer - pure business logic with no infrastructure dependencies.

Following Cosmic Python Chapter 2 (Repository Pattern) and Chapter 7 (Aggregates),
this layer contains:
- Entities: Site (aggregate root), Page, Lemma, IndexEntry
- Value Objects: MatchedEntry, SearchItem, SearchResponse
"""

from lemma_search.domain.model import IndexEntry, Lemma, MatchedEntry, Page, Site, SiteStatus
from lemma_search.domain.search import SearchItem, SearchResponse


__all__ = [
    "IndexEntry",
    "Lemma",
    "MatchedEntry",
    "Page",
    "SearchItem",
    "SearchResponse",
    "Site",
    "SiteStatus",
]
