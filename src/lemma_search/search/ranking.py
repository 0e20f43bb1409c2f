"""Frequency-derived relevance ranking.

Relevance of a page is the sum of the ranks of every matched index row,
normalized by the best page of the same result set.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
import logging

from lemma_search.domain.model import MatchedEntry, Page


logger = logging.getLogger(__name__)


@dataclass
class RelevancePage:
    """Per-page accumulator; lives for the duration of one search call."""

    page: Page
    rank_words: dict[str, float] = field(default_factory=dict)
    relevance: float = 0.0

    def put_rank_word(self, lemma: str, rank: float) -> None:
        """Add ``rank`` to the contribution of ``lemma`` (repeats are summed)."""
        self.rank_words[lemma] = self.rank_words.get(lemma, 0.0) + rank

    @property
    def abs_relevance(self) -> float:
        return sum(self.rank_words.values())


def _page_key(page: Page) -> object:
    return page.id if page.id is not None else (page.site_id, page.path)


def rank_pages(entries: Iterable[MatchedEntry]) -> list[RelevancePage]:
    """Group matched rows by page and order pages by normalized relevance.

    Grouping happens in one pass through a dict keyed by page identity, so
    pages keep their first-seen order. When every absolute relevance is 0 the
    normalization is skipped and every page scores 0.0. The sort is stable and
    descending, so ties keep first-seen order.
    """
    grouped: dict[object, RelevancePage] = {}
    for entry in entries:
        key = _page_key(entry.page)
        relevance_page = grouped.get(key)
        if relevance_page is None:
            relevance_page = RelevancePage(page=entry.page)
            grouped[key] = relevance_page
        relevance_page.put_rank_word(entry.lemma, entry.rank)

    pages = list(grouped.values())
    if not pages:
        return pages

    max_relevance = max(page.abs_relevance for page in pages)
    if max_relevance <= 0:
        logger.debug("All %d matched pages have zero absolute relevance", len(pages))
        for page in pages:
            page.relevance = 0.0
    else:
        for page in pages:
            page.relevance = page.abs_relevance / max_relevance

    pages.sort(key=lambda page: page.relevance, reverse=True)
    return pages
