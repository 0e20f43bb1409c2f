"""Repository abstractions for sites, pages, lemmas and index rows.

Following Cosmic Python Chapter 2: Repository Pattern.
``FakeRepository`` keeps everything in memory for tests; it hands out copies
of stored lemmas so callers see the same read-modify-write hazards as with a
real database.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection, Iterable
import dataclasses
import itertools
import threading

from lemma_search.domain.model import IndexEntry, Lemma, MatchedEntry, Page, Site, SiteStatus


class AbstractRepository(ABC):
    """Storage operations needed by the indexer and the search engine."""

    # Sites
    @abstractmethod
    def add_site(self, site: Site) -> Site:
        raise NotImplementedError

    @abstractmethod
    def get_site(self, site_id: int) -> Site | None:
        raise NotImplementedError

    @abstractmethod
    def get_site_by_url(self, url: str) -> Site | None:
        raise NotImplementedError

    @abstractmethod
    def list_sites(self) -> list[Site]:
        raise NotImplementedError

    def list_sites_by_status(self, status: SiteStatus) -> list[Site]:
        return [site for site in self.list_sites() if site.status == status]

    @abstractmethod
    def update_site_status(self, site: Site) -> None:
        """Persist ``status``, ``status_time`` and ``last_error`` of ``site``."""
        raise NotImplementedError

    # Pages
    @abstractmethod
    def add_page(self, page: Page) -> Page:
        raise NotImplementedError

    # Lemmas
    @abstractmethod
    def get_lemma(self, site_id: int, text: str) -> Lemma | None:
        raise NotImplementedError

    @abstractmethod
    def find_lemmas(self, site_id: int, texts: Collection[str]) -> list[Lemma]:
        """Return the lemmas of ``site_id`` whose text is in ``texts``."""
        raise NotImplementedError

    @abstractmethod
    def save_lemma(self, lemma: Lemma) -> Lemma:
        """Insert ``lemma`` when it has no id yet, otherwise update its frequency."""
        raise NotImplementedError

    # Index rows
    @abstractmethod
    def add_index_entry(self, entry: IndexEntry) -> IndexEntry:
        raise NotImplementedError

    @abstractmethod
    def entries_for_lemma(self, lemma_id: int) -> list[MatchedEntry]:
        raise NotImplementedError

    @abstractmethod
    def page_ids_for_lemma(self, lemma_id: int) -> list[int]:
        raise NotImplementedError

    @abstractmethod
    def entries_for_lemmas_and_pages(
        self,
        lemma_ids: Collection[int],
        page_ids: Collection[int],
    ) -> list[MatchedEntry]:
        """Return every index row joining one of ``lemma_ids`` to one of ``page_ids``."""
        raise NotImplementedError


class FakeRepository(AbstractRepository):
    """In-memory repository for testing."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._sites: dict[int, Site] = {}
        self._pages: dict[int, Page] = {}
        self._lemmas: dict[int, Lemma] = {}
        self._lemma_ids: dict[tuple[int, str], int] = {}
        self._entries: list[IndexEntry] = []

    def add_site(self, site: Site) -> Site:
        with self._lock:
            if site.id is None:
                site.id = next(self._ids)
            self._sites[site.id] = site
        return site

    def get_site(self, site_id: int) -> Site | None:
        return self._sites.get(site_id)

    def get_site_by_url(self, url: str) -> Site | None:
        return next((site for site in self._sites.values() if site.url == url), None)

    def list_sites(self) -> list[Site]:
        return list(self._sites.values())

    def update_site_status(self, site: Site) -> None:
        stored = self._sites.get(site.id) if site.id is not None else None
        if stored is None:
            raise KeyError(f"Unknown site: {site.url}")
        if stored is not site:
            stored.mark(site.status, site.last_error)

    def add_page(self, page: Page) -> Page:
        with self._lock:
            if page.id is None:
                page.id = next(self._ids)
            self._pages[page.id] = page
        return page

    def get_lemma(self, site_id: int, text: str) -> Lemma | None:
        lemma_id = self._lemma_ids.get((site_id, text))
        if lemma_id is None:
            return None
        return dataclasses.replace(self._lemmas[lemma_id])

    def find_lemmas(self, site_id: int, texts: Collection[str]) -> list[Lemma]:
        found = (self.get_lemma(site_id, text) for text in dict.fromkeys(texts))
        return [lemma for lemma in found if lemma is not None]

    def save_lemma(self, lemma: Lemma) -> Lemma:
        with self._lock:
            if lemma.id is None:
                key = (lemma.site_id, lemma.lemma)
                if key in self._lemma_ids:
                    raise ValueError(f"Duplicate lemma {lemma.lemma!r} for site {lemma.site_id}")
                lemma.id = next(self._ids)
                self._lemma_ids[key] = lemma.id
            self._lemmas[lemma.id] = dataclasses.replace(lemma)
        return lemma

    def add_index_entry(self, entry: IndexEntry) -> IndexEntry:
        with self._lock:
            stored = dataclasses.replace(entry, id=next(self._ids))
            self._entries.append(stored)
        return stored

    def entries_for_lemma(self, lemma_id: int) -> list[MatchedEntry]:
        return self._matched(entry for entry in self._entries if entry.lemma_id == lemma_id)

    def page_ids_for_lemma(self, lemma_id: int) -> list[int]:
        return list(dict.fromkeys(entry.page_id for entry in self._entries if entry.lemma_id == lemma_id))

    def entries_for_lemmas_and_pages(
        self,
        lemma_ids: Collection[int],
        page_ids: Collection[int],
    ) -> list[MatchedEntry]:
        lemma_set = set(lemma_ids)
        page_set = set(page_ids)
        return self._matched(
            entry for entry in self._entries if entry.lemma_id in lemma_set and entry.page_id in page_set
        )

    def _matched(self, entries: Iterable[IndexEntry]) -> list[MatchedEntry]:
        return [
            MatchedEntry(
                page=self._pages[entry.page_id],
                lemma=self._lemmas[entry.lemma_id].lemma,
                rank=entry.rank,
            )
            for entry in entries
        ]
