"""Write path: fold per-page lemma counts into the shared per-site lemma table.

Many pages of one site are indexed in parallel by the crawler's worker pool.
``Lemma.frequency`` is the only shared counter, so each read-modify-write of a
site's lemma runs under that site's lock; sites never wait on each other.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextvars import copy_context
import logging

from lemma_search.domain.model import IndexEntry, Lemma, Page, Site, SiteStatus
from lemma_search.exceptions import IndexingError
from lemma_search.observability.context import update_trace_context
from lemma_search.observability.metrics import PAGES_INDEXED
from lemma_search.observability.tracing import create_span
from lemma_search.search.analyzers import MorphologyAnalyzer, SnowballLemmatizer
from lemma_search.search.html import extract_text
from lemma_search.service_layer.site_locks import SiteLockRegistry
from lemma_search.service_layer.unit_of_work import AbstractUnitOfWork


logger = logging.getLogger(__name__)

UnitOfWorkFactory = Callable[[], AbstractUnitOfWork]


class LemmaIndexer:
    """Indexes single pages into the lemma table and the inverted index."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        analyzer: MorphologyAnalyzer | None = None,
        locks: SiteLockRegistry | None = None,
    ) -> None:
        self.uow_factory = uow_factory
        self.analyzer = analyzer or SnowballLemmatizer()
        self.locks = locks or SiteLockRegistry()

    def collect_lemmas(self, page: Page) -> dict[str, int]:
        """Lemma -> occurrence count for the title and body text of ``page``."""
        extracted = extract_text(page.content)
        return self.analyzer.lemmatize(extracted.joined())

    def index_page(self, site: Site, page: Page) -> int:
        """Index ``page`` once and return the number of distinct lemmas folded in.

        Calling this twice for one page inserts duplicate index rows and counts
        the page twice in every lemma frequency.
        """
        if site.id is None or page.id is None:
            raise ValueError("Site and page must be persisted before indexing")
        if page.site_id != site.id:
            raise ValueError(f"Page {page.path} does not belong to site {site.url}")

        try:
            with create_span("index.page", attributes={"index.site": site.url, "index.path": page.path}) as span:
                lemmas = self.collect_lemmas(page)
                for text, count in lemmas.items():
                    self._save_lemma_and_index(site, page, text, count)
                span.set_attribute("index.lemmas", len(lemmas))
        except Exception:
            PAGES_INDEXED.labels(outcome="error").inc()
            raise

        PAGES_INDEXED.labels(outcome="success").inc()
        logger.debug("Indexed %s%s: %d lemmas", site.url, page.path, len(lemmas))
        return len(lemmas)

    def _save_lemma_and_index(self, site: Site, page: Page, text: str, count: int) -> None:
        with self.locks.hold(site.id), self.uow_factory() as uow:
            lemma = uow.repo.get_lemma(site.id, text)
            if lemma is None:
                lemma = Lemma(site_id=site.id, lemma=text, frequency=1)
            else:
                lemma.record_page()
            lemma = uow.repo.save_lemma(lemma)
            uow.repo.add_index_entry(IndexEntry(page_id=page.id, lemma_id=lemma.id, rank=count))
            uow.commit()


def set_site_status(
    uow_factory: UnitOfWorkFactory,
    site: Site,
    status: SiteStatus,
    error: str | None = None,
) -> Site:
    """Move ``site`` to ``status`` and persist the transition."""
    site.mark(status, error)
    with uow_factory() as uow:
        uow.repo.update_site_status(site)
        uow.commit()
    logger.info("Site %s is now %s", site.url, status.value)
    return site


def index_site(
    indexer: LemmaIndexer,
    site: Site,
    pages: Iterable[Page],
    *,
    max_workers: int = 4,
) -> int:
    """Index ``pages`` of ``site`` on a worker pool and track the site status.

    The site is INDEXING while workers run, INDEXED when every page succeeded
    and FAILED otherwise; the first page failure is re-raised as
    ``IndexingError`` once the status is recorded.

    Returns:
        Number of pages indexed.
    """
    set_site_status(indexer.uow_factory, site, SiteStatus.INDEXING)

    indexed = 0
    failures: list[IndexingError] = []
    with (
        create_span("index.site", attributes={"index.site": site.url, "index.workers": max_workers}) as span,
        ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=f"index-site-{site.id}") as pool,
    ):
        update_trace_context(site=site.url)
        # Each task runs in its own copy of the trace context and current span
        futures = {pool.submit(copy_context().run, indexer.index_page, site, page): page for page in pages}
        for future in as_completed(futures):
            page = futures[future]
            try:
                future.result()
            except Exception as exc:
                logger.exception("Failed to index %s%s", site.url, page.path)
                failures.append(IndexingError(page.path, exc))
            else:
                indexed += 1
        span.set_attribute("index.pages", indexed)
        span.set_attribute("index.failures", len(failures))

    if failures:
        set_site_status(indexer.uow_factory, site, SiteStatus.FAILED, str(failures[0]))
        raise failures[0]

    set_site_status(indexer.uow_factory, site, SiteStatus.INDEXED)
    logger.info("Indexed %d pages of %s", indexed, site.url)
    return indexed
