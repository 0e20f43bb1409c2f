"""Read path: query lemmas -> matching pages -> ranked, paginated result items."""

from __future__ import annotations

from collections.abc import Callable
import logging

from lemma_search.adapters.repository import AbstractRepository
from lemma_search.config import Settings
from lemma_search.domain.model import MatchedEntry, Site, SiteStatus
from lemma_search.domain.search import SearchItem, SearchResponse
from lemma_search.exceptions import (
    EmptyQueryError,
    NoResultsError,
    SearchRejectedError,
    SiteIndexingInProgressError,
    SiteNotIndexedError,
)
from lemma_search.observability.metrics import SEARCH_LATENCY, SEARCH_REQUESTS, track_latency
from lemma_search.observability.tracing import create_span
from lemma_search.search.analyzers import MorphologyAnalyzer, SnowballLemmatizer
from lemma_search.search.html import extract_text
from lemma_search.search.intersection import intersect_all_sites, intersect_site
from lemma_search.search.pagination import paginate
from lemma_search.search.ranking import RelevancePage, rank_pages
from lemma_search.search.snippet import build_snippet, truncate_title
from lemma_search.service_layer.unit_of_work import AbstractUnitOfWork


logger = logging.getLogger(__name__)


class SearchService:
    """Conjunctive lemma search over one site or every known site."""

    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        *,
        analyzer: MorphologyAnalyzer | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.uow_factory = uow_factory
        self.analyzer = analyzer or SnowballLemmatizer()
        self.settings = settings or Settings()

    def query_lemmas(self, query: str) -> list[str]:
        """Distinct lemmas of ``query`` in first-occurrence order."""
        return list(self.analyzer.lemmatize(query))

    def search(
        self,
        query: str | None,
        site_url: str | None = None,
        offset: int | None = None,
        limit: int | None = None,
    ) -> SearchResponse:
        """Run a search and return one page of ranked results.

        Raises:
            EmptyQueryError: ``query`` is missing or blank.
            SiteIndexingInProgressError: a site the query touches is being indexed.
            SiteNotIndexedError: the named site is unknown or not indexed.
            NoResultsError: no page contains every query lemma.
        """
        if query is None or not query.strip():
            raise EmptyQueryError()

        lemmas = self.query_lemmas(query)
        scope = "all" if site_url is None else "site"
        with (
            create_span("search.query", attributes={"search.scope": scope, "search.lemmas": len(lemmas)}) as span,
            track_latency(SEARCH_LATENCY, scope=scope),
            self.uow_factory() as uow,
        ):
            if site_url is None:
                sites = self._all_sites(uow.repo)
            else:
                sites = [self._named_site(uow.repo, site_url)]

            if not lemmas:
                logger.debug("Query %r has no indexable words", query)
                raise NoResultsError()

            matched = self._match(uow.repo, lemmas, sites)
            if not matched:
                raise NoResultsError()

            ranked = rank_pages(matched)
            window = paginate(
                ranked,
                self.settings.default_offset if offset is None else offset,
                self.settings.clamp_limit(limit),
            )
            sites_by_id = {site.id: site for site in sites}
            items = [self._to_item(item, sites_by_id[item.page.site_id]) for item in window.items]
            span.set_attribute("search.matched_pages", window.total)

        logger.info(
            "Search %r matched %d pages, returning %d from offset %d",
            query,
            window.total,
            len(items),
            window.offset,
        )
        return SearchResponse(count=window.total, data=items)

    def respond(
        self,
        query: str | None,
        site_url: str | None = None,
        offset: int | None = None,
        limit: int | None = None,
    ) -> SearchResponse:
        """Like ``search`` but reports rejections as message-only responses."""
        try:
            response = self.search(query, site_url=site_url, offset=offset, limit=limit)
        except SearchRejectedError as exc:
            SEARCH_REQUESTS.labels(outcome=type(exc).__name__).inc()
            logger.info("Search rejected: %s", exc.message)
            return SearchResponse.rejected(exc.message)
        SEARCH_REQUESTS.labels(outcome="ok").inc()
        return response

    def _all_sites(self, repo: AbstractRepository) -> list[Site]:
        sites = repo.list_sites()
        busy = [site.url for site in sites if site.status == SiteStatus.INDEXING]
        if busy:
            logger.info("Rejecting search, still indexing: %s", ", ".join(busy))
            raise SiteIndexingInProgressError()
        return sites

    def _named_site(self, repo: AbstractRepository, site_url: str) -> Site:
        site = repo.get_site_by_url(site_url)
        if site is None and site_url.endswith("/"):
            site = repo.get_site_by_url(site_url.rstrip("/"))
        elif site is None:
            site = repo.get_site_by_url(site_url + "/")
        if site is None:
            raise SiteNotIndexedError()
        if site.status == SiteStatus.INDEXING:
            raise SiteIndexingInProgressError()
        if not site.is_searchable():
            raise SiteNotIndexedError()
        return site

    def _match(self, repo: AbstractRepository, lemmas: list[str], sites: list[Site]) -> list[MatchedEntry]:
        rarest_first = self.settings.sort_lemmas_by_frequency
        if len(sites) == 1:
            return intersect_site(repo, lemmas, sites[0], rarest_first=rarest_first)
        return intersect_all_sites(repo, lemmas, sites, rarest_first=rarest_first)

    def _to_item(self, ranked: RelevancePage, site: Site) -> SearchItem:
        page = ranked.page
        extracted = extract_text(page.content)
        snippet = build_snippet(
            extracted.joined(),
            list(ranked.rank_words),
            self.analyzer,
            max_chars=self.settings.snippet_max_chars,
            surrounding_context=self.settings.snippet_context,
            style=self.settings.snippet_style,
        )
        return SearchItem(
            site=site.url,
            site_name=site.name,
            uri=page.path,
            title=truncate_title(extracted.title, self.settings.title_max_length),
            snippet=snippet,
            relevance=ranked.relevance,
        )
