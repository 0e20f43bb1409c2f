"""Wire the SQLite store, analyzer and services from ``Settings``."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from functools import partial
import logging

from lemma_search.adapters.sqlite_repository import SqliteDatabase
from lemma_search.config import Settings
from lemma_search.domain.model import Page, Site
from lemma_search.search.analyzers import MorphologyAnalyzer, get_analyzer
from lemma_search.service_layer.indexing_service import LemmaIndexer, UnitOfWorkFactory, index_site
from lemma_search.service_layer.search_service import SearchService
from lemma_search.service_layer.site_locks import SiteLockRegistry
from lemma_search.service_layer.unit_of_work import SqliteUnitOfWork


logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    database: SqliteDatabase
    uow_factory: UnitOfWorkFactory
    analyzer: MorphologyAnalyzer
    indexer: LemmaIndexer
    search: SearchService

    def index_site(self, site: Site, pages: Iterable[Page]) -> int:
        return index_site(self.indexer, site, pages, max_workers=self.settings.index_workers)

    def close(self) -> None:
        self.database.close_all()


def bootstrap(settings: Settings | None = None) -> Services:
    """Build one shared analyzer, lock registry and store for both paths."""
    settings = settings or Settings()
    database = SqliteDatabase(settings.database_path)
    uow_factory = partial(SqliteUnitOfWork, database)
    analyzer = get_analyzer(settings.analyzer)
    indexer = LemmaIndexer(uow_factory, analyzer=analyzer, locks=SiteLockRegistry())
    search = SearchService(uow_factory, analyzer=analyzer, settings=settings)
    logger.info("Lemma store at %s, analyzer %s", settings.database_path, settings.analyzer)
    return Services(
        settings=settings,
        database=database,
        uow_factory=uow_factory,
        analyzer=analyzer,
        indexer=indexer,
        search=search,
    )
