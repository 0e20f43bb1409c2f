"""Unit tests for the lemma indexer and the per-site indexing driver."""

from __future__ import annotations

from functools import partial

from prometheus_client import REGISTRY
import pytest

from lemma_search.adapters.sqlite_repository import SqliteRepository
from lemma_search.domain.model import Page, Site, SiteStatus
from lemma_search.exceptions import IndexingError
from lemma_search.search.analyzers import SnowballLemmatizer
from lemma_search.service_layer.indexing_service import LemmaIndexer, index_site, set_site_status
from lemma_search.service_layer.site_locks import SiteLockRegistry
from lemma_search.service_layer.unit_of_work import SqliteUnitOfWork
from tests.fixtures.pages import PETS_CORPUS, make_html


class _ExplodingAnalyzer(SnowballLemmatizer):
    """Fails on any text containing the word "взрыв"."""

    def __init__(self):
        super().__init__(apply_stemming=False)

    def lemmatize(self, text):
        if "взрыв" in text:
            raise ValueError("analyzer failure")
        return super().lemmatize(text)


@pytest.fixture(params=["fake", "sqlite"])
def backend(request, fake_uow, sqlite_database):
    """``(uow_factory, repo_reader)`` for each storage backend."""
    if request.param == "fake":
        return (lambda: fake_uow), (lambda: fake_uow.repo)
    return partial(SqliteUnitOfWork, sqlite_database), (lambda: SqliteRepository(sqlite_database.connection()))


def _add_site(uow_factory, url="https://pets.example", pages=PETS_CORPUS):
    with uow_factory() as uow:
        site = uow.repo.add_site(Site(url=url, name="Pets"))
        stored = [
            uow.repo.add_page(Page(site_id=site.id, path=path, content=make_html(title, body)))
            for path, (title, body) in pages.items()
        ]
        uow.commit()
    return site, stored


def _rows_for(repo, site, text):
    lemma = repo.get_lemma(site.id, text)
    return lemma, repo.entries_for_lemma(lemma.id) if lemma else []


class TestIndexPage:
    def test_first_occurrence_creates_lemma(self, backend, analyzer):
        uow_factory, reader = backend
        site, pages = _add_site(uow_factory)
        indexer = LemmaIndexer(uow_factory, analyzer=analyzer)

        indexer.index_page(site, pages[0])

        lemma, rows = _rows_for(reader(), site, "кот")
        assert lemma.frequency == 1
        assert [(row.page.path, row.rank) for row in rows] == [("/p1", 3)]

    def test_frequency_counts_pages_not_occurrences(self, backend, analyzer):
        uow_factory, reader = backend
        site, pages = _add_site(uow_factory)
        indexer = LemmaIndexer(uow_factory, analyzer=analyzer)

        for page in pages:
            indexer.index_page(site, page)

        repo = reader()
        assert repo.get_lemma(site.id, "кот").frequency == 2
        assert repo.get_lemma(site.id, "собака").frequency == 2
        assert repo.get_lemma(site.id, "питомцы").frequency == 1

    def test_returns_number_of_distinct_lemmas(self, fake_uow, analyzer):
        site, pages = _add_site(lambda: fake_uow)
        indexer = LemmaIndexer(lambda: fake_uow, analyzer=analyzer)

        # "Кошки кот кот кот спит на окне": "на" is a stopword
        assert indexer.index_page(site, pages[0]) == 4

    def test_title_is_indexed_with_body(self, fake_uow, analyzer):
        site, pages = _add_site(lambda: fake_uow)

        LemmaIndexer(lambda: fake_uow, analyzer=analyzer).index_page(site, pages[1])

        assert fake_uow.repo.get_lemma(site.id, "питомцы") is not None

    def test_each_pair_commits(self, fake_uow, analyzer):
        site, pages = _add_site(lambda: fake_uow)
        commits_before = fake_uow.commits

        lemma_count = LemmaIndexer(lambda: fake_uow, analyzer=analyzer).index_page(site, pages[2])

        assert fake_uow.commits - commits_before == lemma_count

    def test_unsaved_page_rejected(self, fake_uow, analyzer):
        site, _ = _add_site(lambda: fake_uow)

        with pytest.raises(ValueError, match="persisted"):
            LemmaIndexer(lambda: fake_uow, analyzer=analyzer).index_page(site, Page(site_id=site.id, path="/new"))

    def test_page_of_other_site_rejected(self, fake_uow, analyzer):
        site, pages = _add_site(lambda: fake_uow)
        other, _ = _add_site(lambda: fake_uow, url="https://other.example", pages={})

        with pytest.raises(ValueError, match="does not belong"):
            LemmaIndexer(lambda: fake_uow, analyzer=analyzer).index_page(other, pages[0])

    def test_success_is_counted(self, fake_uow, analyzer):
        site, pages = _add_site(lambda: fake_uow)
        before = REGISTRY.get_sample_value("lemma_search_pages_indexed_total", {"outcome": "success"}) or 0.0

        LemmaIndexer(lambda: fake_uow, analyzer=analyzer).index_page(site, pages[0])

        after = REGISTRY.get_sample_value("lemma_search_pages_indexed_total", {"outcome": "success"})
        assert after == before + 1


class TestConcurrentIndexing:
    @pytest.mark.parametrize("workers", [8])
    def test_concurrent_first_occurrences_are_all_counted(self, backend, analyzer, workers):
        uow_factory, reader = backend
        pages = {f"/page{number}": (f"Страница {number}", "кот гуляет сам по себе") for number in range(40)}
        site, stored = _add_site(uow_factory, pages=pages)
        indexer = LemmaIndexer(uow_factory, analyzer=analyzer, locks=SiteLockRegistry())

        indexed = index_site(indexer, site, stored, max_workers=workers)

        assert indexed == 40
        lemma, rows = _rows_for(reader(), site, "кот")
        assert lemma.frequency == 40
        assert len(rows) == 40
        assert {row.page.path for row in rows} == set(pages)

    def test_sites_are_indexed_independently(self, backend, analyzer):
        uow_factory, reader = backend
        pages = {f"/page{number}": ("", "кот") for number in range(10)}
        first, first_pages = _add_site(uow_factory, url="https://a.example", pages=pages)
        second, second_pages = _add_site(uow_factory, url="https://b.example", pages=pages)
        indexer = LemmaIndexer(uow_factory, analyzer=analyzer)

        index_site(indexer, first, first_pages, max_workers=4)
        index_site(indexer, second, second_pages, max_workers=4)

        repo = reader()
        assert repo.get_lemma(first.id, "кот").frequency == 10
        assert repo.get_lemma(second.id, "кот").frequency == 10

    def test_pages_are_traced_under_the_site_span(self, fake_uow, analyzer, span_exporter):
        site, pages = _add_site(lambda: fake_uow)

        index_site(LemmaIndexer(lambda: fake_uow, analyzer=analyzer), site, pages, max_workers=2)

        spans = span_exporter.get_finished_spans()
        [site_span] = [span for span in spans if span.name == "index.site"]
        page_spans = [span for span in spans if span.name == "index.page"]
        assert sorted(span.attributes["index.path"] for span in page_spans) == ["/p1", "/p2", "/p3"]
        assert {span.parent.span_id for span in page_spans} == {site_span.context.span_id}
        assert site_span.attributes["index.pages"] == 3


class TestIndexSite:
    def test_marks_site_indexed(self, backend, analyzer):
        uow_factory, reader = backend
        site, pages = _add_site(uow_factory)

        index_site(LemmaIndexer(uow_factory, analyzer=analyzer), site, pages, max_workers=2)

        stored = reader().get_site(site.id)
        assert stored.status == SiteStatus.INDEXED
        assert stored.last_error is None

    def test_failure_marks_site_failed_and_reraises(self, backend):
        uow_factory, reader = backend
        pages = dict(PETS_CORPUS)
        pages["/bad"] = ("Плохая", "взрыв")
        site, stored = _add_site(uow_factory, pages=pages)

        with pytest.raises(IndexingError) as excinfo:
            index_site(LemmaIndexer(uow_factory, analyzer=_ExplodingAnalyzer()), site, stored, max_workers=2)

        assert excinfo.value.path == "/bad"
        assert isinstance(excinfo.value.cause, ValueError)
        failed = reader().get_site(site.id)
        assert failed.status == SiteStatus.FAILED
        assert "/bad" in failed.last_error

    def test_set_site_status_persists(self, backend):
        uow_factory, reader = backend
        site, _ = _add_site(uow_factory, pages={})

        set_site_status(uow_factory, site, SiteStatus.INDEXED)

        assert reader().get_site(site.id).status == SiteStatus.INDEXED
