"""Unit tests for the search service: rejections, ranking, pagination, items."""

from __future__ import annotations

from functools import partial

import pytest

from lemma_search.config import Settings
from lemma_search.domain.model import Page, Site, SiteStatus
from lemma_search.exceptions import (
    EmptyQueryError,
    NoResultsError,
    SiteIndexingInProgressError,
    SiteNotIndexedError,
)
from lemma_search.service_layer.indexing_service import LemmaIndexer, index_site, set_site_status
from lemma_search.service_layer.search_service import SearchService
from lemma_search.service_layer.unit_of_work import SqliteUnitOfWork
from tests.fixtures.pages import PETS_CORPUS, make_html


def _index_site(uow_factory, analyzer, url, pages, name="Pets"):
    with uow_factory() as uow:
        site = uow.repo.add_site(Site(url=url, name=name))
        stored = [
            uow.repo.add_page(Page(site_id=site.id, path=path, content=make_html(title, body)))
            for path, (title, body) in pages.items()
        ]
        uow.commit()
    index_site(LemmaIndexer(uow_factory, analyzer=analyzer), site, stored, max_workers=2)
    return site


@pytest.fixture
def uow_factory(fake_uow):
    return lambda: fake_uow


@pytest.fixture
def pets(uow_factory, analyzer):
    return _index_site(uow_factory, analyzer, "https://pets.example", PETS_CORPUS)


@pytest.fixture
def service(uow_factory, analyzer):
    return SearchService(uow_factory, analyzer=analyzer, settings=Settings())


class TestSearchResults:
    def test_pages_must_contain_every_query_lemma(self, service, pets):
        response = service.search("кот собака")

        assert response.result is True
        assert response.count == 1
        item = response.data[0]
        assert item.uri == "/p2"
        assert item.site == "https://pets.example"
        assert item.site_name == "Pets"
        assert item.title == "Питомцы"
        assert item.relevance == 1.0
        assert "<b>кот</b>" in item.snippet
        assert "<b>собака</b>" in item.snippet

    def test_results_ordered_by_relevance(self, service, pets):
        response = service.search("кот")

        assert [item.uri for item in response.data] == ["/p1", "/p2"]
        assert response.data[0].relevance == 1.0
        assert response.data[1].relevance == pytest.approx(1 / 3)

    def test_query_is_case_insensitive(self, service, pets):
        assert service.search("КОТ Собака").data[0].uri == "/p2"

    def test_long_title_is_truncated(self, uow_factory, analyzer, service):
        title = "Очень длинный заголовок страницы про кота и его друзей во дворе"
        _index_site(uow_factory, analyzer, "https://long.example", {"/long": (title, "кот")})

        item = service.search("кот", site_url="https://long.example").data[0]

        assert item.title == title[:50] + "..."

    def test_offset_and_limit_window(self, uow_factory, analyzer, service):
        pages = {f"/p{number}": ("", "кот " * (number + 1)) for number in range(18)}
        _index_site(uow_factory, analyzer, "https://many.example", pages)

        response = service.search("кот", site_url="https://many.example", offset=15, limit=20)

        assert response.count == 18
        assert [item.uri for item in response.data] == ["/p2", "/p1", "/p0"]

    def test_limit_is_capped(self, uow_factory, analyzer):
        pages = {f"/p{number}": ("", "кот") for number in range(10)}
        _index_site(uow_factory, analyzer, "https://many.example", pages)
        service = SearchService(uow_factory, analyzer=analyzer, settings=Settings(default_limit=3, max_limit=4))

        capped = service.search("кот", limit=100)
        assert len(capped.data) == 4
        assert capped.count == 10
        assert len(service.search("кот").data) == 3

    def test_offset_past_end_keeps_total(self, service, pets):
        response = service.search("кот", offset=10)

        assert response.count == 2
        assert response.data == []

    def test_all_sites_query_unions_sites(self, uow_factory, analyzer, service, pets):
        _index_site(uow_factory, analyzer, "https://other.example", {"/x": ("", "кот собака")}, name="Other")

        response = service.search("кот собака")

        assert {(item.site, item.uri) for item in response.data} == {
            ("https://pets.example", "/p2"),
            ("https://other.example", "/x"),
        }

    def test_site_url_trailing_slash_is_tolerated(self, service, pets):
        assert service.search("кот", site_url="https://pets.example/").count == 2

    def test_search_is_traced(self, service, pets, span_exporter):
        service.search("кот собака", site_url="https://pets.example")

        [span] = [span for span in span_exporter.get_finished_spans() if span.name == "search.query"]
        assert span.attributes["search.scope"] == "site"
        assert span.attributes["search.lemmas"] == 2
        assert span.attributes["search.matched_pages"] == 1


class TestRejections:
    @pytest.mark.parametrize("query", [None, "", "   "])
    def test_empty_query(self, service, pets, query):
        with pytest.raises(EmptyQueryError):
            service.search(query)

    def test_missing_lemma_means_no_results(self, service, pets):
        with pytest.raises(NoResultsError):
            service.search("кот редкий")

    def test_stopword_only_query(self, service, pets):
        with pytest.raises(NoResultsError):
            service.search("и на")

    def test_unknown_site(self, service, pets):
        with pytest.raises(SiteNotIndexedError):
            service.search("кот", site_url="https://unknown.example")

    def test_named_site_still_indexing(self, uow_factory, service, pets):
        set_site_status(uow_factory, pets, SiteStatus.INDEXING)

        with pytest.raises(SiteIndexingInProgressError):
            service.search("кот", site_url="https://pets.example")

    def test_failed_site_is_not_indexed(self, uow_factory, service, pets):
        set_site_status(uow_factory, pets, SiteStatus.FAILED, "boom")

        with pytest.raises(SiteNotIndexedError):
            service.search("кот", site_url="https://pets.example")

    def test_any_indexing_site_blocks_all_sites_query(self, uow_factory, service, pets):
        with uow_factory() as uow:
            uow.repo.add_site(Site(url="https://busy.example"))
            uow.commit()

        with pytest.raises(SiteIndexingInProgressError):
            service.search("кот")


class TestRespond:
    def test_rejection_becomes_message_only_response(self, service, pets):
        response = service.respond("кот редкий")

        assert response.result is False
        assert response.error == NoResultsError.default_message
        assert response.data == []

    def test_success_passes_through(self, service, pets):
        response = service.respond("кот")

        assert response.result is True
        assert response.count == 2


def test_search_over_sqlite(sqlite_database, analyzer):
    uow_factory = partial(SqliteUnitOfWork, sqlite_database)
    _index_site(uow_factory, analyzer, "https://pets.example", PETS_CORPUS)
    service = SearchService(uow_factory, analyzer=analyzer, settings=Settings())

    response = service.search("кот собака", site_url="https://pets.example")

    assert [item.uri for item in response.data] == ["/p2"]
    assert response.data[0].relevance == 1.0
