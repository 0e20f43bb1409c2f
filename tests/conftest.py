"""Shared test fixtures and configuration."""

from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


# Complete test environment that overrides every config value read from env
TEST_ENV = {
    "LEMMA_SEARCH_DEFAULT_OFFSET": "0",
    "LEMMA_SEARCH_DEFAULT_LIMIT": "20",
    "LEMMA_SEARCH_MAX_LIMIT": "500",
    "LEMMA_SEARCH_TITLE_MAX_LENGTH": "50",
    "LEMMA_SEARCH_SNIPPET_MAX_CHARS": "240",
    "LEMMA_SEARCH_SNIPPET_CONTEXT": "80",
    "LEMMA_SEARCH_SNIPPET_STYLE": "html",
    "LEMMA_SEARCH_ANALYZER": "default",
    "LEMMA_SEARCH_SORT_LEMMAS_BY_FREQUENCY": "true",
    "LEMMA_SEARCH_INDEX_WORKERS": "4",
    "LEMMA_SEARCH_LOG_LEVEL": "info",
    "LEMMA_SEARCH_LOG_JSON": "false",
    "LEMMA_SEARCH_HOST": "127.0.0.1",
    "LEMMA_SEARCH_PORT": "18080",
}


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Pin every setting so a developer's .env or shell never leaks into tests."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("LEMMA_SEARCH_DATABASE_PATH", str(tmp_path / "env" / "lemma_search.db"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def analyzer():
    """Lowercasing, stopword-filtering analyzer without stemming (lemma == word)."""
    from lemma_search.search.analyzers import SnowballLemmatizer

    return SnowballLemmatizer(apply_stemming=False)


@pytest.fixture
def fake_uow():
    from lemma_search.service_layer.unit_of_work import FakeUnitOfWork

    return FakeUnitOfWork()


@pytest.fixture
def sqlite_database(tmp_path):
    from lemma_search.adapters.sqlite_repository import SqliteDatabase

    database = SqliteDatabase(tmp_path / "db" / "lemma_search.db")
    yield database
    database.close_all()


@pytest.fixture
def span_exporter():
    """Finished OpenTelemetry spans recorded while the test runs."""
    from opentelemetry import trace
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import SimpleSpanProcessor
    from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

    from lemma_search.observability.tracing import init_tracing

    provider = trace.get_tracer_provider()
    if not isinstance(provider, TracerProvider):
        provider = init_tracing("lemma-search-tests")
    exporter = InMemorySpanExporter()
    processor = SimpleSpanProcessor(exporter)
    provider.add_span_processor(processor)
    yield exporter
    processor.shutdown()
