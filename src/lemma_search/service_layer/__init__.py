"""Service layer - Business logic orchestration.

Following Cosmic Python Chapter 4, 5, 6:
- Service layer orchestrates use cases
- Uses Unit of Work for transaction management
- Works with domain model and repositories
"""

from .indexing_service import LemmaIndexer, index_site, set_site_status
from .search_service import SearchService
from .site_locks import SiteLockRegistry
from .unit_of_work import AbstractUnitOfWork, FakeUnitOfWork, SqliteUnitOfWork


__all__ = [
    "AbstractUnitOfWork",
    "FakeUnitOfWork",
    "LemmaIndexer",
    "SearchService",
    "SiteLockRegistry",
    "SqliteUnitOfWork",
    "index_site",
    "set_site_status",
]
