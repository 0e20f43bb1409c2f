"""Unit of Work over the lemma store.

Following Cosmic Python Chapter 6: the unit of work is the transaction
boundary. Leaving the ``with`` block without ``commit()`` rolls back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
import sqlite3

from lemma_search.adapters.repository import AbstractRepository, FakeRepository
from lemma_search.adapters.sqlite_repository import SqliteDatabase, SqliteRepository
from lemma_search.exceptions import StorageError


logger = logging.getLogger(__name__)


class AbstractUnitOfWork(ABC):
    """Abstract Unit of Work."""

    repo: AbstractRepository

    def __enter__(self):
        """Enter transaction context."""
        self._committed = False
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit transaction context - rollback unless explicitly committed."""
        if not getattr(self, "_committed", False):
            self.rollback()

    def commit(self) -> None:
        self._commit()
        self._committed = True

    @abstractmethod
    def _commit(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def rollback(self) -> None:
        raise NotImplementedError


class SqliteUnitOfWork(AbstractUnitOfWork):
    """Transactions on the calling thread's SQLite connection."""

    def __init__(self, database: SqliteDatabase) -> None:
        self.database = database

    def __enter__(self):
        self.repo = SqliteRepository(self.database.connection())
        return super().__enter__()

    def _commit(self) -> None:
        try:
            self.repo.conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to commit transaction: {exc}") from exc

    def rollback(self) -> None:
        conn = getattr(getattr(self, "repo", None), "conn", None)
        if conn is not None and conn.in_transaction:
            logger.debug("Rolling back uncommitted transaction on %s", self.database.path)
            conn.rollback()


class FakeUnitOfWork(AbstractUnitOfWork):
    """In-memory Unit of Work for testing. Writes land immediately."""

    def __init__(self, repo: FakeRepository | None = None) -> None:
        self.repo = repo or FakeRepository()
        self.commits = 0
        self.rollbacks = 0

    def _commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1
