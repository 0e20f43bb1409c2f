"""Error taxonomy for the search and indexing paths.

Search rejections are user-facing conditions, not faults: the service layer
raises them and the boundary turns them into message-only responses.
Storage and indexing errors are genuine failures and propagate to callers.
"""

from __future__ import annotations


class SearchRejectedError(Exception):
    """Base class for recoverable, user-visible search outcomes."""

    default_message = "Search request rejected"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class EmptyQueryError(SearchRejectedError):
    default_message = "Query is empty"


class SiteIndexingInProgressError(SearchRejectedError):
    default_message = "Indexing is in progress, wait until it finishes"


class SiteNotIndexedError(SearchRejectedError):
    default_message = "The selected site is not indexed yet"


class NoResultsError(SearchRejectedError):
    default_message = "Nothing found"


class StorageError(RuntimeError):
    """Raised when the persistent store fails to read or write."""


class IndexingError(RuntimeError):
    """Raised when a page of a site fails to index."""

    def __init__(self, path: str, cause: BaseException) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to index page {path}: {cause}")
