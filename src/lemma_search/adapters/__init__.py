"""Adapters layer - Repository implementations.

Following Cosmic Python Chapter 2: Repository Pattern
Abstracts data storage and retrieval using domain model.
"""

from .repository import AbstractRepository, FakeRepository
from .sqlite_repository import SqliteDatabase, SqliteRepository


__all__ = [
    "AbstractRepository",
    "FakeRepository",
    "SqliteDatabase",
    "SqliteRepository",
]
