"""Offset/limit windows over a ranked result list."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar


T = TypeVar("T")

DEFAULT_OFFSET = 0
DEFAULT_LIMIT = 20


@dataclass(frozen=True, slots=True)
class Window(Generic[T]):
    total: int
    offset: int
    items: list[T]


def paginate(
    items: Sequence[T],
    offset: int | None = DEFAULT_OFFSET,
    limit: int | None = DEFAULT_LIMIT,
) -> Window[T]:
    """Return ``items[offset:offset + limit]`` clamped to the sequence bounds.

    ``None`` selects the defaults; negative values clamp to zero. An offset at
    or past the end yields an empty window that still reports the full total.
    """
    total = len(items)
    start = DEFAULT_OFFSET if offset is None else max(0, offset)
    size = DEFAULT_LIMIT if limit is None else max(0, limit)
    if start >= total:
        return Window(total=total, offset=start, items=[])
    end = min(total, start + size)
    return Window(total=total, offset=start, items=list(items[start:end]))
