"""Domain models for search responses.

Value objects are immutable (frozen=True); ``SearchResponse.to_dict`` gives
the JSON shape the HTTP boundary returns.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SearchItem(BaseModel):
    """One ranked page with its display title and highlighted snippet."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    site: str
    site_name: str = Field(serialization_alias="siteName")
    uri: str
    title: str
    snippet: str
    relevance: float = Field(ge=0.0, le=1.0)


class SearchResponse(BaseModel):
    """Either a result page (``result=True``) or a message-only rejection."""

    model_config = ConfigDict(frozen=True)

    result: bool = True
    count: int = Field(default=0, ge=0)
    data: list[SearchItem] = Field(default_factory=list)
    error: str | None = None

    @classmethod
    def rejected(cls, message: str) -> "SearchResponse":
        return cls(result=False, error=message)

    def to_dict(self) -> dict[str, Any]:
        """Wire form: ``result``/``count``/``data``, or ``result``/``error`` when rejected."""
        if not self.result:
            return {"result": False, "error": self.error}
        return self.model_dump(mode="json", by_alias=True, exclude={"error"})
