"""Retrieval data models: vector points, search hits and assembled context."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class VectorPoint(BaseModel):
    """A vector and its payload, as written to the vector store."""

    model_config = ConfigDict(frozen=True)

    id: str
    vector: list[float]
    payload: dict[str, Any] = Field(default_factory=dict)


class ScoredPoint(BaseModel):
    """A search hit.  ``score`` is a similarity in ``[0, 1]``, higher is closer."""

    model_config = ConfigDict(frozen=True)

    id: str
    score: float
    payload: dict[str, Any] = Field(default_factory=dict)
    vector: list[float] | None = None


class SearchFilter(BaseModel):
    """Conjunctive/disjunctive payload filter.

    Each condition is ``{"key": <payload field>, "match": {"value": <v>}}``
    or ``{"key": ..., "match": {"any": [...]}}``.
    """

    model_config = ConfigDict(frozen=True)

    must: list[dict[str, Any]] = Field(default_factory=list)
    should: list[dict[str, Any]] = Field(default_factory=list)
    must_not: list[dict[str, Any]] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.must or self.should or self.must_not)


class RAGSearchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    score: float
    content: str
    knowledge_base_id: str | None = None
    chunk_index: int | None = None
    page_number: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class RAGContext(BaseModel):
    """Retrieved passages packed into a single prompt-ready string."""

    model_config = ConfigDict(frozen=True)

    context: str
    results: list[RAGSearchResult] = Field(default_factory=list)
    total_tokens: int = 0
    sources: list[str] = Field(default_factory=list)
