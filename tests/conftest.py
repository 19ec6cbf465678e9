"""Shared pytest fixtures for the ragkit test suite."""

from __future__ import annotations

from typing import Any

import pytest
import pytest_asyncio

from ragkit.interfaces.embedding_provider import IEmbeddingProvider
from ragkit.interfaces.vector_store_provider import IVectorStoreProvider
from ragkit.models.knowledge_base import DocumentContent, KnowledgeBase
from ragkit.models.providers import EmbeddingResponse, EmbeddingResult
from ragkit.models.rag import ScoredPoint, SearchFilter, VectorPoint
from ragkit.providers.store.memory_store import MemoryKnowledgeBaseStore

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeEmbeddingProvider(IEmbeddingProvider):
    """Deterministic embedder: ``[len(text), index_of_call, 1.0]``.

    Every text seen by the provider is recorded in ``calls`` so tests can
    assert on cache hits and batching.
    """

    def __init__(self, dimensions: int = 3) -> None:
        self._dimensions = dimensions
        self.calls: list[list[str]] = []
        self.healthy = True

    @property
    def name(self) -> str:
        return "fake"

    @property
    def model(self) -> str:
        return "fake-embed"

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def vector_for(self, text: str) -> list[float]:
        return [float(len(text))] + [1.0] * (self._dimensions - 1)

    async def embed(self, text: str) -> list[float]:
        self.calls.append([text])
        return self.vector_for(text)

    async def embed_batch(self, texts: list[str]) -> EmbeddingResponse:
        self.calls.append(list(texts))
        return EmbeddingResponse(
            embeddings=[
                EmbeddingResult(embedding=self.vector_for(text), index=i)
                for i, text in enumerate(texts)
            ],
            model=self.model,
            dimensions=self._dimensions,
        )

    async def health_check(self) -> bool:
        return self.healthy


class FakeVectorStore(IVectorStoreProvider):
    """Dict-backed vector store scoring hits by a fixed ``score`` payload key."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, VectorPoint]] = {}
        self.searches: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "fake"

    async def upsert(self, collection: str, points: list[VectorPoint]) -> int:
        target = self.collections.setdefault(collection, {})
        for point in points:
            target[point.id] = point
        return len(points)

    async def search(
        self,
        collection: str,
        query_vector: list[float],
        limit: int = 5,
        search_filter: SearchFilter | None = None,
        score_threshold: float | None = None,
    ) -> list[ScoredPoint]:
        self.searches.append(
            {"collection": collection, "limit": limit, "filter": search_filter, "threshold": score_threshold}
        )
        hits = [
            ScoredPoint(id=point.id, score=float(point.payload.get("score", 0.5)), payload=point.payload)
            for point in self.collections.get(collection, {}).values()
        ]
        if score_threshold is not None:
            hits = [hit for hit in hits if hit.score >= score_threshold]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:limit]

    async def delete_points(self, collection: str, search_filter: SearchFilter) -> int:
        target = self.collections.get(collection, {})
        conditions = {c["key"]: c["match"]["value"] for c in search_filter.must}
        doomed = [
            point_id
            for point_id, point in target.items()
            if all(point.payload.get(key) == value for key, value in conditions.items())
        ]
        for point_id in doomed:
            del target[point_id]
        return len(doomed)

    async def delete_collection(self, collection: str) -> None:
        self.collections.pop(collection, None)

    async def health_check(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_text() -> str:
    """A short multi-section document."""
    return (
        "# Introduction\n\n"
        "Retrieval systems split documents into chunks. Each chunk is embedded "
        "and stored for later search.\n\n"
        "Dr. Smith wrote the first version. It was small.\n\n"
        "# Details\n\n"
        "Chunks overlap so that sentences spanning a boundary are not lost. "
        "The overlap is configurable."
    )


@pytest.fixture
def knowledge_base() -> KnowledgeBase:
    return KnowledgeBase(id="kb-1", agent_id="agent-1", user_id="user-1", name="handbook.pdf")


@pytest.fixture
def store() -> MemoryKnowledgeBaseStore:
    return MemoryKnowledgeBaseStore()


@pytest_asyncio.fixture
async def seeded_store(
    store: MemoryKnowledgeBaseStore,
    knowledge_base: KnowledgeBase,
    sample_text: str,
) -> MemoryKnowledgeBaseStore:
    """A store holding ``knowledge_base`` with ``sample_text`` as its content."""
    await store.add_knowledge_base(knowledge_base)
    await store.save_document_content(knowledge_base.id, DocumentContent(full_text=sample_text))
    return store


@pytest.fixture
def fake_embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def fake_vector_store() -> FakeVectorStore:
    return FakeVectorStore()
