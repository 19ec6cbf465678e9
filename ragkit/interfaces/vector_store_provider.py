"""Abstract base class for vector-store providers.

A vector store persists embedding vectors with a payload and answers
nearest-neighbour queries.  Vectors are grouped into collections; the RAG
layer keeps one collection per agent, named ``agent_{agent_id}``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragkit.models.rag import ScoredPoint, SearchFilter, VectorPoint


def collection_name_for_agent(agent_id: str) -> str:
    """Return the deterministic collection name for *agent_id*."""
    return f"agent_{agent_id}"


# Concrete implementations: ChromaDBProvider
# Located in: ragkit/providers/vector_store/
class IVectorStoreProvider(ABC):
    """Contract for vector storage and similarity search."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short provider identifier."""

    @abstractmethod
    async def upsert(self, collection: str, points: list[VectorPoint]) -> int:
        """Insert or replace *points* in *collection*, creating it if needed.

        Returns
        -------
        int
            Number of points written.
        """

    @abstractmethod
    async def search(
        self,
        collection: str,
        query_vector: list[float],
        limit: int = 5,
        search_filter: SearchFilter | None = None,
        score_threshold: float | None = None,
    ) -> list[ScoredPoint]:
        """Return up to *limit* points closest to *query_vector*, best first.

        Parameters
        ----------
        collection:
            Collection to search.  A missing collection yields ``[]``.
        query_vector:
            Embedding of the query.
        limit:
            Maximum number of hits.
        search_filter:
            Optional payload filter.
        score_threshold:
            Drop hits whose similarity score is below this value.
        """

    @abstractmethod
    async def delete_points(self, collection: str, search_filter: SearchFilter) -> int:
        """Delete every point in *collection* matching *search_filter*."""

    @abstractmethod
    async def delete_collection(self, collection: str) -> None:
        """Drop *collection*; a no-op if it does not exist."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Return ``True`` if the store is usable.  Never raises."""
