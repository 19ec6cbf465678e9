"""Retrieval service: query embedding, vector search and context assembly.

Each agent owns one vector collection (``agent_{agent_id}``).  Points are
written with the chunk text under ``content`` plus the knowledge-base id,
chunk index, page number and chunk metadata, so search hits can be turned
back into citations without a store lookup.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

import structlog

from ragkit.interfaces.vector_store_provider import collection_name_for_agent
from ragkit.models.rag import RAGContext, RAGSearchResult, ScoredPoint, SearchFilter, VectorPoint
from ragkit.utils.errors import RagkitError
from ragkit.utils.text_utils import estimate_tokens

if TYPE_CHECKING:
    from ragkit.interfaces.vector_store_provider import IVectorStoreProvider
    from ragkit.models.knowledge_base import StoredChunk
    from ragkit.services.embedding_service import EmbeddingService

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_LIMIT = 5
DEFAULT_MAX_CONTEXT_TOKENS = 4000
CONTEXT_SEPARATOR = "\n\n---\n\n"
# Same approximation as ``estimate_tokens``.
_CHARS_PER_TOKEN = 4


class RAGService:
    """Combines the embedding service and a vector store for retrieval."""

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: IVectorStoreProvider,
        default_score_threshold: float | None = None,
    ) -> None:
        self._embedding = embedding_service
        self._vector_store = vector_store
        self._default_score_threshold = default_score_threshold

    @property
    def embedding_dimensions(self) -> int:
        return self._embedding.dimensions

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    async def index_chunks(
        self,
        agent_id: str,
        embedded_chunks: Sequence[tuple[StoredChunk, list[float]]],
    ) -> dict[str, str]:
        """Upsert embedded chunks into the agent's collection.

        Returns
        -------
        dict[str, str]
            Chunk id -> vector point id.
        """
        points = [
            VectorPoint(id=chunk.id, vector=vector, payload=self._payload(chunk))
            for chunk, vector in embedded_chunks
        ]
        written = await self._vector_store.upsert(collection_name_for_agent(agent_id), points)
        logger.info("rag_chunks_indexed", agent_id=agent_id, count=written)
        return {point.id: point.id for point in points}

    async def delete_knowledge_base(self, agent_id: str, knowledge_base_id: str) -> int:
        """Remove every vector of *knowledge_base_id* from the agent's collection."""
        return await self._vector_store.delete_points(
            collection_name_for_agent(agent_id),
            self.build_filter(knowledge_base_id=knowledge_base_id),
        )

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def search(
        self,
        agent_id: str,
        query: str,
        limit: int = DEFAULT_LIMIT,
        score_threshold: float | None = None,
        document_id: str | None = None,
        knowledge_base_id: str | None = None,
        filters: Mapping[str, str | int | float | bool] | None = None,
    ) -> list[RAGSearchResult]:
        """Return the chunks of *agent_id* most similar to *query*, best first."""
        query_vector = await self._embedding.embed(query)
        return await self._search_vector(
            agent_id,
            query_vector,
            limit=limit,
            score_threshold=score_threshold,
            search_filter=self.build_filter(document_id, knowledge_base_id, filters),
        )

    async def get_context(
        self,
        agent_id: str,
        query: str,
        max_tokens: int = DEFAULT_MAX_CONTEXT_TOKENS,
        separator: str = CONTEXT_SEPARATOR,
        **search_options: Any,
    ) -> RAGContext:
        """Pack the best hits into one prompt-ready string of at most ~*max_tokens*.

        Hits are taken in score order until the next one would push the
        character budget (``max_tokens * 4``) over; later hits are dropped.
        """
        results = await self.search(agent_id, query, **search_options)
        max_chars = max_tokens * _CHARS_PER_TOKEN

        included: list[RAGSearchResult] = []
        total_chars = 0
        for result in results:
            length = len(result.content) + len(separator)
            if total_chars + length > max_chars:
                break
            included.append(result)
            total_chars += length

        context = separator.join(result.content for result in included)
        sources: list[str] = []
        for result in included:
            source = result.metadata.get("source")
            if source and source not in sources:
                sources.append(source)

        return RAGContext(
            context=context,
            results=included,
            total_tokens=estimate_tokens(context),
            sources=sources,
        )

    async def search_multi_agent(
        self,
        agent_ids: Sequence[str],
        query: str,
        limit: int = DEFAULT_LIMIT,
        score_threshold: float | None = None,
    ) -> dict[str, list[RAGSearchResult]]:
        """Search several agents' collections with one query embedding.

        An agent whose search fails is logged and left out of the result.
        """
        query_vector = await self._embedding.embed(query)

        async def _one(agent_id: str) -> tuple[str, list[RAGSearchResult] | None]:
            try:
                hits = await self._search_vector(
                    agent_id, query_vector, limit=limit, score_threshold=score_threshold
                )
            except RagkitError as exc:
                logger.warning("rag_agent_search_failed", agent_id=agent_id, error=str(exc))
                return agent_id, None
            return agent_id, hits

        outcomes = await asyncio.gather(*(_one(agent_id) for agent_id in agent_ids))
        return {agent_id: hits for agent_id, hits in outcomes if hits is not None}

    async def health_check(self) -> dict[str, Any]:
        embedding, vector_store = await asyncio.gather(
            self._embedding.health_check(),
            self._vector_store.health_check(),
        )
        return {
            "healthy": embedding["healthy"] and vector_store,
            "embedding": embedding,
            "vector_store": {"healthy": vector_store, "provider": self._vector_store.name},
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def build_filter(
        document_id: str | None = None,
        knowledge_base_id: str | None = None,
        filters: Mapping[str, str | int | float | bool] | None = None,
    ) -> SearchFilter | None:
        """Translate the search arguments into a ``must`` filter (``None`` if empty)."""
        must: list[dict[str, Any]] = []
        if document_id:
            must.append({"key": "document_id", "match": {"value": document_id}})
        if knowledge_base_id:
            must.append({"key": "knowledge_base_id", "match": {"value": knowledge_base_id}})
        for key, value in (filters or {}).items():
            must.append({"key": key, "match": {"value": value}})
        return SearchFilter(must=must) if must else None

    async def _search_vector(
        self,
        agent_id: str,
        query_vector: list[float],
        limit: int,
        score_threshold: float | None,
        search_filter: SearchFilter | None = None,
    ) -> list[RAGSearchResult]:
        threshold = score_threshold if score_threshold is not None else self._default_score_threshold
        hits = await self._vector_store.search(
            collection_name_for_agent(agent_id),
            query_vector,
            limit=limit,
            search_filter=search_filter,
            score_threshold=threshold,
        )
        logger.info("rag_search", agent_id=agent_id, results=len(hits))
        return [self._to_result(hit) for hit in hits]

    @staticmethod
    def _payload(chunk: StoredChunk) -> dict[str, Any]:
        metadata = chunk.record.metadata.model_dump(exclude_none=True)
        return {
            **metadata,
            "content": chunk.record.content,
            "chunk_id": chunk.id,
            "knowledge_base_id": chunk.knowledge_base_id,
            "document_id": chunk.knowledge_base_id,
            "agent_id": chunk.agent_id,
            "chunk_index": chunk.chunk_index,
            "token_count": chunk.record.token_count,
        }

    @staticmethod
    def _to_result(hit: ScoredPoint) -> RAGSearchResult:
        payload = dict(hit.payload)
        content = str(payload.pop("content", ""))
        return RAGSearchResult(
            id=hit.id,
            score=hit.score,
            content=content,
            knowledge_base_id=payload.get("knowledge_base_id"),
            chunk_index=payload.get("chunk_index"),
            page_number=payload.get("page_number"),
            metadata=payload,
        )
