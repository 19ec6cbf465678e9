"""Abstract base class for the knowledge-base persistence collaborator.

The chunking orchestrator and the job pipeline read source text and write
chunk lists and processing status through this contract.  The storage
technology behind it (document database, SQL, in-memory) is not the
core's concern.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ragkit.models.chunking import ChunkRecord
from ragkit.models.knowledge_base import (
    DocumentContent,
    KnowledgeBase,
    ProcessingStatus,
    StoredChunk,
)


class IKnowledgeBaseStore(ABC):
    """Contract for knowledge-base, content and chunk persistence."""

    @abstractmethod
    async def get_knowledge_base(self, knowledge_base_id: str) -> KnowledgeBase | None:
        """Return the knowledge base, or ``None`` if it does not exist."""

    @abstractmethod
    async def get_document_content(self, knowledge_base_id: str) -> DocumentContent | None:
        """Return the extracted text (and pages) of the knowledge base, if parsed."""

    @abstractmethod
    async def save_document_content(self, knowledge_base_id: str, content: DocumentContent) -> None:
        """Store the extracted text of the knowledge base, replacing any previous text."""

    @abstractmethod
    async def replace_chunks(
        self,
        knowledge_base_id: str,
        chunks: list[ChunkRecord],
    ) -> list[StoredChunk]:
        """Replace the chunk list of the knowledge base wholesale.

        Returns
        -------
        list[StoredChunk]
            The stored chunks in order, ``chunk_index`` 0..N-1.
        """

    @abstractmethod
    async def get_chunks(self, knowledge_base_id: str) -> list[StoredChunk]:
        """Return the stored chunks ordered by ``chunk_index``."""

    @abstractmethod
    async def delete_chunks(self, knowledge_base_id: str) -> int:
        """Delete every chunk of the knowledge base; return how many were removed."""

    @abstractmethod
    async def mark_chunks_embedded(self, knowledge_base_id: str, vector_ids: dict[str, str]) -> None:
        """Record the vector id assigned to each chunk id."""

    @abstractmethod
    async def update_processing(
        self,
        knowledge_base_id: str,
        status: ProcessingStatus,
        progress: int,
        error: str | None = None,
        error_code: str | None = None,
        **fields: Any,
    ) -> None:
        """Record a status / progress transition.

        Extra keyword *fields* update the knowledge base itself (e.g.
        ``chunking=ChunkingSummary(...)``).
        """
