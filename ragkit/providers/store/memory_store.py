"""In-memory knowledge-base store.

Reference implementation of :class:`IKnowledgeBaseStore` for tests and
single-process deployments.  Nothing survives a restart.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

import structlog

from ragkit.interfaces.knowledge_base_store import IKnowledgeBaseStore
from ragkit.models.chunking import ChunkRecord
from ragkit.models.knowledge_base import (
    DocumentContent,
    KnowledgeBase,
    ProcessingError,
    ProcessingState,
    ProcessingStatus,
    StoredChunk,
)

logger = structlog.get_logger(logger_name=__name__)


class MemoryKnowledgeBaseStore(IKnowledgeBaseStore):
    """Dict-backed knowledge-base, content and chunk storage."""

    def __init__(self) -> None:
        self._knowledge_bases: dict[str, KnowledgeBase] = {}
        self._contents: dict[str, DocumentContent] = {}
        self._chunks: dict[str, list[StoredChunk]] = {}

    async def add_knowledge_base(self, knowledge_base: KnowledgeBase) -> None:
        """Register *knowledge_base*, replacing any record with the same id."""
        self._knowledge_bases[knowledge_base.id] = knowledge_base

    # ------------------------------------------------------------------
    # IKnowledgeBaseStore implementation
    # ------------------------------------------------------------------

    async def get_knowledge_base(self, knowledge_base_id: str) -> KnowledgeBase | None:
        return self._knowledge_bases.get(knowledge_base_id)

    async def get_document_content(self, knowledge_base_id: str) -> DocumentContent | None:
        return self._contents.get(knowledge_base_id)

    async def save_document_content(self, knowledge_base_id: str, content: DocumentContent) -> None:
        self._require(knowledge_base_id)
        self._contents[knowledge_base_id] = content

    async def replace_chunks(
        self,
        knowledge_base_id: str,
        chunks: list[ChunkRecord],
    ) -> list[StoredChunk]:
        knowledge_base = self._require(knowledge_base_id)
        stored = [
            StoredChunk(
                id=uuid.uuid4().hex,
                knowledge_base_id=knowledge_base_id,
                agent_id=knowledge_base.agent_id,
                chunk_index=index,
                record=record,
            )
            for index, record in enumerate(chunks)
        ]
        self._chunks[knowledge_base_id] = stored
        return list(stored)

    async def get_chunks(self, knowledge_base_id: str) -> list[StoredChunk]:
        return list(self._chunks.get(knowledge_base_id, []))

    async def delete_chunks(self, knowledge_base_id: str) -> int:
        return len(self._chunks.pop(knowledge_base_id, []))

    async def mark_chunks_embedded(self, knowledge_base_id: str, vector_ids: dict[str, str]) -> None:
        self._chunks[knowledge_base_id] = [
            chunk.model_copy(update={"vector_id": vector_ids[chunk.id]}) if chunk.id in vector_ids else chunk
            for chunk in self._chunks.get(knowledge_base_id, [])
        ]

    async def update_processing(
        self,
        knowledge_base_id: str,
        status: ProcessingStatus,
        progress: int,
        error: str | None = None,
        error_code: str | None = None,
        **fields: Any,
    ) -> None:
        knowledge_base = self._require(knowledge_base_id)
        previous = knowledge_base.processing
        now = datetime.now(tz=timezone.utc)

        processing_error = None
        if error is not None:
            retry_count = previous.error.retry_count + 1 if previous.error else 0
            processing_error = ProcessingError(message=error, code=error_code, retry_count=retry_count)

        processing = ProcessingState(
            status=status,
            progress=max(0, min(100, progress)),
            started_at=previous.started_at or (now if status != ProcessingStatus.PENDING else None),
            completed_at=now if status == ProcessingStatus.COMPLETED else None,
            error=processing_error,
        )
        self._knowledge_bases[knowledge_base_id] = knowledge_base.model_copy(
            update={"processing": processing, **fields}
        )
        logger.debug(
            "knowledge_base_status",
            knowledge_base_id=knowledge_base_id,
            status=status.value,
            progress=processing.progress,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, knowledge_base_id: str) -> KnowledgeBase:
        knowledge_base = self._knowledge_bases.get(knowledge_base_id)
        if knowledge_base is None:
            raise KeyError(f"Unknown knowledge base: {knowledge_base_id}")
        return knowledge_base
