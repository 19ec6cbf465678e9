"""Chunking orchestrator.

Selects a chunking strategy, enforces the hard ``max_chunk_size`` ceiling,
attaches the knowledge base's name as chunk ``source``, and coordinates
with the knowledge-base store for persistence and status reporting:

    chunking @ 50  ->  delete old chunks  ->  strategy  ->  save  ->  completed @ 100

On any failure the knowledge base is marked ``failed`` with the error
message and the exception propagates to the caller.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from ragkit.models.chunking import (
    ChunkingOptions,
    ChunkingResult,
    ChunkingStats,
    ChunkingStrategy,
    ChunkRecord,
    PageContent,
)
from ragkit.models.knowledge_base import ChunkingSummary, ProcessingStatus, StoredChunk
from ragkit.services.chunking.base import ChunkFunction, make_chunk
from ragkit.services.chunking.fixed import fixed_chunk
from ragkit.services.chunking.page import page_chunk
from ragkit.services.chunking.recursive import recursive_chunk
from ragkit.services.chunking.semantic import semantic_chunk
from ragkit.utils.errors import ChunkingError

if TYPE_CHECKING:
    from ragkit.interfaces.knowledge_base_store import IKnowledgeBaseStore

logger = structlog.get_logger(logger_name=__name__)

# Text-only strategies.  FIXED also accepts a page table and PAGE needs
# one, so both are dispatched explicitly in ``chunk_text``.
_TEXT_STRATEGIES: dict[ChunkingStrategy, ChunkFunction] = {
    ChunkingStrategy.RECURSIVE: recursive_chunk,
    ChunkingStrategy.SEMANTIC: semantic_chunk,
}

OptionsInput = ChunkingOptions | Mapping[str, Any] | None


class ChunkingService:
    """Runs chunking strategies and persists their output.

    Parameters
    ----------
    store:
        Knowledge-base persistence collaborator.
    default_options:
        Options used for any field a caller does not override.
    """

    def __init__(
        self,
        store: IKnowledgeBaseStore,
        default_options: ChunkingOptions | None = None,
    ) -> None:
        self._store = store
        self._defaults = default_options or ChunkingOptions()

    @property
    def default_options(self) -> ChunkingOptions:
        return self._defaults

    # ------------------------------------------------------------------
    # Pure chunking
    # ------------------------------------------------------------------

    def resolve_options(self, overrides: OptionsInput = None) -> ChunkingOptions:
        """Merge *overrides* over the service defaults.

        ``None`` values in a mapping are ignored.  Invalid combinations
        (e.g. overlap >= size) raise :class:`ChunkingError`.
        """
        if isinstance(overrides, ChunkingOptions):
            return overrides
        merged = self._defaults.model_dump()
        merged.update({key: value for key, value in (overrides or {}).items() if value is not None})
        try:
            return ChunkingOptions(**merged)
        except ValidationError as exc:
            raise ChunkingError(f"Invalid chunking options: {exc}") from exc

    def chunk_text(
        self,
        text: str,
        options: ChunkingOptions,
        pages: Sequence[PageContent] | None = None,
    ) -> list[ChunkRecord]:
        """Run the strategy named by *options* and enforce ``max_chunk_size``."""
        if options.strategy is ChunkingStrategy.PAGE:
            page_table = list(pages) if pages else [PageContent(page_number=1, text=text)]
            chunks = page_chunk(page_table, options)
        elif options.strategy is ChunkingStrategy.FIXED:
            chunks = fixed_chunk(text, options, pages or None)
        else:
            chunks = _TEXT_STRATEGIES[options.strategy](text, options)
        return self._enforce_max_size(chunks, options.effective_max_chunk_size)

    async def preview_chunking(self, text: str, options: OptionsInput = None) -> ChunkingResult:
        """Chunk *text* without touching the store."""
        resolved = self.resolve_options(options)
        chunks = self.chunk_text(text, resolved)
        return ChunkingResult.from_chunks(chunks, resolved.strategy)

    # ------------------------------------------------------------------
    # Knowledge-base chunking
    # ------------------------------------------------------------------

    async def chunk_document(
        self,
        knowledge_base_id: str,
        options: OptionsInput = None,
        complete: bool = True,
    ) -> ChunkingResult:
        """Chunk a knowledge base's extracted text, replacing any previous chunks.

        With *complete* false the knowledge base is left in ``chunking`` at
        60 so a later stage (embedding) can finish it.

        Raises
        ------
        ChunkingError
            If the knowledge base or its extracted content does not exist,
            or the options are invalid.
        """
        knowledge_base = await self._store.get_knowledge_base(knowledge_base_id)
        if knowledge_base is None:
            raise ChunkingError(f"Knowledge base not found: {knowledge_base_id}")
        content = await self._store.get_document_content(knowledge_base_id)
        if content is None:
            raise ChunkingError(f"Document content not found for knowledge base {knowledge_base_id}")

        resolved = self.resolve_options(options)
        await self._store.update_processing(knowledge_base_id, ProcessingStatus.CHUNKING, 50)

        try:
            await self._store.delete_chunks(knowledge_base_id)
            source = knowledge_base.name or "Unknown"
            chunks = [
                chunk.model_copy(
                    update={"metadata": chunk.metadata.model_copy(update={"source": source})}
                )
                for chunk in self.chunk_text(content.full_text, resolved, content.pages)
            ]
            await self._store.replace_chunks(knowledge_base_id, chunks)
            result = ChunkingResult.from_chunks(chunks, resolved.strategy)

            await self._store.update_processing(
                knowledge_base_id,
                ProcessingStatus.COMPLETED if complete else ProcessingStatus.CHUNKING,
                100 if complete else 60,
                chunking=ChunkingSummary(
                    strategy=resolved.strategy,
                    chunk_size=resolved.chunk_size,
                    chunk_overlap=resolved.chunk_overlap,
                    total_chunks=result.total_chunks,
                    total_characters=result.total_characters,
                    total_tokens=result.total_tokens,
                ),
            )
        except Exception as exc:
            await self._store.update_processing(
                knowledge_base_id,
                ProcessingStatus.FAILED,
                50,
                error=str(exc),
                error_code=getattr(exc, "code", None),
            )
            logger.error("chunking_failed", knowledge_base_id=knowledge_base_id, error=str(exc))
            raise

        logger.info(
            "document_chunked",
            knowledge_base_id=knowledge_base_id,
            strategy=resolved.strategy.value,
            chunks=result.total_chunks,
            tokens=result.total_tokens,
        )
        return result

    async def rechunk_document(self, knowledge_base_id: str, options: OptionsInput = None) -> ChunkingResult:
        """Re-run chunking with new options; the old chunk list is replaced wholesale."""
        return await self.chunk_document(knowledge_base_id, options)

    async def get_chunks(self, knowledge_base_id: str) -> list[StoredChunk]:
        return await self._store.get_chunks(knowledge_base_id)

    async def delete_chunks(self, knowledge_base_id: str) -> int:
        deleted = await self._store.delete_chunks(knowledge_base_id)
        logger.info("chunks_deleted", knowledge_base_id=knowledge_base_id, count=deleted)
        return deleted

    async def get_stats(self, knowledge_base_id: str) -> ChunkingStats:
        """Summarise the stored chunk sizes of a knowledge base."""
        chunks = await self._store.get_chunks(knowledge_base_id)
        if not chunks:
            return ChunkingStats()
        sizes = [chunk.record.char_count for chunk in chunks]
        return ChunkingStats(
            total_chunks=len(chunks),
            total_characters=sum(sizes),
            total_tokens=sum(chunk.record.token_count for chunk in chunks),
            average_chunk_size=sum(sizes) / len(sizes),
            min_chunk_size=min(sizes),
            max_chunk_size=max(sizes),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _enforce_max_size(chunks: list[ChunkRecord], max_size: int) -> list[ChunkRecord]:
        """Re-split any chunk longer than *max_size*, keeping its metadata."""
        splitter = ChunkingOptions(chunk_size=max_size, chunk_overlap=0, min_chunk_size=0)
        result: list[ChunkRecord] = []
        for chunk in chunks:
            if chunk.char_count <= max_size:
                result.append(chunk)
                continue

            base = chunk.metadata
            for piece in recursive_chunk(chunk.content, splitter):
                start = None
                if base.start_char is not None:
                    start = base.start_char + (piece.metadata.start_char or 0)
                result.append(
                    make_chunk(
                        piece.content,
                        start_char=start,
                        end_char=start + piece.char_count if start is not None else None,
                        page_number=base.page_number,
                        header=base.header,
                        section=base.section,
                        source=base.source,
                    )
                )
        return result
