"""Helpers shared by the chunking strategies."""

from __future__ import annotations

from collections.abc import Callable, Sequence

from ragkit.models.chunking import ChunkingOptions, ChunkMetadata, ChunkRecord

ChunkFunction = Callable[[str, ChunkingOptions], list[ChunkRecord]]


def make_chunk(content: str, **metadata: object) -> ChunkRecord:
    """Build a record from trimmed *content* and any non-``None`` metadata."""
    fields = {key: value for key, value in metadata.items() if value is not None}
    return ChunkRecord(content=content.strip(), metadata=ChunkMetadata(**fields))


def drop_undersized(chunks: Sequence[ChunkRecord], min_chunk_size: int) -> list[ChunkRecord]:
    """Remove chunks shorter than *min_chunk_size*, always keeping the last one.

    The trailing chunk of a document is kept whatever its size so that a
    short remainder is never silently lost.
    """
    last = len(chunks) - 1
    return [
        chunk
        for i, chunk in enumerate(chunks)
        if chunk.content and (chunk.char_count >= min_chunk_size or i == last)
    ]
