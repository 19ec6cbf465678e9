"""Page-aligned chunking: one chunk per page, fixed windows for long pages."""

from __future__ import annotations

from collections.abc import Sequence

from ragkit.models.chunking import ChunkingOptions, ChunkRecord, PageContent
from ragkit.services.chunking.base import drop_undersized, make_chunk
from ragkit.services.chunking.fixed import fixed_chunk
from ragkit.utils.text_utils import clean_text_for_chunking


def page_chunk(pages: Sequence[PageContent], options: ChunkingOptions) -> list[ChunkRecord]:
    """Chunk each page independently and tag every chunk with its page number."""
    chunks: list[ChunkRecord] = []

    for page in pages:
        text = clean_text_for_chunking(page.text)
        if not text:
            continue

        if len(text) <= options.chunk_size:
            chunks.append(make_chunk(text, page_number=page.page_number))
            continue

        for chunk in fixed_chunk(text, options):
            metadata = chunk.metadata.model_copy(update={"page_number": page.page_number})
            chunks.append(chunk.model_copy(update={"metadata": metadata}))

    return drop_undersized(chunks, options.min_chunk_size)
