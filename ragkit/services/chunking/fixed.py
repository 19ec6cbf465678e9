"""Fixed-size sliding-window chunking.

A window of ``chunk_size`` characters slides over the cleaned text,
advancing by ``chunk_size - chunk_overlap``.  With ``preserve_sentences``
the window end snaps to a nearby paragraph, sentence or word boundary.
"""

from __future__ import annotations

from collections.abc import Sequence

from ragkit.models.chunking import PAGE_SEPARATOR, ChunkingOptions, ChunkRecord, PageContent
from ragkit.services.chunking.base import make_chunk
from ragkit.utils.text_utils import clean_text_for_chunking, find_break_point


def fixed_chunk(
    text: str,
    options: ChunkingOptions,
    pages: Sequence[PageContent] | None = None,
) -> list[ChunkRecord]:
    """Split *text* into fixed-size, overlapping windows.

    Parameters
    ----------
    text:
        Raw document text; it is cleaned before windowing.
    options:
        Chunk size, overlap, minimum size and sentence preservation.
    pages:
        Optional page table.  When given, each chunk is tagged with the
        page its start offset falls on.

    Returns
    -------
    list[ChunkRecord]
        Chunks in document order with ``start_char``/``end_char`` offsets.
        A window shorter than ``min_chunk_size`` is skipped unless it is the
        window that reaches the end of the text.
    """
    cleaned = clean_text_for_chunking(text)
    length = len(cleaned)
    chunks: list[ChunkRecord] = []
    start = 0

    while start < length:
        is_final = start + options.chunk_size >= length
        end = length if is_final else start + options.chunk_size
        if options.preserve_sentences and not is_final:
            end = find_break_point(cleaned, end)
            if end <= start:
                end = start + options.chunk_size

        content = cleaned[start:end].strip()
        if content and (is_final or len(content) >= options.min_chunk_size):
            chunks.append(
                make_chunk(
                    content,
                    start_char=start,
                    end_char=end,
                    page_number=_page_number_at(start, pages),
                )
            )

        if is_final:
            break

        next_start = end - options.chunk_overlap
        if next_start <= start:
            next_start = end
        start = next_start

    return chunks


def _page_number_at(offset: int, pages: Sequence[PageContent] | None) -> int | None:
    """Map an offset in ``PAGE_SEPARATOR``-joined page text to its page."""
    if not pages:
        return None

    position = 0
    for page in pages:
        page_end = position + page.char_count
        if offset < page_end:
            return page.page_number
        position = page_end + len(PAGE_SEPARATOR)

    return pages[-1].page_number
