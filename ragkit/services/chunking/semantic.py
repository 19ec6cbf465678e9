"""Structure-aware chunking by section, paragraph and sentence.

Each section found by :func:`extract_sections` is chunked on its own so a
chunk never straddles two headers.  Paragraphs accumulate until the next
one would overflow ``chunk_size``; the chunk is then flushed and the next
one starts with the previous paragraph (or its last sentences) as overlap.
Paragraphs that alone exceed ``chunk_size`` are chunked sentence by
sentence.
"""

from __future__ import annotations

from ragkit.models.chunking import ChunkingOptions, ChunkRecord
from ragkit.services.chunking.base import drop_undersized, make_chunk
from ragkit.services.chunking.recursive import SEPARATORS, split_recursively
from ragkit.utils.text_utils import (
    clean_text_for_chunking,
    extract_sections,
    split_into_paragraphs,
    split_into_sentences,
)

_PARAGRAPH_JOINER = "\n\n"

# Word and character separators, for sentences that are too long on their own.
_SUBSENTENCE_SEPARATORS = SEPARATORS[SEPARATORS.index(", "):]


def semantic_chunk(text: str, options: ChunkingOptions) -> list[ChunkRecord]:
    """Chunk *text* along its sections and paragraphs, tagging section headers."""
    cleaned = clean_text_for_chunking(text)
    if not cleaned:
        return []

    chunks: list[ChunkRecord] = []
    for section in extract_sections(cleaned):
        header = section.header or None
        current = ""

        for paragraph in split_into_paragraphs(section.content):
            if len(paragraph) > options.chunk_size:
                if current:
                    chunks.append(make_chunk(current, header=header))
                    current = ""
                for piece in _chunk_by_sentences(paragraph, options):
                    chunks.append(make_chunk(piece, header=header))
                continue

            if current and len(current) + len(paragraph) + len(_PARAGRAPH_JOINER) > options.chunk_size:
                chunks.append(make_chunk(current, header=header))
                overlap = _paragraph_overlap(current, options.chunk_overlap)
                current = f"{overlap}{_PARAGRAPH_JOINER}{paragraph}" if overlap else paragraph
            else:
                current = f"{current}{_PARAGRAPH_JOINER}{paragraph}" if current else paragraph

        if current:
            chunks.append(make_chunk(current, header=header))

    return drop_undersized(chunks, options.min_chunk_size)


def _chunk_by_sentences(paragraph: str, options: ChunkingOptions) -> list[str]:
    """Group the sentences of an oversized paragraph into chunk-sized strings."""
    sentences: list[str] = []
    for sentence in split_into_sentences(paragraph):
        if len(sentence) > options.chunk_size:
            sentences.extend(
                split_recursively(sentence, options.chunk_size, _SUBSENTENCE_SEPARATORS)
            )
        else:
            sentences.append(sentence)

    groups: list[str] = []
    current = ""
    for sentence in sentences:
        if current and len(current) + len(sentence) + 1 > options.chunk_size:
            groups.append(current)
            overlap = _last_sentences(current, options.chunk_overlap)
            current = f"{overlap} {sentence}" if overlap else sentence
        else:
            current = f"{current} {sentence}" if current else sentence

    if current:
        groups.append(current)
    return groups


def _paragraph_overlap(text: str, overlap_size: int) -> str:
    """Return the last paragraph of *text* if it fits the overlap, else its last sentences."""
    if overlap_size <= 0:
        return ""
    paragraphs = split_into_paragraphs(text)
    if paragraphs and len(paragraphs[-1]) <= overlap_size:
        return paragraphs[-1]
    return _last_sentences(text, overlap_size)


def _last_sentences(text: str, max_length: int) -> str:
    """Return the longest run of trailing sentences of *text* within *max_length*."""
    selected: list[str] = []
    length = 0
    for sentence in reversed(split_into_sentences(text)):
        added = len(sentence) + (1 if selected else 0)
        if length + added > max_length:
            break
        selected.insert(0, sentence)
        length += added
    return " ".join(selected)
