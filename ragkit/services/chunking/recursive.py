"""Recursive separator-based chunking.

Text is split on the coarsest separator that actually divides it
(paragraphs, then lines, sentences, clauses, words and finally single
characters); pieces still larger than ``chunk_size`` are split again with
the finer separators.  The resulting pieces are merged back together up to
``chunk_size`` and every new chunk is seeded with an overlap tail taken from
the previous one.
"""

from __future__ import annotations

from collections.abc import Sequence

from ragkit.models.chunking import ChunkingOptions, ChunkRecord
from ragkit.services.chunking.base import drop_undersized, make_chunk
from ragkit.utils.text_utils import clean_text_for_chunking, split_into_sentences

# Coarsest first; "" means "split into characters".
SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", ", ", " ", "")

_JOINER = " "


def recursive_chunk(text: str, options: ChunkingOptions) -> list[ChunkRecord]:
    """Split *text* recursively and merge the pieces into overlapping chunks."""
    cleaned = clean_text_for_chunking(text)
    if not cleaned:
        return []

    pieces = split_recursively(cleaned, options.chunk_size, SEPARATORS)

    chunks: list[ChunkRecord] = []
    current = ""
    start_char = 0

    for piece in pieces:
        candidate_length = len(current) + len(piece) + (len(_JOINER) if current else 0)
        if candidate_length <= options.chunk_size:
            current = f"{current}{_JOINER}{piece}" if current else piece
            continue

        if current.strip():
            chunks.append(make_chunk(current, start_char=start_char))

        overlap = overlap_tail(current, options.chunk_overlap)
        found = cleaned.find(piece, start_char)
        if found != -1:
            start_char = found
        current = f"{overlap}{_JOINER}{piece}" if overlap else piece

    if current.strip():
        chunks.append(make_chunk(current, start_char=start_char))

    return drop_undersized(chunks, options.min_chunk_size)


def split_recursively(text: str, chunk_size: int, separators: Sequence[str]) -> list[str]:
    """Split *text* into pieces no longer than *chunk_size*.

    The first separator that yields more than one part is used; parts that
    are still too long are split again with the remaining separators.
    Punctuation separators (``". "``, ``", "``) stay attached to the part
    they end.
    """
    if len(text) <= chunk_size:
        return [text]

    if not separators or separators[0] == "":
        return [text[i:i + chunk_size] for i in range(0, len(text), chunk_size)]

    separator, remaining = separators[0], separators[1:]
    parts = _split_keeping_punctuation(text, separator)
    if not parts:
        return []
    if len(parts) == 1:
        return split_recursively(text, chunk_size, remaining)

    pieces: list[str] = []
    for part in parts:
        if len(part) > chunk_size:
            pieces.extend(split_recursively(part, chunk_size, remaining))
        else:
            pieces.append(part)
    return pieces


def overlap_tail(text: str, overlap_size: int) -> str:
    """Return the tail of *text* used to seed the next chunk.

    Prefers the last full sentence of the final *overlap_size* characters,
    then a cut at a word boundary near the window start, then a raw cut.
    """
    if overlap_size <= 0 or not text:
        return ""
    if len(text) <= overlap_size:
        return text

    overlap_start = len(text) - overlap_size
    sentences = split_into_sentences(text[overlap_start:])
    if len(sentences) > 1:
        return sentences[-1]

    last_space = text.rfind(" ", 0, overlap_start + 51)
    if last_space > overlap_start - 50:
        return text[last_space + 1:]

    return text[overlap_start:]


def _split_keeping_punctuation(text: str, separator: str) -> list[str]:
    parts = text.split(separator)
    kept = separator.strip()
    if kept:
        parts = [part + kept for part in parts[:-1]] + parts[-1:]
    return [part.strip() for part in parts if part.strip()]
