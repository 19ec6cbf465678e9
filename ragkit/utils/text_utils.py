"""Stateless text-analysis primitives shared by every chunking strategy.

Token counts produced here are a character-based *estimate*
(``ceil(len / 4)``), not a tokenizer result.  Budget maths built on
:func:`estimate_tokens` should leave headroom accordingly.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass

# Abbreviations whose trailing period must not end a sentence.
DEFAULT_ABBREVIATIONS: tuple[str, ...] = (
    "Mr.",
    "Mrs.",
    "Ms.",
    "Dr.",
    "Prof.",
    "Sr.",
    "Jr.",
    "St.",
    "vs.",
    "etc.",
    "e.g.",
    "i.e.",
    "Inc.",
    "Ltd.",
    "No.",
    "Vol.",
    "approx.",
)

# Masked periods use a control character so indices stay aligned.
_MASK = "\x00"

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
_SENTENCE_END = re.compile(r"[.!?]\s+")
_PARAGRAPH_BOUNDARY = re.compile(r"\n\s*\n")
_HEADER_LINE = re.compile(r"^(#{1,6}[ \t]+.+|[A-Z][A-Z \t]{2,}[A-Z])$", re.MULTILINE)
_HEADER_PREFIX = re.compile(r"^#+\s*")


@dataclass(frozen=True)
class Section:
    """A run of text under a single header (``""`` before the first header)."""

    header: str
    content: str


def estimate_tokens(text: str) -> int:
    """Return ``ceil(len(text) / 4)``, a rough token estimate."""
    return math.ceil(len(text) / 4)


def split_into_sentences(
    text: str,
    abbreviations: Iterable[str] = DEFAULT_ABBREVIATIONS,
) -> list[str]:
    """Split *text* at sentence-final punctuation followed by whitespace.

    Periods inside known abbreviations ("Dr.", "e.g.") are masked before
    the split and restored afterwards, so ``"Dr. Smith went home."`` stays
    one sentence.
    """
    masked = text
    for abbr in abbreviations:
        masked = masked.replace(abbr, abbr.replace(".", _MASK))

    sentences = []
    for part in _SENTENCE_BOUNDARY.split(masked):
        part = part.strip()
        if part:
            sentences.append(part.replace(_MASK, "."))
    return sentences


def split_into_paragraphs(text: str) -> list[str]:
    """Split *text* on blank lines, trimming and discarding empty paragraphs."""
    return [p.strip() for p in _PARAGRAPH_BOUNDARY.split(text) if p.strip()]


def extract_sections(text: str) -> list[Section]:
    """Split *text* into sections at markdown headers or all-caps lines.

    Content before the first header belongs to a section with an empty
    header.  Headers followed by no content produce no section.  When no
    section can be built the whole trimmed text is returned as one section.
    """
    sections: list[Section] = []
    header = ""
    position = 0

    for match in _HEADER_LINE.finditer(text):
        content = text[position:match.start()].strip()
        if content:
            sections.append(Section(header=header, content=content))
        header = _HEADER_PREFIX.sub("", match.group(0)).strip()
        position = match.end()

    content = text[position:].strip()
    if content:
        sections.append(Section(header=header, content=content))

    if not sections and text.strip():
        return [Section(header="", content=text.strip())]
    return sections


def clean_text_for_chunking(text: str) -> str:
    """Normalise line endings and whitespace before chunking."""
    text = text.replace("\r\n", "\n")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def find_break_point(text: str, target_pos: int, search_range: int = 100) -> int:
    """Return the best place to end a chunk near *target_pos*.

    Looks inside ``[target_pos - search_range, target_pos + search_range]``
    for, in priority order: the last paragraph break, the last sentence
    end, the last word boundary (no further than 20 characters past the
    target).  Falls back to *target_pos* itself.
    """
    if target_pos >= len(text):
        return len(text)

    start = max(0, target_pos - search_range)
    end = min(len(text), target_pos + search_range)
    window = text[start:end]
    relative_target = target_pos - start
    lower_bound = relative_target - search_range

    paragraph_break = window.rfind("\n\n")
    if paragraph_break != -1 and paragraph_break > lower_bound:
        return start + paragraph_break + 2

    sentence_end = -1
    for match in _SENTENCE_END.finditer(window):
        if match.end() <= relative_target + search_range:
            sentence_end = match.end()
    if sentence_end != -1 and sentence_end > lower_bound:
        return start + sentence_end

    word_break = window.rfind(" ", 0, relative_target + 21)
    if word_break != -1:
        return start + word_break + 1

    return target_pos
