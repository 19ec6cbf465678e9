"""Chunking data models.

Chunk records are immutable once produced; ``char_count`` and
``token_count`` are computed from ``content`` and cannot be set
independently.  Re-chunking a knowledge base replaces its chunk list
wholesale.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from ragkit.utils.text_utils import estimate_tokens

# Joins consecutive page texts into a parsed document's full text.
PAGE_SEPARATOR = "\n\n"


class ChunkingStrategy(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Available text segmentation algorithms."""

    FIXED = "fixed"
    RECURSIVE = "recursive"
    SEMANTIC = "semantic"
    PAGE = "page"


class ChunkMetadata(BaseModel):
    """Positional and provenance metadata attached to a chunk."""

    model_config = ConfigDict(frozen=True)

    start_char: int | None = Field(default=None, ge=0, description="Offset of the chunk in the cleaned text.")
    end_char: int | None = Field(default=None, ge=0, description="End offset (exclusive) in the cleaned text.")
    page_number: int | None = Field(default=None, ge=1, description="1-based source page, when known.")
    header: str | None = Field(default=None, description="Section header the chunk falls under.")
    section: str | None = Field(default=None, description="Free-form section label.")
    source: str | None = Field(default=None, description="Name of the knowledge base the chunk came from.")


class ChunkRecord(BaseModel):
    """A bounded text segment ready for embedding.

    ``token_count`` is an estimate (``ceil(len / 4)``), not a tokenizer count.
    """

    model_config = ConfigDict(frozen=True)

    content: str = Field(description="The chunk text, trimmed.")
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def char_count(self) -> int:
        return len(self.content)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def token_count(self) -> int:
        return estimate_tokens(self.content)


class ChunkingOptions(BaseModel):
    """Parameters shared by all chunking strategies.

    ``chunk_overlap`` must be strictly smaller than ``chunk_size``, otherwise
    a sliding window could never advance.  ``max_chunk_size`` is the hard
    ceiling enforced after a strategy runs (defaults to twice
    ``chunk_size``).
    """

    model_config = ConfigDict(frozen=True)

    strategy: ChunkingStrategy = Field(default=ChunkingStrategy.RECURSIVE)
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    min_chunk_size: int = Field(default=100, ge=0)
    max_chunk_size: int | None = Field(default=None, gt=0)
    preserve_sentences: bool = Field(default=True)

    @model_validator(mode="after")
    def _check_bounds(self) -> ChunkingOptions:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        if self.max_chunk_size is not None and self.max_chunk_size < self.chunk_size:
            raise ValueError(
                f"max_chunk_size ({self.max_chunk_size}) must be at least "
                f"chunk_size ({self.chunk_size})"
            )
        return self

    @property
    def effective_max_chunk_size(self) -> int:
        return self.max_chunk_size or self.chunk_size * 2


class PageContent(BaseModel):
    """Text of a single source page."""

    model_config = ConfigDict(frozen=True)

    page_number: int = Field(ge=1)
    text: str

    @property
    def char_count(self) -> int:
        return len(self.text)


class ChunkingResult(BaseModel):
    """Outcome of one chunking run over a knowledge base or preview text."""

    model_config = ConfigDict(frozen=True)

    chunks: list[ChunkRecord] = Field(default_factory=list)
    strategy: ChunkingStrategy
    total_chunks: int = Field(default=0, ge=0)
    total_characters: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)

    @classmethod
    def from_chunks(cls, chunks: list[ChunkRecord], strategy: ChunkingStrategy) -> ChunkingResult:
        return cls(
            chunks=chunks,
            strategy=strategy,
            total_chunks=len(chunks),
            total_characters=sum(c.char_count for c in chunks),
            total_tokens=sum(c.token_count for c in chunks),
        )


class ChunkingStats(BaseModel):
    """Aggregate size statistics for a stored chunk list."""

    model_config = ConfigDict(frozen=True)

    total_chunks: int = 0
    total_characters: int = 0
    total_tokens: int = 0
    average_chunk_size: float = 0.0
    min_chunk_size: int = 0
    max_chunk_size: int = 0
