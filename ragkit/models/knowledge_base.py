"""Knowledge-base records exchanged with the persistence collaborator."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ragkit.models.chunking import ChunkingStrategy, ChunkRecord, PageContent


class ProcessingStatus(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Lifecycle of a knowledge base as it moves through the pipeline.

    PENDING → PROCESSING → CHUNKING → EMBEDDING → COMPLETED, with FAILED
    reachable from every non-terminal status.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    COMPLETED = "completed"
    FAILED = "failed"


class SourceType(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    FILE = "file"
    TEXT = "text"
    MANUAL = "manual"


class ProcessingError(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    code: str | None = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    retry_count: int = 0


class ProcessingState(BaseModel):
    """Status and 0-100 progress of the knowledge base's current run."""

    model_config = ConfigDict(frozen=True)

    status: ProcessingStatus = ProcessingStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: ProcessingError | None = None


class ChunkingSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    strategy: ChunkingStrategy
    chunk_size: int
    chunk_overlap: int
    total_chunks: int = 0
    total_characters: int = 0
    total_tokens: int = 0


class KnowledgeBase(BaseModel):
    """A named document source owned by an agent."""

    model_config = ConfigDict(frozen=True)

    id: str
    agent_id: str
    user_id: str | None = None
    name: str
    source_type: SourceType = SourceType.FILE
    storage_key: str | None = Field(default=None, description="Where the uploaded file lives.")
    mime_type: str | None = None
    processing: ProcessingState = Field(default_factory=ProcessingState)
    chunking: ChunkingSummary | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class DocumentContent(BaseModel):
    """Extracted text of a knowledge base, optionally split into pages."""

    model_config = ConfigDict(frozen=True)

    full_text: str
    pages: list[PageContent] = Field(default_factory=list)


class StoredChunk(BaseModel):
    """A chunk as persisted: the record plus its identity and position."""

    model_config = ConfigDict(frozen=True)

    id: str
    knowledge_base_id: str
    agent_id: str
    chunk_index: int = Field(ge=0)
    record: ChunkRecord
    vector_id: str | None = None


class DocumentMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str | None = None
    author: str | None = None
    page_count: int = Field(default=0, ge=0)
    created_at: datetime | None = None
    modified_at: datetime | None = None


class ParsedDocument(BaseModel):
    """Output of the document parser: cleaned text, pages and file metadata."""

    model_config = ConfigDict(frozen=True)

    text: str
    pages: list[PageContent] = Field(default_factory=list)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    total_characters: int = Field(default=0, ge=0)
    total_words: int = Field(default=0, ge=0)

    def to_content(self) -> DocumentContent:
        return DocumentContent(full_text=self.text, pages=self.pages)
