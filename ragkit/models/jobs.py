"""Job payloads carried by the processing queue.

Every payload shares the envelope ``{job_id, knowledge_base_id, agent_id,
user_id, timestamp, attempt, max_attempts, type}``; stage-specific fields
live on the concrete payload classes.  :data:`JobPayload` is a
discriminated union on ``type`` so a queue message can be parsed with
``JOB_PAYLOAD_ADAPTER.validate_python(...)``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from ragkit.models.chunking import ChunkingStrategy


class JobType(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    UPLOADED = "uploaded"
    PARSE = "parse"
    CHUNK = "chunk"
    EMBED = "embed"


class JobStatus(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRYING = "retrying"


class _JobEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_id: str
    knowledge_base_id: str
    agent_id: str
    user_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    attempt: int = Field(default=1, ge=1)
    max_attempts: int = Field(default=3, ge=1)

    @property
    def job_type(self) -> JobType:
        return JobType(self.type)  # type: ignore[attr-defined]

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts


class UploadedFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    storage_key: str
    original_name: str
    mime_type: str
    size: int = Field(ge=0)


class FileUploadedJob(_JobEnvelope):
    type: Literal["uploaded"] = "uploaded"
    file: UploadedFile


class ParseJob(_JobEnvelope):
    type: Literal["parse"] = "parse"
    storage_key: str | None = None
    mime_type: str | None = None
    text: str | None = Field(default=None, description="Manual content; skips file storage.")


class ChunkJobOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    strategy: ChunkingStrategy | None = None
    chunk_size: int | None = Field(default=None, gt=0)
    chunk_overlap: int | None = Field(default=None, ge=0)


class ChunkJob(_JobEnvelope):
    type: Literal["chunk"] = "chunk"
    options: ChunkJobOptions = Field(default_factory=ChunkJobOptions)


class EmbedJobOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    batch_size: int = Field(default=32, gt=0)


class EmbedJob(_JobEnvelope):
    type: Literal["embed"] = "embed"
    options: EmbedJobOptions = Field(default_factory=EmbedJobOptions)


JobPayload = Annotated[
    Union[FileUploadedJob, ParseJob, ChunkJob, EmbedJob],  # noqa: UP007
    Field(discriminator="type"),
]

JOB_PAYLOAD_ADAPTER: TypeAdapter[Any] = TypeAdapter(JobPayload)


class JobResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_id: str
    type: JobType
    status: JobStatus
    attempt: int
    error: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class DeadLetter(BaseModel):
    """A job that exhausted its attempts or failed fatally."""

    model_config = ConfigDict(frozen=True)

    payload: dict[str, Any]
    reason: str
    code: str | None = None
    failed_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
