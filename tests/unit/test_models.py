"""Unit tests for the job payload and chunk models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from ragkit.models.chunking import ChunkingOptions, ChunkRecord
from ragkit.models.jobs import (
    JOB_PAYLOAD_ADAPTER,
    ChunkJob,
    EmbedJob,
    FileUploadedJob,
    JobType,
    ParseJob,
)


class TestJobPayloads:
    def test_discriminated_union(self) -> None:
        envelope = {"job_id": "j", "knowledge_base_id": "kb", "agent_id": "a", "user_id": "u"}

        uploaded = JOB_PAYLOAD_ADAPTER.validate_python(
            {
                **envelope,
                "type": "uploaded",
                "file": {"storage_key": "k", "original_name": "a.pdf", "mime_type": "application/pdf", "size": 3},
            }
        )
        parse = JOB_PAYLOAD_ADAPTER.validate_python({**envelope, "type": "parse", "text": "hi"})
        chunk = JOB_PAYLOAD_ADAPTER.validate_python({**envelope, "type": "chunk", "options": {"chunk_size": 500}})
        embed = JOB_PAYLOAD_ADAPTER.validate_python({**envelope, "type": "embed"})

        assert isinstance(uploaded, FileUploadedJob)
        assert isinstance(parse, ParseJob)
        assert isinstance(chunk, ChunkJob) and chunk.options.chunk_size == 500
        assert isinstance(embed, EmbedJob) and embed.options.batch_size == 32
        assert [p.job_type for p in (uploaded, parse, chunk, embed)] == list(JobType)

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            JOB_PAYLOAD_ADAPTER.validate_python(
                {"job_id": "j", "knowledge_base_id": "kb", "agent_id": "a", "user_id": "u", "type": "index"}
            )

    def test_exhausted(self) -> None:
        job = EmbedJob(job_id="j", knowledge_base_id="kb", agent_id="a", user_id="u", max_attempts=2)
        assert job.exhausted is False
        assert job.model_copy(update={"attempt": 2}).exhausted is True

    def test_json_round_trip_keeps_type(self) -> None:
        job = ParseJob(job_id="j", knowledge_base_id="kb", agent_id="a", user_id="u", storage_key="k", mime_type="text/plain")
        restored = JOB_PAYLOAD_ADAPTER.validate_json(job.model_dump_json())
        assert restored == job


class TestChunkModels:
    def test_overlap_must_be_smaller_than_size(self) -> None:
        with pytest.raises(ValidationError):
            ChunkingOptions(chunk_size=100, chunk_overlap=100)

    def test_max_size_not_below_chunk_size(self) -> None:
        with pytest.raises(ValidationError):
            ChunkingOptions(chunk_size=100, chunk_overlap=10, max_chunk_size=50)

    def test_effective_max_chunk_size(self) -> None:
        assert ChunkingOptions(chunk_size=300, chunk_overlap=0).effective_max_chunk_size == 600
        assert ChunkingOptions(chunk_size=300, chunk_overlap=0, max_chunk_size=400).effective_max_chunk_size == 400

    def test_chunk_record_counts(self) -> None:
        record = ChunkRecord(content="abcdefghi")
        assert record.char_count == 9
        assert record.token_count == 3
        assert record.model_dump()["token_count"] == 3
