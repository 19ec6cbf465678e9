"""Unit tests for the queue-driven processing pipeline."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from ragkit.models.chunking import ChunkingOptions
from ragkit.models.jobs import EmbedJob, JobStatus, JobType, ParseJob, UploadedFile
from ragkit.models.knowledge_base import ProcessingStatus
from ragkit.pipeline.job_worker import (
    DEFAULT_STAGE_POLICIES,
    JobWorker,
    StagePolicy,
    stage_policies_from_config,
)
from ragkit.providers.queue.memory_queue import MemoryJobQueue
from ragkit.providers.storage.local_storage import LocalFileStorage
from ragkit.services.chunking.chunking_service import ChunkingService
from ragkit.services.embedding_service import EmbeddingService
from ragkit.services.parsing.document_parser import DocumentParser
from ragkit.services.rag_service import RAGService
from ragkit.utils.errors import (
    AuthenticationError,
    ChunkingError,
    MaxRetriesExceededError,
    ServerError,
)

_FAST_POLICIES = {job_type: StagePolicy(max_attempts=2, retry_delay_ms=1) for job_type in JobType}


@pytest.fixture
def queue() -> MemoryJobQueue:
    return MemoryJobQueue()


@pytest.fixture
def storage(tmp_path) -> LocalFileStorage:
    return LocalFileStorage(tmp_path / "uploads")


@pytest.fixture
def worker(store, queue, storage, fake_embedder, fake_vector_store) -> JobWorker:
    embedding = EmbeddingService(fake_embedder)
    return JobWorker(
        queue=queue,
        store=store,
        storage=storage,
        parser=DocumentParser(),
        chunking_service=ChunkingService(store, ChunkingOptions(chunk_size=120, chunk_overlap=20, min_chunk_size=0)),
        embedding_service=embedding,
        rag_service=RAGService(embedding, fake_vector_store),
        policies=_FAST_POLICIES,
    )


async def _drain(worker: JobWorker, queue: MemoryJobQueue) -> list:
    """Process queued jobs stage by stage until every queue is empty."""
    results = []
    progressed = True
    while progressed:
        progressed = False
        for job_type in JobType:
            while queue.pending(job_type):
                results.append(await worker.process(queue.get_nowait(job_type)))
                progressed = True
    return results


# ======================================================================
# Happy path
# ======================================================================


class TestPipeline:
    @pytest.mark.asyncio
    async def test_text_job_runs_to_completion(
        self, worker, queue, store, knowledge_base, sample_text, fake_vector_store
    ) -> None:
        await store.add_knowledge_base(knowledge_base)

        job = await worker.enqueue_text("kb-1", "agent-1", "user-1", sample_text)
        results = await _drain(worker, queue)

        assert isinstance(job, ParseJob)
        assert [result.type for result in results] == [JobType.PARSE, JobType.CHUNK, JobType.EMBED]
        assert all(result.status is JobStatus.COMPLETED for result in results)

        kb = await store.get_knowledge_base("kb-1")
        assert kb.processing.status is ProcessingStatus.COMPLETED
        assert kb.processing.progress == 100
        assert kb.processing.error is None

        chunks = await store.get_chunks("kb-1")
        assert len(chunks) > 1
        assert all(chunk.vector_id == chunk.id for chunk in chunks)
        assert set(fake_vector_store.collections["agent_agent-1"]) == {chunk.id for chunk in chunks}

    @pytest.mark.asyncio
    async def test_uploaded_file_is_read_from_storage(self, worker, queue, store, storage, knowledge_base) -> None:
        await store.add_knowledge_base(knowledge_base)
        await storage.write("kb-1/notes.txt", b"Uploaded notes.\n\nSecond paragraph of the notes.")

        await worker.enqueue_upload(
            "kb-1",
            "agent-1",
            "user-1",
            UploadedFile(storage_key="kb-1/notes.txt", original_name="notes.txt", mime_type="text/plain", size=48),
        )
        assert await worker.run(JobType.UPLOADED, max_jobs=1) == 1
        parse_job = queue.get_nowait(JobType.PARSE)
        assert parse_job.storage_key == "kb-1/notes.txt"
        assert parse_job.mime_type == "text/plain"
        assert parse_job.max_attempts == 2

        await worker.process(parse_job)
        content = await store.get_document_content("kb-1")
        assert content.full_text == "Uploaded notes.\n\nSecond paragraph of the notes."
        assert queue.pending(JobType.CHUNK) == 1

    @pytest.mark.asyncio
    async def test_chunk_stage_leaves_chunking_status(self, worker, queue, seeded_store) -> None:
        await worker._publish_next(
            ParseJob(job_id="p", knowledge_base_id="kb-1", agent_id="agent-1", user_id="user-1"), JobType.CHUNK
        )
        await worker.process(queue.get_nowait(JobType.CHUNK))

        kb = await seeded_store.get_knowledge_base("kb-1")
        assert kb.processing.status is ProcessingStatus.CHUNKING
        assert kb.processing.progress == 60
        assert queue.pending(JobType.EMBED) == 1

    @pytest.mark.asyncio
    async def test_retried_embed_does_not_duplicate_vectors(
        self, worker, queue, seeded_store, fake_vector_store
    ) -> None:
        await worker._chunking.chunk_document("kb-1", complete=False)
        job = EmbedJob(job_id="e", knowledge_base_id="kb-1", agent_id="agent-1", user_id="user-1")

        await worker.process(job)
        await worker.process(job.model_copy(update={"attempt": 2}))

        chunks = await seeded_store.get_chunks("kb-1")
        assert len(fake_vector_store.collections["agent_agent-1"]) == len(chunks)


# ======================================================================
# Failure policy
# ======================================================================


class TestFailurePolicy:
    @pytest.mark.asyncio
    async def test_retryable_failure_is_republished(self, worker, queue, seeded_store, fake_embedder) -> None:
        await worker._chunking.chunk_document("kb-1", complete=False)
        fake_embedder.embed_batch = AsyncMock(side_effect=ServerError("bad gateway", provider_name="fake"))
        job = EmbedJob(job_id="e", knowledge_base_id="kb-1", agent_id="agent-1", user_id="user-1", max_attempts=2)

        result = await worker.process(job)

        assert result.status is JobStatus.RETRYING
        assert result.details == {"code": "SERVER_ERROR"}
        kb = await seeded_store.get_knowledge_base("kb-1")
        assert kb.processing.status is ProcessingStatus.FAILED
        assert kb.processing.error.code == "SERVER_ERROR"

        await queue.drain_delayed()
        retry = queue.get_nowait(JobType.EMBED)
        assert retry.job_id == "e"
        assert retry.attempt == 2
        assert queue.dead_letters == []

    @pytest.mark.asyncio
    async def test_exhausted_job_is_dead_lettered(self, worker, queue, seeded_store, fake_embedder) -> None:
        await worker._chunking.chunk_document("kb-1", complete=False)
        fake_embedder.embed_batch = AsyncMock(side_effect=ServerError("bad gateway", provider_name="fake"))
        job = EmbedJob(
            job_id="e", knowledge_base_id="kb-1", agent_id="agent-1", user_id="user-1", attempt=2, max_attempts=2
        )

        result = await worker.process(job)

        assert result.status is JobStatus.FAILED
        assert queue.pending(JobType.EMBED) == 0
        [letter] = queue.dead_letters
        assert letter.code == "SERVER_ERROR"
        assert letter.payload["attempt"] == 2

    @pytest.mark.asyncio
    async def test_invalid_parse_job_is_fatal(self, worker, queue, store, knowledge_base) -> None:
        await store.add_knowledge_base(knowledge_base)
        job = ParseJob(job_id="p", knowledge_base_id="kb-1", agent_id="agent-1", user_id="user-1")

        result = await worker.process(job)

        assert result.status is JobStatus.FAILED
        assert queue.dead_letters[0].code == "PipelineError"
        kb = await store.get_knowledge_base("kb-1")
        assert kb.processing.status is ProcessingStatus.FAILED

    @pytest.mark.asyncio
    async def test_missing_file_is_fatal(self, worker, queue, store, knowledge_base) -> None:
        await store.add_knowledge_base(knowledge_base)
        job = ParseJob(
            job_id="p",
            knowledge_base_id="kb-1",
            agent_id="agent-1",
            user_id="user-1",
            storage_key="kb-1/missing.pdf",
            mime_type="application/pdf",
        )

        result = await worker.process(job)

        assert result.status is JobStatus.FAILED
        assert queue.dead_letters[0].code == "FileNotFoundError"

    @pytest.mark.asyncio
    async def test_unknown_knowledge_base(self, worker, queue) -> None:
        await worker.enqueue_text("ghost", "agent-1", "user-1", "text")

        [result] = await _drain(worker, queue)

        assert result.status is JobStatus.FAILED
        assert queue.dead_letters[0].code == "KeyError"

    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (ServerError("502"), True),
            (AuthenticationError("401"), False),
            (MaxRetriesExceededError("gave up"), True),
            (ChunkingError("no content"), False),
            (FileNotFoundError("gone"), False),
            (ConnectionResetError("reset"), True),
        ],
    )
    def test_is_retryable(self, exc, expected) -> None:
        assert JobWorker.is_retryable(exc) is expected


# ======================================================================
# Worker loop and config
# ======================================================================


class TestWorkerLoop:
    @pytest.mark.asyncio
    async def test_stop_ends_idle_loop(self, worker) -> None:
        task = asyncio.create_task(worker.run(JobType.EMBED))
        await asyncio.sleep(0)
        worker.stop()
        assert await asyncio.wait_for(task, timeout=1) == 0

    def test_policies_from_config(self) -> None:
        policies = stage_policies_from_config(
            {"stages": {"embed": {"max_attempts": 9}, "parse": {"retry_delay_ms": 1}}}
        )
        assert policies[JobType.EMBED] == StagePolicy(max_attempts=9, retry_delay_ms=10000)
        assert policies[JobType.PARSE] == StagePolicy(max_attempts=3, retry_delay_ms=1)
        assert policies[JobType.CHUNK] == DEFAULT_STAGE_POLICIES[JobType.CHUNK]

    def test_policies_without_config(self) -> None:
        assert stage_policies_from_config(None) == DEFAULT_STAGE_POLICIES
