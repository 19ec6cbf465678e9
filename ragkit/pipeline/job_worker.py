"""Queue-driven document processing pipeline.

A knowledge base moves through four stages, each delivered as its own job:

    uploaded  ->  parse  ->  chunk  ->  embed

Every stage handler does its work, records status and progress on the
knowledge base, and publishes the job for the next stage.  The worker
owns the failure policy:

* the failure is recorded on the knowledge base (``failed`` + message +
  code) so the document's pipeline visibly stops at that stage;
* retryable failures are re-published with ``attempt + 1`` after the
  stage's ``retry_delay_ms`` while attempts remain;
* fatal failures and exhausted jobs go to the dead-letter destination.

Output of completed stages is never rolled back; a retried embed stage
re-indexes from the stored chunks.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ragkit.models.jobs import (
    ChunkJob,
    EmbedJob,
    FileUploadedJob,
    JobPayload,
    JobResult,
    JobStatus,
    JobType,
    ParseJob,
    UploadedFile,
)
from ragkit.models.knowledge_base import ProcessingStatus
from ragkit.utils.errors import MaxRetriesExceededError, PipelineError, ProviderError, RagkitError
from ragkit.utils.logging import get_logger

if TYPE_CHECKING:
    from ragkit.interfaces.job_queue import IFileStorage, IJobQueue
    from ragkit.interfaces.knowledge_base_store import IKnowledgeBaseStore
    from ragkit.services.chunking.chunking_service import ChunkingService
    from ragkit.services.embedding_service import EmbeddingService
    from ragkit.services.parsing.document_parser import DocumentParser
    from ragkit.services.rag_service import RAGService

logger = get_logger(__name__)


@dataclass(frozen=True)
class StagePolicy:
    """Retry budget of one pipeline stage."""

    max_attempts: int
    retry_delay_ms: int


DEFAULT_STAGE_POLICIES: dict[JobType, StagePolicy] = {
    JobType.UPLOADED: StagePolicy(max_attempts=3, retry_delay_ms=5000),
    JobType.PARSE: StagePolicy(max_attempts=3, retry_delay_ms=5000),
    JobType.CHUNK: StagePolicy(max_attempts=3, retry_delay_ms=3000),
    JobType.EMBED: StagePolicy(max_attempts=5, retry_delay_ms=10000),
}

_PAYLOAD_CLASSES: dict[JobType, type[Any]] = {
    JobType.UPLOADED: FileUploadedJob,
    JobType.PARSE: ParseJob,
    JobType.CHUNK: ChunkJob,
    JobType.EMBED: EmbedJob,
}


def stage_policies_from_config(queue_config: Mapping[str, Any] | None) -> dict[JobType, StagePolicy]:
    """Build stage policies from the ``queue.stages`` section of config.yaml.

    Stages or fields missing from the config keep their defaults.
    """
    stages = (queue_config or {}).get("stages") or {}
    policies = dict(DEFAULT_STAGE_POLICIES)
    for job_type, default in DEFAULT_STAGE_POLICIES.items():
        section = stages.get(job_type.value) or {}
        policies[job_type] = StagePolicy(
            max_attempts=int(section.get("max_attempts", default.max_attempts)),
            retry_delay_ms=int(section.get("retry_delay_ms", default.retry_delay_ms)),
        )
    return policies


class JobWorker:
    """Consumes pipeline jobs and runs the matching stage handler.

    All collaborators are injected; the worker holds no state beyond its
    stop event, so one instance may run a consumer loop per stage
    concurrently.
    """

    def __init__(
        self,
        queue: IJobQueue,
        store: IKnowledgeBaseStore,
        storage: IFileStorage,
        parser: DocumentParser,
        chunking_service: ChunkingService,
        embedding_service: EmbeddingService,
        rag_service: RAGService,
        policies: Mapping[JobType, StagePolicy] | None = None,
    ) -> None:
        self._queue = queue
        self._store = store
        self._storage = storage
        self._parser = parser
        self._chunking = chunking_service
        self._embedding = embedding_service
        self._rag = rag_service
        self._policies = {**DEFAULT_STAGE_POLICIES, **(policies or {})}
        self._stop = asyncio.Event()
        self._handlers: dict[JobType, Callable[[Any], Awaitable[dict[str, Any]]]] = {
            JobType.UPLOADED: self._handle_uploaded,
            JobType.PARSE: self._handle_parse,
            JobType.CHUNK: self._handle_chunk,
            JobType.EMBED: self._handle_embed,
        }

    def policy(self, job_type: JobType) -> StagePolicy:
        return self._policies[job_type]

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def enqueue_upload(
        self,
        knowledge_base_id: str,
        agent_id: str,
        user_id: str,
        file: UploadedFile,
    ) -> FileUploadedJob:
        """Start the pipeline for an uploaded file."""
        job = FileUploadedJob(
            job_id=uuid.uuid4().hex,
            knowledge_base_id=knowledge_base_id,
            agent_id=agent_id,
            user_id=user_id,
            max_attempts=self.policy(JobType.UPLOADED).max_attempts,
            file=file,
        )
        await self._queue.publish(job)
        return job

    async def enqueue_text(
        self,
        knowledge_base_id: str,
        agent_id: str,
        user_id: str,
        text: str,
    ) -> ParseJob:
        """Start the pipeline for manually entered content (no file upload)."""
        job = ParseJob(
            job_id=uuid.uuid4().hex,
            knowledge_base_id=knowledge_base_id,
            agent_id=agent_id,
            user_id=user_id,
            max_attempts=self.policy(JobType.PARSE).max_attempts,
            text=text,
        )
        await self._queue.publish(job)
        return job

    async def run(self, job_type: JobType, max_jobs: int | None = None) -> int:
        """Consume *job_type* jobs until :meth:`stop` is called.

        *max_jobs* bounds the loop (used by tests and one-shot drains).
        Returns the number of jobs processed.
        """
        processed = 0
        logger.info("worker_started", job_type=job_type.value)
        while not self._stop.is_set() and (max_jobs is None or processed < max_jobs):
            consume = asyncio.ensure_future(self._queue.consume(job_type))
            stopped = asyncio.ensure_future(self._stop.wait())
            done, _ = await asyncio.wait({consume, stopped}, return_when=asyncio.FIRST_COMPLETED)
            stopped.cancel()
            if consume not in done:
                consume.cancel()
                break
            await self.process(consume.result())
            processed += 1
        logger.info("worker_stopped", job_type=job_type.value, processed=processed)
        return processed

    def stop(self) -> None:
        self._stop.set()

    async def process(self, payload: JobPayload) -> JobResult:
        """Run one job through its stage handler and apply the failure policy."""
        job_type = payload.job_type
        log = logger.bind(
            job_id=payload.job_id,
            job_type=job_type.value,
            knowledge_base_id=payload.knowledge_base_id,
            attempt=payload.attempt,
        )
        log.info("job_started")
        try:
            details = await self._handlers[job_type](payload)
        except Exception as exc:
            return await self._handle_failure(payload, exc)

        log.info("job_completed", **details)
        return JobResult(
            job_id=payload.job_id,
            type=job_type,
            status=JobStatus.COMPLETED,
            attempt=payload.attempt,
            details=details,
        )

    # ------------------------------------------------------------------
    # Stage handlers
    # ------------------------------------------------------------------

    async def _handle_uploaded(self, job: FileUploadedJob) -> dict[str, Any]:
        await self._store.update_processing(job.knowledge_base_id, ProcessingStatus.PROCESSING, 10)
        await self._publish_next(
            job,
            JobType.PARSE,
            storage_key=job.file.storage_key,
            mime_type=job.file.mime_type,
        )
        return {"storage_key": job.file.storage_key}

    async def _handle_parse(self, job: ParseJob) -> dict[str, Any]:
        await self._store.update_processing(job.knowledge_base_id, ProcessingStatus.PROCESSING, 20)

        if job.text is not None:
            document = self._parser.parse_text(job.text)
        else:
            if not job.storage_key or not job.mime_type:
                raise PipelineError(
                    "Parse job needs either text or a storage key and mime type",
                    stage=JobType.PARSE.value,
                )
            data = await self._storage.read(job.storage_key)
            document = await asyncio.to_thread(self._parser.parse, data, job.mime_type)

        await self._store.save_document_content(job.knowledge_base_id, document.to_content())
        await self._store.update_processing(job.knowledge_base_id, ProcessingStatus.PROCESSING, 40)
        await self._publish_next(job, JobType.CHUNK)
        return {"characters": document.total_characters, "pages": len(document.pages)}

    async def _handle_chunk(self, job: ChunkJob) -> dict[str, Any]:
        result = await self._chunking.chunk_document(
            job.knowledge_base_id,
            job.options.model_dump(exclude_none=True),
            complete=False,
        )
        await self._publish_next(job, JobType.EMBED)
        return {"chunks": result.total_chunks, "strategy": result.strategy.value}

    async def _handle_embed(self, job: EmbedJob) -> dict[str, Any]:
        kb_id = job.knowledge_base_id
        await self._store.update_processing(kb_id, ProcessingStatus.EMBEDDING, 70)

        chunks = await self._store.get_chunks(kb_id)
        # Vectors from an earlier attempt are replaced, not duplicated.
        await self._rag.delete_knowledge_base(job.agent_id, kb_id)

        batch_size = job.options.batch_size
        indexed = 0
        for start in range(0, len(chunks), batch_size):
            batch = chunks[start : start + batch_size]
            embedded = await self._embedding.embed_chunks(batch)
            vector_ids = await self._rag.index_chunks(job.agent_id, embedded)
            await self._store.mark_chunks_embedded(kb_id, vector_ids)
            indexed += len(vector_ids)
            progress = 70 + (29 * (start + len(batch))) // len(chunks)
            await self._store.update_processing(kb_id, ProcessingStatus.EMBEDDING, progress)

        await self._store.update_processing(kb_id, ProcessingStatus.COMPLETED, 100)
        return {"chunks": len(chunks), "indexed": indexed}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _publish_next(self, job: JobPayload, next_type: JobType, **fields: Any) -> None:
        next_job = _PAYLOAD_CLASSES[next_type](
            job_id=uuid.uuid4().hex,
            knowledge_base_id=job.knowledge_base_id,
            agent_id=job.agent_id,
            user_id=job.user_id,
            max_attempts=self.policy(next_type).max_attempts,
            **fields,
        )
        await self._queue.publish(next_job)

    async def _handle_failure(self, payload: JobPayload, exc: Exception) -> JobResult:
        job_type = payload.job_type
        code = getattr(exc, "code", None) or type(exc).__name__
        retry = self.is_retryable(exc) and not payload.exhausted

        knowledge_base = await self._store.get_knowledge_base(payload.knowledge_base_id)
        if knowledge_base is not None:
            await self._store.update_processing(
                payload.knowledge_base_id,
                ProcessingStatus.FAILED,
                knowledge_base.processing.progress,
                error=str(exc),
                error_code=code,
            )

        if retry:
            delay_ms = self.policy(job_type).retry_delay_ms
            await self._queue.publish(payload.model_copy(update={"attempt": payload.attempt + 1}), delay_ms=delay_ms)
            logger.warning(
                "job_retry_scheduled",
                job_id=payload.job_id,
                job_type=job_type.value,
                attempt=payload.attempt,
                max_attempts=payload.max_attempts,
                delay_ms=delay_ms,
                error=str(exc),
            )
            status = JobStatus.RETRYING
        else:
            await self._queue.dead_letter(payload, str(exc), code)
            logger.error(
                "job_failed",
                job_id=payload.job_id,
                job_type=job_type.value,
                attempt=payload.attempt,
                code=code,
                error=str(exc),
            )
            status = JobStatus.FAILED

        return JobResult(
            job_id=payload.job_id,
            type=job_type,
            status=status,
            attempt=payload.attempt,
            error=str(exc),
            details={"code": code},
        )

    @staticmethod
    def is_retryable(exc: BaseException) -> bool:
        """Whether a failed job deserves another attempt.

        Provider errors answer through ``retryable``; a provider that gave
        up after its own retries (``MAX_RETRIES_EXCEEDED``) gets another
        job-level attempt.  Other ragkit errors and missing files are
        permanent.  Anything unexpected is treated as transient.
        """
        if isinstance(exc, MaxRetriesExceededError):
            return True
        if isinstance(exc, ProviderError):
            return exc.retryable
        if isinstance(exc, (RagkitError, FileNotFoundError, KeyError)):
            return False
        return True
